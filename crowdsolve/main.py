# crowdsolve/main.py
import asyncio
import logging
from typing import Optional

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

# config carga el .env al importarse
from crowdsolve import config
from crowdsolve.api.notifications import create_router as create_notifications_router
from crowdsolve.api.websocket import create_router as create_ws_router
from crowdsolve.infra.servicebus_consumer import consume_notifications
from crowdsolve.infra.table_client import NotificationStore
from crowdsolve.realtime.fanout import EventFanOut
from crowdsolve.realtime.membership import RoomMembershipTable
from crowdsolve.realtime.presence import PresenceCounter
from crowdsolve.realtime.sessions import SessionLifecycleHandler
from crowdsolve.realtime.transport import WebSocketTransport
from crowdsolve.services.content import ContentPublisher
from crowdsolve.services.notifications import NotificationService


def configure_logging(level: str = "info", fmt: str = "json") -> None:
    """Configura structlog con el nivel y formato indicados."""
    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
    ]
    if fmt == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(
            logging.getLevelName(level.upper())
        ),
    )


def create_app(store=None, start_consumer: bool = True, dev_endpoints: Optional[bool] = None) -> FastAPI:
    configure_logging(config.LOG_LEVEL, config.LOG_FORMAT)
    log = structlog.get_logger()

    # 1) grafo de tiempo real: cada pieza recibe explícitamente lo que usa
    membership = RoomMembershipTable()
    transport = WebSocketTransport()
    fanout = EventFanOut(membership, transport)
    presence = PresenceCounter(membership, fanout)
    sessions = SessionLifecycleHandler(membership, presence)

    # 2) notificaciones + eventos de contenido
    notifications = NotificationService(store if store is not None else NotificationStore(), fanout)
    content = ContentPublisher(fanout)

    app = FastAPI(title="CrowdSolve Realtime")

    # 3) CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # 4) Rutas REST + WebSocket
    if dev_endpoints is None:
        dev_endpoints = config.DEV_ENDPOINTS
    app.include_router(create_notifications_router(notifications, dev_endpoints=dev_endpoints))
    app.include_router(create_ws_router(sessions, transport))

    @app.get("/health", tags=["system"])
    async def health_check():
        return {"status": "ok", "topics": len(membership), "sessions": len(sessions.sessions)}

    consumer_task: Optional[asyncio.Task] = None

    @app.on_event("startup")
    async def startup_event():
        nonlocal consumer_task
        log.info("app.starting", consumer=start_consumer)
        if start_consumer:
            # 5) lanzar el consumer de Service Bus en background
            consumer_task = asyncio.create_task(consume_notifications(notifications, content))

    @app.on_event("shutdown")
    async def shutdown_event():
        log.info("app.stopping")
        if consumer_task is not None:
            consumer_task.cancel()

    return app


def run():
    import uvicorn

    uvicorn.run(
        "crowdsolve.main:create_app",
        factory=True,
        host="0.0.0.0",
        port=8000,
        ws_ping_interval=config.WS_PING_INTERVAL,
        ws_ping_timeout=config.WS_PING_TIMEOUT,
    )


if __name__ == "__main__":
    run()
