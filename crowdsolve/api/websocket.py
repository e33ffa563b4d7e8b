# crowdsolve/api/websocket.py
import json
from typing import Any, Optional, Tuple
from uuid import uuid4

import structlog
from fastapi import APIRouter, HTTPException, Query, WebSocket, WebSocketDisconnect, status

from crowdsolve.realtime.sessions import JOIN_USER, SessionLifecycleHandler, extract_id
from crowdsolve.realtime.transport import WebSocketTransport
from crowdsolve.security.jwt_utils import decode_token

log = structlog.get_logger()


def parse_frame(raw: str) -> Optional[Tuple[str, Any]]:
    """Frame del cliente: {"event": "join-problem", "data": "<id>" | {...}}"""
    try:
        frame = json.loads(raw)
    except json.JSONDecodeError:
        return None
    if not isinstance(frame, dict) or not isinstance(frame.get("event"), str):
        return None
    return frame["event"], frame.get("data")


def may_join_user(subject: Optional[str], data: Any) -> bool:
    # sólo se puede escuchar el canal privado del usuario del token
    if subject is None:
        return False
    try:
        return extract_id(data, "userId") == subject
    except ValueError:
        return False


def create_router(sessions: SessionLifecycleHandler, transport: WebSocketTransport) -> APIRouter:
    router = APIRouter(tags=["websocket"])

    @router.websocket("/ws")
    async def websocket_realtime(websocket: WebSocket, token: Optional[str] = Query(None)):
        """
        WebSocket de tiempo real (presencia + eventos + notificaciones).
        El frontend se conecta con:
          ws://localhost:8000/ws?token=JWT_AQUI
        Sin token sólo puede unirse a problemas (presencia anónima).
        """
        # 1. Validar token (opcional)
        subject = None
        if token is not None:
            try:
                subject = str(decode_token(token)["sub"])
            except HTTPException:
                await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
                return

        # 2. Registrar conexión
        await websocket.accept()
        session_id = str(uuid4())
        transport.register(session_id, websocket)
        sessions.connect(session_id)

        try:
            # 3. Leer frames hasta que el cliente se vaya (o el ping/pong falle)
            while True:
                message = await websocket.receive()
                if message["type"] == "websocket.disconnect":
                    break

                raw = message.get("text")
                if raw is None:
                    # frame binario: se ignora sin tocar la sesión
                    log.warning("ws.binary_frame", session_id=session_id)
                    continue

                frame = parse_frame(raw)
                if frame is None:
                    log.warning("ws.invalid_frame", session_id=session_id)
                    continue

                event_name, data = frame
                if event_name == JOIN_USER and not may_join_user(subject, data):
                    log.warning("ws.join_user_denied", session_id=session_id, subject=subject)
                    continue

                await sessions.handle_message(session_id, event_name, data)
        except WebSocketDisconnect:
            pass
        finally:
            transport.unregister(session_id)
            await sessions.disconnect(session_id)

    return router
