# crowdsolve/realtime/transport.py
from typing import Any, Dict, Protocol

from fastapi import WebSocket


class SessionNotConnected(Exception):
    """La sesión ya no tiene un socket registrado."""


class Transport(Protocol):
    async def send(self, session_id: str, event_name: str, payload: Dict[str, Any]) -> None:
        ...


class WebSocketTransport:
    """
    Mantiene los sockets abiertos por sesión.
    session_id -> WebSocket

    Cada frame sale como {"event": <nombre>, "data": <payload>}.
    """
    def __init__(self):
        self.active_connections: Dict[str, WebSocket] = {}

    def register(self, session_id: str, websocket: WebSocket):
        self.active_connections[session_id] = websocket

    def unregister(self, session_id: str):
        self.active_connections.pop(session_id, None)

    def is_connected(self, session_id: str) -> bool:
        return session_id in self.active_connections

    async def send(self, session_id: str, event_name: str, payload: Dict[str, Any]) -> None:
        ws = self.active_connections.get(session_id)
        if ws is None:
            raise SessionNotConnected(session_id)
        await ws.send_json({"event": event_name, "data": payload})
