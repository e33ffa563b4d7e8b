# crowdsolve/realtime/fanout.py
import asyncio
from typing import Any, Dict

import structlog

from crowdsolve.realtime.events import RealtimeEvent
from crowdsolve.realtime.membership import RoomMembershipTable
from crowdsolve.realtime.transport import Transport

log = structlog.get_logger()


class EventFanOut:
    """
    Envía un evento a TODAS las sesiones suscritas a un topic.

    Best-effort: sin ack ni reintentos. Si un envío falla se trata igual que
    una sesión ausente y se sigue con el resto.
    Los broadcasts a un mismo topic se serializan para que los clientes los
    vean en el orden en que se dispararon.
    """
    def __init__(self, membership: RoomMembershipTable, transport: Transport):
        self._membership = membership
        self._transport = transport
        self._locks: Dict[str, asyncio.Lock] = {}
        self._pending: Dict[str, int] = {}

    async def broadcast(self, topic: str, event_name: str, payload: Dict[str, Any]) -> int:
        """Devuelve cuántas sesiones recibieron el evento."""
        event_name = getattr(event_name, "value", event_name)

        lock = self._locks.get(topic)
        if lock is None:
            lock = self._locks[topic] = asyncio.Lock()
        self._pending[topic] = self._pending.get(topic, 0) + 1
        try:
            async with lock:
                return await self._deliver(topic, event_name, payload)
        finally:
            self._pending[topic] -= 1
            if not self._pending[topic]:
                del self._pending[topic]
                del self._locks[topic]

    async def emit(self, topic: str, event: RealtimeEvent) -> int:
        return await self.broadcast(topic, event.event_name.value, event.to_payload())

    async def _deliver(self, topic: str, event_name: str, payload: Dict[str, Any]) -> int:
        members = self._membership.members(topic)
        if not members:
            # topic sin miembros: no-op silencioso
            return 0

        delivered = 0
        for session_id in sorted(members):
            try:
                await self._transport.send(session_id, event_name, payload)
                delivered += 1
            except Exception as e:
                log.warning(
                    "fanout.send_failed",
                    topic=topic,
                    event_name=event_name,
                    session_id=session_id,
                    error=str(e),
                )
        log.debug("fanout.broadcast", topic=topic, event_name=event_name, delivered=delivered)
        return delivered
