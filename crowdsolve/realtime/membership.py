# crowdsolve/realtime/membership.py
from typing import Dict, FrozenSet, List, Set


class RoomMembershipTable:
    """
    Mantiene qué sesiones están suscritas a cada topic.
    topic -> set(session_id)

    Un topic sin miembros se elimina de la tabla (no quedan sets vacíos).
    Sólo el SessionLifecycleHandler la modifica.
    """
    def __init__(self):
        self._rooms: Dict[str, Set[str]] = {}

    def join(self, topic: str, session_id: str) -> bool:
        """Agrega la sesión al topic. Devuelve True si cambió el conteo."""
        if topic not in self._rooms:
            self._rooms[topic] = set()
        members = self._rooms[topic]
        if session_id in members:
            return False
        members.add(session_id)
        return True

    def leave(self, topic: str, session_id: str) -> bool:
        """Quita la sesión del topic. Devuelve True si cambió el conteo."""
        members = self._rooms.get(topic)
        if not members or session_id not in members:
            return False
        members.discard(session_id)
        if not members:
            del self._rooms[topic]
        return True

    def member_count(self, topic: str) -> int:
        return len(self._rooms.get(topic, ()))

    def members(self, topic: str) -> FrozenSet[str]:
        # snapshot: el fan-out itera sobre esto mientras la tabla sigue cambiando
        return frozenset(self._rooms.get(topic, ()))

    def remove_session_everywhere(self, session_id: str) -> List[str]:
        """
        Quita la sesión de todos los topics y borra los que quedan vacíos.
        Devuelve los topics cuyo conteo cambió (para el fan-out de presencia).
        """
        changed = []
        for topic in list(self._rooms.keys()):
            if self.leave(topic, session_id):
                changed.append(topic)
        return changed

    def topics(self) -> List[str]:
        return list(self._rooms.keys())

    def __contains__(self, topic: str) -> bool:
        return topic in self._rooms

    def __len__(self) -> int:
        return len(self._rooms)
