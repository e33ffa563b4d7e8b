# crowdsolve/realtime/sessions.py
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Set

import structlog

from crowdsolve.realtime.membership import RoomMembershipTable
from crowdsolve.realtime.presence import PresenceCounter
from crowdsolve.realtime.topics import (
    is_problem_topic,
    problem_id_of,
    problem_topic,
    user_topic,
)

log = structlog.get_logger()

JOIN_USER = "join-user"
JOIN_PROBLEM = "join-problem"
LEAVE_PROBLEM = "leave-problem"


class SessionState(str, Enum):
    CONNECTED = "connected"
    IDENTIFIED = "identified"
    DISCONNECTED = "disconnected"


@dataclass
class Session:
    session_id: str
    user_id: Optional[str] = None
    topics: Set[str] = field(default_factory=set)
    state: SessionState = SessionState.CONNECTED


class SessionLifecycleHandler:
    """
    Reacciona a connect/disconnect y a los join/leave del cliente.

    Cada transición es una mutación síncrona de la tabla seguida de un
    fan-out; ninguna transición se suspende a mitad de la mutación.
    Es el único dueño de la RoomMembershipTable.
    """
    def __init__(self, membership: RoomMembershipTable, presence: PresenceCounter):
        self._membership = membership
        self._presence = presence
        self.sessions: Dict[str, Session] = {}

    def get(self, session_id: str) -> Optional[Session]:
        return self.sessions.get(session_id)

    def connect(self, session_id: str) -> Session:
        session = Session(session_id=session_id)
        self.sessions[session_id] = session
        log.info("session.connected", session_id=session_id)
        return session

    def join_user(self, session_id: str, user_id: str) -> Optional[Session]:
        session = self.sessions.get(session_id)
        if session is None:
            log.warning("session.unknown", session_id=session_id, event_name=JOIN_USER)
            return None

        topic = user_topic(user_id)
        if session.user_id == str(user_id) and topic in session.topics:
            return session

        # re-identificación con otro usuario: salir antes del canal anterior
        if session.user_id is not None:
            previous = user_topic(session.user_id)
            self._membership.leave(previous, session_id)
            session.topics.discard(previous)
            log.info("session.user_rebound", session_id=session_id, previous=session.user_id, user_id=user_id)

        self._membership.join(topic, session_id)
        session.topics.add(topic)
        session.user_id = str(user_id)
        session.state = SessionState.IDENTIFIED
        log.info("session.joined_user", session_id=session_id, user_id=session.user_id)
        return session

    async def join_problem(self, session_id: str, problem_id: str) -> Optional[int]:
        session = self.sessions.get(session_id)
        if session is None:
            log.warning("session.unknown", session_id=session_id, event_name=JOIN_PROBLEM)
            return None

        topic = problem_topic(problem_id)
        self._membership.join(topic, session_id)
        session.topics.add(topic)
        log.info("session.joined_problem", session_id=session_id, problem_id=problem_id)
        return await self._presence.publish(str(problem_id))

    async def leave_problem(self, session_id: str, problem_id: str) -> Optional[int]:
        session = self.sessions.get(session_id)
        if session is None:
            log.warning("session.unknown", session_id=session_id, event_name=LEAVE_PROBLEM)
            return None

        topic = problem_topic(problem_id)
        self._membership.leave(topic, session_id)
        session.topics.discard(topic)
        log.info("session.left_problem", session_id=session_id, problem_id=problem_id)
        return await self._presence.publish(str(problem_id))

    async def disconnect(self, session_id: str) -> None:
        session = self.sessions.pop(session_id, None)
        if session is None:
            return

        # user:{id} sale aquí también, sin broadcast de conteo (canal privado)
        changed = self._membership.remove_session_everywhere(session_id)
        session.topics.clear()
        session.state = SessionState.DISCONNECTED
        log.info("session.disconnected", session_id=session_id, user_id=session.user_id, topics=len(changed))

        for topic in changed:
            if is_problem_topic(topic):
                await self._presence.publish(problem_id_of(topic))

    async def handle_message(self, session_id: str, event_name: str, data: Any) -> None:
        """
        Despacha un mensaje entrante del cliente.
        Mensajes mal formados (evento desconocido, id faltante) se ignoran.
        """
        try:
            if event_name == JOIN_USER:
                self.join_user(session_id, extract_id(data, "userId"))
            elif event_name == JOIN_PROBLEM:
                await self.join_problem(session_id, extract_id(data, "problemId"))
            elif event_name == LEAVE_PROBLEM:
                await self.leave_problem(session_id, extract_id(data, "problemId"))
            else:
                log.warning("session.unknown_event", session_id=session_id, event_name=event_name)
        except ValueError as e:
            log.warning("session.malformed_request", session_id=session_id, event_name=event_name, error=str(e))


def extract_id(data: Any, key: str) -> str:
    # el cliente puede mandar el id suelto o {"problemId": "..."}
    if isinstance(data, dict):
        data = data.get(key)
    if data is None or isinstance(data, (dict, list, bool)):
        raise ValueError(f"{key} is required")
    value = str(data).strip()
    if not value:
        raise ValueError(f"{key} is required")
    return value
