# crowdsolve/realtime/presence.py
from crowdsolve.realtime.events import ActiveViewersUpdated
from crowdsolve.realtime.fanout import EventFanOut
from crowdsolve.realtime.membership import RoomMembershipTable
from crowdsolve.realtime.topics import problem_topic


class PresenceCounter:
    """
    Sin estado propio: lee el conteo de la tabla justo después de cada
    join/leave sobre un problem:* y lo publica en ese mismo topic.
    Los canales user:* no tienen presencia.
    """
    def __init__(self, membership: RoomMembershipTable, fanout: EventFanOut):
        self._membership = membership
        self._fanout = fanout

    async def publish(self, problem_id: str) -> int:
        topic = problem_topic(problem_id)
        # leer el conteo ANTES de cualquier await: es el snapshot de esta mutación
        count = self._membership.member_count(topic)
        await self._fanout.emit(topic, ActiveViewersUpdated(problemId=problem_id, activeViewers=count))
        return count
