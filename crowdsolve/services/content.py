# crowdsolve/services/content.py
from typing import Any, Dict, Union

from crowdsolve.realtime.events import (
    CONTENT_EVENTS,
    CommentDeleted,
    CommentUpdated,
    CommentUpvoteUpdated,
    EventName,
    NewComment,
    NewSolution,
    ProblemUpvoteUpdated,
    RealtimeEvent,
    SolutionAccepted,
    SolutionDeleted,
    SolutionUpdated,
    SolutionUpvoteUpdated,
    ViewCountUpdated,
)
from crowdsolve.realtime.fanout import EventFanOut
from crowdsolve.realtime.topics import problem_topic


class ContentPublisher:
    """
    Broadcasts de contenido a problem:{id}.
    Se llaman DESPUÉS de que la mutación del servicio dueño se confirmó.
    """
    def __init__(self, fanout: EventFanOut):
        self._fanout = fanout

    async def _send(self, event: RealtimeEvent) -> int:
        return await self._fanout.emit(problem_topic(event.problemId), event)

    async def publish(self, event_name: Union[EventName, str], payload: Dict[str, Any]) -> int:
        """
        Valida un payload crudo contra el modelo del evento y lo publica.
        Lanza ValueError si el evento no es de contenido, o ValidationError.
        """
        try:
            model = CONTENT_EVENTS[EventName(event_name)]
        except (KeyError, ValueError):
            raise ValueError(f"unsupported content event: {event_name}") from None
        return await self._send(model(**payload))

    async def new_comment(self, comment: Dict[str, Any], solution_id: str, problem_id: str):
        return await self._send(NewComment(comment=comment, solutionId=solution_id, problemId=problem_id))

    async def comment_updated(self, comment: Dict[str, Any], solution_id: str, problem_id: str):
        return await self._send(CommentUpdated(comment=comment, solutionId=solution_id, problemId=problem_id))

    async def comment_deleted(self, comment_id: str, solution_id: str, problem_id: str):
        return await self._send(CommentDeleted(commentId=comment_id, solutionId=solution_id, problemId=problem_id))

    async def new_solution(self, solution: Dict[str, Any], problem_id: str):
        return await self._send(NewSolution(solution=solution, problemId=problem_id))

    async def solution_updated(self, solution: Dict[str, Any], problem_id: str):
        return await self._send(SolutionUpdated(solution=solution, problemId=problem_id))

    async def solution_deleted(self, solution_id: str, problem_id: str):
        return await self._send(SolutionDeleted(solutionId=solution_id, problemId=problem_id))

    async def solution_accepted(self, solution_id: str, problem_id: str):
        return await self._send(SolutionAccepted(solutionId=solution_id, problemId=problem_id))

    async def problem_upvote_updated(self, problem_id: str, upvote_count: int, has_upvoted: bool):
        return await self._send(
            ProblemUpvoteUpdated(problemId=problem_id, upvoteCount=upvote_count, hasUpvoted=has_upvoted)
        )

    async def solution_upvote_updated(self, solution_id: str, upvote_count: int, has_upvoted: bool, problem_id: str):
        return await self._send(
            SolutionUpvoteUpdated(
                solutionId=solution_id,
                upvoteCount=upvote_count,
                hasUpvoted=has_upvoted,
                problemId=problem_id,
            )
        )

    async def comment_upvote_updated(
        self,
        comment_id: str,
        upvote_count: int,
        has_upvoted: bool,
        solution_id: str,
        problem_id: str,
    ):
        return await self._send(
            CommentUpvoteUpdated(
                commentId=comment_id,
                upvoteCount=upvote_count,
                hasUpvoted=has_upvoted,
                solutionId=solution_id,
                problemId=problem_id,
            )
        )

    async def view_count_updated(self, problem_id: str, views: int):
        return await self._send(ViewCountUpdated(problemId=problem_id, views=views))
