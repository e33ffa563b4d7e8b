# crowdsolve/realtime/events.py
"""
Contrato de eventos en tiempo real.

Un modelo por nombre de evento; los nombres de campo son exactamente los que
ya consume el frontend, no renombrar.
"""
from enum import Enum
from typing import Any, ClassVar, Dict, Optional, Type

from pydantic import BaseModel

from crowdsolve.models.notification import Notification


class EventName(str, Enum):
    ACTIVE_VIEWERS_UPDATED = "active-viewers-updated"
    NEW_COMMENT = "new-comment"
    COMMENT_UPDATED = "comment-updated"
    COMMENT_DELETED = "comment-deleted"
    NEW_SOLUTION = "new-solution"
    SOLUTION_UPDATED = "solution-updated"
    SOLUTION_DELETED = "solution-deleted"
    SOLUTION_ACCEPTED = "solution-accepted"
    UPVOTE_UPDATED = "upvote-updated"
    SOLUTION_UPVOTE_UPDATED = "solution-upvote-updated"
    COMMENT_UPVOTE_UPDATED = "comment-upvote-updated"
    VIEW_COUNT_UPDATED = "view-count-updated"
    NEW_NOTIFICATION = "new-notification"
    NOTIFICATION_READ = "notification-read"
    ALL_NOTIFICATIONS_READ = "all-notifications-read"


class RealtimeEvent(BaseModel):
    event_name: ClassVar[EventName]

    def to_payload(self) -> Dict[str, Any]:
        return self.model_dump(mode="json")


# ---------- presencia ----------

class ActiveViewersUpdated(RealtimeEvent):
    event_name: ClassVar[EventName] = EventName.ACTIVE_VIEWERS_UPDATED
    problemId: str
    activeViewers: int


# ---------- comentarios ----------

class NewComment(RealtimeEvent):
    event_name: ClassVar[EventName] = EventName.NEW_COMMENT
    comment: Dict[str, Any]
    solutionId: str
    problemId: str


class CommentUpdated(NewComment):
    event_name: ClassVar[EventName] = EventName.COMMENT_UPDATED


class CommentDeleted(RealtimeEvent):
    event_name: ClassVar[EventName] = EventName.COMMENT_DELETED
    commentId: str
    solutionId: str
    problemId: str


# ---------- soluciones ----------

class NewSolution(RealtimeEvent):
    event_name: ClassVar[EventName] = EventName.NEW_SOLUTION
    solution: Dict[str, Any]
    problemId: str


class SolutionUpdated(NewSolution):
    event_name: ClassVar[EventName] = EventName.SOLUTION_UPDATED


class SolutionDeleted(RealtimeEvent):
    event_name: ClassVar[EventName] = EventName.SOLUTION_DELETED
    solutionId: str
    problemId: str


class SolutionAccepted(SolutionDeleted):
    event_name: ClassVar[EventName] = EventName.SOLUTION_ACCEPTED


# ---------- votos / vistas ----------

class ProblemUpvoteUpdated(RealtimeEvent):
    event_name: ClassVar[EventName] = EventName.UPVOTE_UPDATED
    problemId: str
    upvoteCount: int
    hasUpvoted: bool


class SolutionUpvoteUpdated(RealtimeEvent):
    event_name: ClassVar[EventName] = EventName.SOLUTION_UPVOTE_UPDATED
    solutionId: str
    upvoteCount: int
    hasUpvoted: bool
    problemId: str


class CommentUpvoteUpdated(RealtimeEvent):
    event_name: ClassVar[EventName] = EventName.COMMENT_UPVOTE_UPDATED
    commentId: str
    upvoteCount: int
    hasUpvoted: bool
    solutionId: str
    problemId: str


class ViewCountUpdated(RealtimeEvent):
    event_name: ClassVar[EventName] = EventName.VIEW_COUNT_UPDATED
    problemId: str
    views: int


# ---------- notificaciones (canal user:{id}) ----------

class NewNotification(RealtimeEvent):
    event_name: ClassVar[EventName] = EventName.NEW_NOTIFICATION
    notification: Notification

    def to_payload(self) -> Dict[str, Any]:
        # el cliente recibe el registro completo, sin envoltorio
        return self.notification.to_wire()


class NotificationRead(RealtimeEvent):
    event_name: ClassVar[EventName] = EventName.NOTIFICATION_READ
    notificationId: Optional[str] = None
    unreadCount: int


class AllNotificationsRead(RealtimeEvent):
    event_name: ClassVar[EventName] = EventName.ALL_NOTIFICATIONS_READ
    unreadCount: int = 0


# eventos de contenido que otros servicios pueden pedir publicar en problem:{id}
CONTENT_EVENTS: Dict[EventName, Type[RealtimeEvent]] = {
    model.event_name: model
    for model in (
        NewComment,
        CommentUpdated,
        CommentDeleted,
        NewSolution,
        SolutionUpdated,
        SolutionDeleted,
        SolutionAccepted,
        ProblemUpvoteUpdated,
        SolutionUpvoteUpdated,
        CommentUpvoteUpdated,
        ViewCountUpdated,
    )
}
