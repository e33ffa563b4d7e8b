# crowdsolve/services/notifications.py
import math
from typing import Any, Dict, Optional, Union

import structlog

from crowdsolve.models.notification import Notification, NotificationData, NotificationType
from crowdsolve.realtime.events import AllNotificationsRead, NewNotification, NotificationRead
from crowdsolve.realtime.fanout import EventFanOut
from crowdsolve.realtime.topics import user_topic

log = structlog.get_logger()

TITLE_MAX = 100
MESSAGE_MAX = 500


def _clip(text: str, limit: int) -> str:
    if len(text) <= limit:
        return text
    return text[:limit - 1] + "…"


class NotificationService:
    """
    Crea notificaciones (persistencia + push por WebSocket) y expone el
    camino de lectura para REST.

    El push es oportunista: si el destinatario no tiene sesión activa el
    evento se pierde, pero el registro queda en el store.
    """
    def __init__(self, store, fanout: EventFanOut):
        self._store = store
        self._fanout = fanout

    async def notify(
        self,
        recipient_id: str,
        sender_id: str,
        type: Union[NotificationType, str],
        title: str,
        message: str,
        data: Optional[Union[NotificationData, Dict[str, Any]]] = None,
    ) -> Optional[Notification]:
        """
        Devuelve None (sin guardar ni enviar) si recipient == sender.
        Lanza NotificationStoreError si falla la persistencia.
        """
        if str(recipient_id) == str(sender_id):
            log.info("notification.self_skipped", user_id=str(recipient_id), type=str(type))
            return None

        if isinstance(data, dict):
            data = NotificationData(**data)

        record = Notification(
            recipient=str(recipient_id),
            sender=str(sender_id),
            type=NotificationType(type),
            title=_clip(title, TITLE_MAX),
            message=_clip(message, MESSAGE_MAX),
            data=data or NotificationData(),
        )

        # 1. Persistir
        self._store.insert(record)
        log.info("notification.created", id=record.id, recipient=record.recipient, type=record.type.value)

        # 2. Enviar por WebSocket (si está conectado)
        await self._fanout.emit(user_topic(record.recipient), NewNotification(notification=record))
        return record

    # =========================
    # Plantillas por tipo
    # =========================

    async def notify_new_solution(self, recipient_id, sender_id, sender_name, problem_id, problem_title, solution_id):
        return await self.notify(
            recipient_id,
            sender_id,
            NotificationType.NEW_SOLUTION,
            "New Solution to Your Problem",
            f'{sender_name} posted a solution to "{problem_title}"',
            NotificationData(
                problemId=str(problem_id),
                solutionId=str(solution_id),
                url=f"/problems/{problem_id}",
            ),
        )

    async def notify_new_comment(self, recipient_id, sender_id, sender_name, problem_id, solution_id, comment_id):
        return await self.notify(
            recipient_id,
            sender_id,
            NotificationType.NEW_COMMENT,
            "New Comment on Your Solution",
            f"{sender_name} commented on your solution",
            NotificationData(
                problemId=str(problem_id),
                solutionId=str(solution_id),
                commentId=str(comment_id),
                url=f"/problems/{problem_id}#comment-{comment_id}",
            ),
        )

    async def notify_comment_reply(self, recipient_id, sender_id, sender_name, problem_id, solution_id, reply_id):
        return await self.notify(
            recipient_id,
            sender_id,
            NotificationType.COMMENT_REPLY,
            "Someone Replied to Your Comment",
            f"{sender_name} replied to your comment",
            NotificationData(
                problemId=str(problem_id),
                solutionId=str(solution_id),
                commentId=str(reply_id),
                url=f"/problems/{problem_id}#comment-{reply_id}",
            ),
        )

    async def notify_problem_upvoted(self, recipient_id, sender_id, sender_name, problem_id, problem_title):
        return await self.notify(
            recipient_id,
            sender_id,
            NotificationType.PROBLEM_UPVOTED,
            "Your Problem Was Upvoted",
            f'{sender_name} upvoted your problem "{problem_title}"',
            NotificationData(problemId=str(problem_id), url=f"/problems/{problem_id}"),
        )

    async def notify_solution_upvoted(self, recipient_id, sender_id, sender_name, problem_id, solution_id):
        return await self.notify(
            recipient_id,
            sender_id,
            NotificationType.SOLUTION_UPVOTED,
            "Your Solution Was Upvoted",
            f"{sender_name} upvoted your solution",
            NotificationData(
                problemId=str(problem_id),
                solutionId=str(solution_id),
                url=f"/problems/{problem_id}",
            ),
        )

    async def notify_comment_upvoted(self, recipient_id, sender_id, sender_name, problem_id, solution_id, comment_id):
        return await self.notify(
            recipient_id,
            sender_id,
            NotificationType.COMMENT_UPVOTED,
            "Your Comment Was Upvoted",
            f"{sender_name} upvoted your comment",
            NotificationData(
                problemId=str(problem_id),
                solutionId=str(solution_id),
                commentId=str(comment_id),
                url=f"/problems/{problem_id}#comment-{comment_id}",
            ),
        )

    async def notify_solution_accepted(self, recipient_id, sender_id, sender_name, problem_id, solution_id):
        return await self.notify(
            recipient_id,
            sender_id,
            NotificationType.SOLUTION_ACCEPTED,
            "Your Solution Was Accepted!",
            f"{sender_name} marked your solution as the best answer",
            NotificationData(
                problemId=str(problem_id),
                solutionId=str(solution_id),
                url=f"/problems/{problem_id}",
            ),
        )

    async def notify_from_template(self, template: NotificationType, **kwargs) -> Optional[Notification]:
        name = TEMPLATES.get(NotificationType(template))
        if name is None:
            # mention / follow no tienen plantilla: hay que mandar el mensaje crudo
            raise ValueError(f"no template for {NotificationType(template).value}")
        return await getattr(self, name)(**kwargs)

    # =========================
    # Lectura / estado
    # =========================

    def list_notifications(self, user_id: str, page: int = 1, limit: int = 20, unread_only: bool = False) -> dict:
        page = max(page, 1)
        limit = max(limit, 1)
        skip = (page - 1) * limit

        notis = self._store.find(user_id, unread_only=unread_only, skip=skip, limit=limit)
        total = self._store.count(user_id, unread_only=unread_only)
        unread = self._store.count_unread(user_id)
        total_pages = math.ceil(total / limit)

        return {
            "notifications": [n.to_wire() for n in notis],
            "unreadCount": unread,
            "pagination": {
                "currentPage": page,
                "totalPages": total_pages,
                "totalNotifications": total,
                "hasNext": page < total_pages,
                "hasPrev": page > 1,
            },
        }

    def unread_count(self, user_id: str) -> int:
        return self._store.count_unread(user_id)

    async def mark_read(self, user_id: str, notification_id: str) -> int:
        # get() lanza NotificationNotFound si no es del usuario
        self._store.get(user_id, notification_id)
        self._store.update_read_state(user_id, notification_id, True)
        unread = self._store.count_unread(user_id)

        await self._fanout.emit(
            user_topic(user_id),
            NotificationRead(notificationId=notification_id, unreadCount=unread),
        )
        return unread

    async def mark_all_read(self, user_id: str) -> int:
        updated = self._store.mark_all_read(user_id)
        log.info("notification.all_read", user_id=user_id, updated=updated)
        await self._fanout.emit(user_topic(user_id), AllNotificationsRead(unreadCount=0))
        return updated

    def delete(self, user_id: str, notification_id: str):
        self._store.get(user_id, notification_id)
        self._store.soft_delete(user_id, notification_id)
        log.info("notification.deleted", id=notification_id, user_id=user_id)

    def stats(self, user_id: str) -> dict:
        notis = self._store.list_active(user_id)
        by_type: Dict[str, Dict[str, int]] = {}
        unread = 0
        for n in notis:
            bucket = by_type.setdefault(n.type.value, {"total": 0, "unread": 0})
            bucket["total"] += 1
            if not n.isRead:
                bucket["unread"] += 1
                unread += 1
        return {"total": len(notis), "unread": unread, "byType": by_type}


TEMPLATES = {
    NotificationType.NEW_SOLUTION: "notify_new_solution",
    NotificationType.NEW_COMMENT: "notify_new_comment",
    NotificationType.COMMENT_REPLY: "notify_comment_reply",
    NotificationType.PROBLEM_UPVOTED: "notify_problem_upvoted",
    NotificationType.SOLUTION_UPVOTED: "notify_solution_upvoted",
    NotificationType.COMMENT_UPVOTED: "notify_comment_upvoted",
    NotificationType.SOLUTION_ACCEPTED: "notify_solution_accepted",
}
