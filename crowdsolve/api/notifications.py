# crowdsolve/api/notifications.py
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel

from crowdsolve import config
from crowdsolve.infra.servicebus_consumer import consumer_status
from crowdsolve.infra.table_client import NotificationNotFound, NotificationStoreError
from crowdsolve.models.notification import NotificationType
from crowdsolve.security.jwt_utils import current_user_id
from crowdsolve.services.notifications import NotificationService


def ok(data: Any, message: str = "Success") -> dict:
    # mismo sobre que ya usa el frontend
    return {"success": True, "message": message, "data": data}


def _not_found() -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Notification not found")


def _store_failed(e: Exception, what: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=f"Failed to {what}: {e}",
    )


class DevSendIn(BaseModel):
    type: NotificationType
    recipientId: Optional[str] = None
    senderId: str = "system"
    title: str
    message: str
    data: Optional[Dict[str, Any]] = None


def create_router(service: NotificationService, dev_endpoints: bool = False) -> APIRouter:
    router = APIRouter(prefix="/notifications", tags=["notifications"])

    @router.get("")
    async def list_notifications(
        page: int = Query(1, ge=1),
        limit: int = Query(config.NOTIFICATIONS_PAGE_LIMIT, ge=1, le=100),
        unread: bool = False,
        user_id: str = Depends(current_user_id),
    ):
        """Notificaciones del usuario del JWT, más nuevas primero."""
        try:
            result = service.list_notifications(user_id, page=page, limit=limit, unread_only=unread)
        except NotificationStoreError as e:
            raise _store_failed(e, "retrieve notifications")
        return ok(result, "Notifications retrieved successfully")

    @router.get("/unread-count")
    async def unread_count(user_id: str = Depends(current_user_id)):
        try:
            count = service.unread_count(user_id)
        except NotificationStoreError as e:
            raise _store_failed(e, "count notifications")
        return ok({"unreadCount": count})

    @router.get("/stats")
    async def notification_stats(user_id: str = Depends(current_user_id)):
        try:
            stats = service.stats(user_id)
        except NotificationStoreError as e:
            raise _store_failed(e, "retrieve notification stats")
        return ok(stats, "Notification stats retrieved successfully")

    @router.patch("/read-all")
    async def mark_all_as_read(user_id: str = Depends(current_user_id)):
        try:
            await service.mark_all_read(user_id)
        except NotificationStoreError as e:
            raise _store_failed(e, "mark all notifications as read")
        return ok({"unreadCount": 0}, "All notifications marked as read")

    @router.patch("/{notification_id}/read")
    async def mark_as_read(notification_id: str, user_id: str = Depends(current_user_id)):
        """Marca una notificación como leída (sólo si es del usuario del JWT)."""
        try:
            unread = await service.mark_read(user_id, notification_id)
        except NotificationNotFound:
            raise _not_found()
        except NotificationStoreError as e:
            raise _store_failed(e, "mark notification as read")
        return ok({"unreadCount": unread}, "Notification marked as read")

    @router.delete("/{notification_id}")
    async def delete_notification(notification_id: str, user_id: str = Depends(current_user_id)):
        try:
            service.delete(user_id, notification_id)
        except NotificationNotFound:
            raise _not_found()
        except NotificationStoreError as e:
            raise _store_failed(e, "delete notification")
        return ok(None, "Notification deleted successfully")

    # =========================
    # 🔎 Diagnóstico del consumer de Service Bus
    # =========================
    @router.get("/debug/consumer-status")
    async def debug_consumer_status():
        return consumer_status()

    if dev_endpoints:
        # =========================
        # 🔧 DEV-ONLY: notificación arbitraria (persistencia + WS)
        # Si no se manda recipientId, usa el del token (sub).
        # =========================
        @router.post("/dev-send")
        async def dev_send(body: DevSendIn, user_id: str = Depends(current_user_id)):
            try:
                record = await service.notify(
                    body.recipientId or user_id,
                    body.senderId,
                    body.type,
                    body.title,
                    body.message,
                    body.data,
                )
            except NotificationStoreError as e:
                raise _store_failed(e, "create notification")
            return ok(record.to_wire() if record else None, "Notification sent")

    return router
