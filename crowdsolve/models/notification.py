# crowdsolve/models/notification.py
import json
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional
from uuid import uuid4

from pydantic import BaseModel, Field


class NotificationType(str, Enum):
    NEW_SOLUTION = "new_solution"            # alguien publicó una solución a tu problema
    NEW_COMMENT = "new_comment"              # alguien comentó tu solución
    SOLUTION_UPVOTED = "solution_upvoted"
    COMMENT_UPVOTED = "comment_upvoted"
    COMMENT_REPLY = "comment_reply"          # respuesta a tu comentario
    PROBLEM_UPVOTED = "problem_upvoted"
    SOLUTION_ACCEPTED = "solution_accepted"  # tu solución fue marcada como la mejor
    MENTION = "mention"
    FOLLOW = "follow"


class NotificationData(BaseModel):
    problemId: Optional[str] = None
    solutionId: Optional[str] = None
    commentId: Optional[str] = None
    url: Optional[str] = None


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class Notification(BaseModel):
    id: str = Field(default_factory=lambda: str(uuid4()))
    recipient: str
    sender: str
    type: NotificationType
    title: str = Field(max_length=100)
    message: str = Field(max_length=500)
    data: NotificationData = Field(default_factory=NotificationData)
    isRead: bool = False
    isActive: bool = True
    createdAt: str = Field(default_factory=_now)

    def to_wire(self) -> Dict[str, Any]:
        """Forma que recibe el cliente (REST y evento new-notification)."""
        return self.model_dump(mode="json")

    def to_entity(self) -> Dict[str, Any]:
        """
        Fila de Table Storage.
        PartitionKey = destinatario, RowKey = id de la notificación.
        'data' se guarda como JSON string (Table Storage no acepta dicts).
        """
        return {
            "PartitionKey": self.recipient,
            "RowKey": self.id,
            "sender": self.sender,
            "type": self.type.value,
            "title": self.title,
            "message": self.message,
            "data": self.data.model_dump_json(exclude_none=True),
            "isRead": self.isRead,
            "isActive": self.isActive,
            "createdAt": self.createdAt,
        }

    @classmethod
    def from_entity(cls, entity: Dict[str, Any]) -> "Notification":
        raw = entity.get("data") or "{}"
        data = json.loads(raw) if isinstance(raw, str) else raw
        return cls(
            id=entity["RowKey"],
            recipient=entity["PartitionKey"],
            sender=entity.get("sender", ""),
            type=entity["type"],
            title=entity.get("title", ""),
            message=entity.get("message", ""),
            data=NotificationData(**data),
            # si la fila no trae 'isRead' se cuenta como NO leída
            isRead=bool(entity.get("isRead", False)),
            isActive=bool(entity.get("isActive", True)),
            createdAt=entity.get("createdAt") or _now(),
        )
