# crowdsolve/models/queue_message.py
from typing import Annotated, Any, Dict, Literal, Optional, Union

from pydantic import BaseModel, Field, TypeAdapter, model_validator

from crowdsolve.models.notification import NotificationType


class NotificationMessage(BaseModel):
    """
    Pedido de notificación que publican los servicios de problemas,
    soluciones y comentarios después de confirmar su propia mutación.

    Con 'template' se usa la plantilla del tipo y 'args' son sus argumentos;
    sin plantilla se mandan title/message/data ya armados.
    """
    kind: Literal["notification"] = "notification"
    template: Optional[NotificationType] = None
    args: Dict[str, Any] = Field(default_factory=dict)

    recipientId: Optional[str] = None
    senderId: Optional[str] = None
    type: Optional[NotificationType] = None
    title: Optional[str] = None
    message: Optional[str] = None
    data: Optional[Dict[str, Any]] = None

    @model_validator(mode="after")
    def _check_shape(self):
        if self.template is None:
            missing = [
                name for name in ("recipientId", "senderId", "type", "title", "message")
                if getattr(self, name) in (None, "")
            ]
            if missing:
                raise ValueError(f"missing fields: {', '.join(missing)}")
        return self


class BroadcastMessage(BaseModel):
    kind: Literal["broadcast"]
    event: str
    payload: Dict[str, Any]


QueueMessage = Annotated[Union[NotificationMessage, BroadcastMessage], Field(discriminator="kind")]

queue_message_adapter = TypeAdapter(QueueMessage)


def parse_queue_message(payload: Dict[str, Any]) -> Union[NotificationMessage, BroadcastMessage]:
    # mensajes viejos sin 'kind' son notificaciones
    if isinstance(payload, dict) and "kind" not in payload:
        payload = {**payload, "kind": "notification"}
    return queue_message_adapter.validate_python(payload)
