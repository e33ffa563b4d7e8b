# crowdsolve/infra/servicebus_consumer.py
import asyncio
import json
from datetime import datetime, timezone
from typing import Any, Dict

import structlog
from azure.servicebus import TransportType
from azure.servicebus.aio import ServiceBusClient
from pydantic import ValidationError

from crowdsolve import config
from crowdsolve.models.queue_message import BroadcastMessage, parse_queue_message
from crowdsolve.services.content import ContentPublisher
from crowdsolve.services.notifications import NotificationService

log = structlog.get_logger()

RECONNECT_BACKOFF = 5  # segundos

_status: Dict[str, Any] = {
    "startedAt": None,
    "lastMessageAt": None,
    "lastError": None,
}


class InvalidQueueMessage(ValueError):
    """El mensaje no se puede procesar nunca: va directo a dead-letter."""


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def consumer_status() -> dict:
    return {
        **_status,
        "queue": config.SB_QUEUE,
        "hasConnectionString": bool(config.SB_CONN_STR),
    }


def decode_body(msg) -> dict:
    # >>> OJO: el body llega como iterable de bytes <<<
    body_bytes = b"".join(part for part in msg.body)
    try:
        return json.loads(body_bytes.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise InvalidQueueMessage(f"body is not JSON: {e}") from e


async def process_message(
    payload: dict,
    notifications: NotificationService,
    content: ContentPublisher,
):
    """
    Despacha un mensaje de la cola.
      {"kind": "notification", ...}  -> crea la notificación (persistencia + WS)
      {"kind": "broadcast", "event": ..., "payload": {...}} -> evento en problem:{id}
    NotificationStoreError se propaga: el mensaje no se completa y se reintenta.
    """
    try:
        msg = parse_queue_message(payload)
    except ValidationError as e:
        raise InvalidQueueMessage(str(e)) from e

    try:
        if isinstance(msg, BroadcastMessage):
            await content.publish(msg.event, msg.payload)
        elif msg.template is not None:
            await notifications.notify_from_template(msg.template, **msg.args)
        else:
            await notifications.notify(
                msg.recipientId,
                msg.senderId,
                msg.type,
                msg.title,
                msg.message,
                msg.data,
            )
    except (TypeError, ValueError) as e:
        # argumentos de plantilla o payload de evento inválidos
        raise InvalidQueueMessage(str(e)) from e


async def consume_notifications(notifications: NotificationService, content: ContentPublisher):
    """
    Consumer asíncrono de Azure Service Bus:
      - AMQP sobre WebSocket (443) para funcionar en App Service.
      - Confirma (complete) sólo si procesó OK.
      - Mensajes inválidos van a dead-letter sin reintento.
      - Reconecta con backoff si se cae.
    """
    if not config.SB_CONN_STR:
        log.warning("consumer.disabled", reason="AZURE_SERVICE_BUS_CONNECTION_STRING missing")
        return

    if not config.SB_QUEUE:
        log.warning("consumer.disabled", reason="AZURE_SERVICE_BUS_QUEUE_NAME missing")
        return

    _status["startedAt"] = _now()

    while True:
        try:
            log.info("consumer.connecting", queue=config.SB_QUEUE)
            async with ServiceBusClient.from_connection_string(
                config.SB_CONN_STR,
                transport_type=TransportType.AmqpOverWebsocket,  # clave para 443
            ) as sb_client:
                receiver = sb_client.get_queue_receiver(
                    queue_name=config.SB_QUEUE,
                    max_wait_time=20,
                )
                async with receiver:
                    log.info("consumer.listening", queue=config.SB_QUEUE)
                    while True:
                        messages = await receiver.receive_messages(
                            max_message_count=10,
                            max_wait_time=10,
                        )
                        if not messages:
                            await asyncio.sleep(0.5)
                            continue

                        for msg in messages:
                            await _handle(receiver, msg, notifications, content)

            # si sale del with sin error, pequeña pausa antes de reconectar
            await asyncio.sleep(1)

        except asyncio.CancelledError:
            log.info("consumer.stopped", queue=config.SB_QUEUE)
            raise
        except Exception as e:
            _status["lastError"] = str(e)
            log.error("consumer.connection_error", error=str(e), retry_in=RECONNECT_BACKOFF)
            await asyncio.sleep(RECONNECT_BACKOFF)


async def _handle(receiver, msg, notifications: NotificationService, content: ContentPublisher):
    try:
        payload = decode_body(msg)
        await process_message(payload, notifications, content)
    except InvalidQueueMessage as e:
        _status["lastError"] = str(e)
        log.warning("consumer.dead_lettered", error=str(e))
        await receiver.dead_letter_message(msg, reason="invalid-message", error_description=str(e)[:1024])
        return
    except Exception as e:
        # No completar => reintenta (o DLQ por MaxDeliveryCount)
        _status["lastError"] = str(e)
        log.error("consumer.processing_failed", error=str(e))
        return

    await receiver.complete_message(msg)
    _status["lastMessageAt"] = _now()
