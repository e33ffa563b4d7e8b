# crowdsolve/infra/table_client.py
from typing import List, Optional

from azure.core.exceptions import AzureError, ResourceNotFoundError
from azure.data.tables import TableClient, TableServiceClient, UpdateMode

from crowdsolve import config
from crowdsolve.models.notification import Notification


class NotificationStoreError(RuntimeError):
    """Falla de persistencia al leer/escribir notificaciones."""


class NotificationNotFound(LookupError):
    """La notificación no existe o no pertenece a ese destinatario."""


def get_table_client() -> TableClient:
    if not config.AZURE_STORAGE_CONNECTION_STRING:
        raise NotificationStoreError("AZURE_STORAGE_CONNECTION_STRING no está configurada en .env")

    service = TableServiceClient.from_connection_string(conn_str=config.AZURE_STORAGE_CONNECTION_STRING)
    return service.get_table_client(table_name=config.TABLE_NAME)


class NotificationStore:
    """
    Persistencia de notificaciones en Table Storage.
    PartitionKey = destinatario, RowKey = id de la notificación.
    """
    def __init__(self, table_client: Optional[TableClient] = None):
        self._table_client = table_client

    @property
    def table(self) -> TableClient:
        # el cliente se crea en el primer uso, no al importar
        if self._table_client is None:
            self._table_client = get_table_client()
        return self._table_client

    def insert(self, record: Notification) -> str:
        try:
            self.table.create_entity(entity=record.to_entity())
        except AzureError as e:
            raise NotificationStoreError(f"No se pudo guardar la notificación: {e}") from e
        return record.id

    def get(self, recipient_id: str, notification_id: str) -> Notification:
        try:
            entity = self.table.get_entity(partition_key=recipient_id, row_key=notification_id)
        except ResourceNotFoundError as e:
            raise NotificationNotFound(notification_id) from e
        except AzureError as e:
            raise NotificationStoreError(f"No se pudo leer la notificación: {e}") from e
        return Notification.from_entity(entity)

    def list_active(self, recipient_id: str, unread_only: bool = False) -> List[Notification]:
        """Notificaciones activas del destinatario, más nuevas primero."""
        query = "PartitionKey eq @pk and isActive eq true"
        if unread_only:
            query += " and isRead eq false"
        try:
            entities = self.table.query_entities(
                query_filter=query,
                parameters={"pk": recipient_id},
            )
            notis = [Notification.from_entity(e) for e in entities]
        except AzureError as e:
            raise NotificationStoreError(f"No se pudieron listar las notificaciones: {e}") from e

        notis.sort(key=lambda n: n.createdAt, reverse=True)
        return notis

    def find(
        self,
        recipient_id: str,
        unread_only: bool = False,
        skip: int = 0,
        limit: int = 20,
    ) -> List[Notification]:
        notis = self.list_active(recipient_id, unread_only=unread_only)
        return notis[skip:skip + limit]

    def count(self, recipient_id: str, unread_only: bool = False) -> int:
        return len(self.list_active(recipient_id, unread_only=unread_only))

    def count_unread(self, recipient_id: str) -> int:
        return self.count(recipient_id, unread_only=True)

    def update_read_state(self, recipient_id: str, notification_id: str, is_read: bool = True):
        self._merge(recipient_id, notification_id, {"isRead": is_read})

    def mark_all_read(self, recipient_id: str) -> int:
        unread = self.list_active(recipient_id, unread_only=True)
        for n in unread:
            self._merge(recipient_id, n.id, {"isRead": True})
        return len(unread)

    def soft_delete(self, recipient_id: str, notification_id: str):
        self._merge(recipient_id, notification_id, {"isActive": False})

    def _merge(self, recipient_id: str, notification_id: str, changes: dict):
        # MERGE sólo pisa las columnas enviadas; hay que mandar PartitionKey y RowKey
        entity = {"PartitionKey": recipient_id, "RowKey": notification_id, **changes}
        try:
            self.table.update_entity(entity=entity, mode=UpdateMode.MERGE)
        except ResourceNotFoundError as e:
            raise NotificationNotFound(notification_id) from e
        except AzureError as e:
            raise NotificationStoreError(f"No se pudo actualizar la notificación: {e}") from e
