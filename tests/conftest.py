"""
Shared fixtures: in-memory notification store, recording transport and a
fully wired realtime graph.
"""

from __future__ import annotations

import jwt
import pytest

from crowdsolve import config
from crowdsolve.infra.table_client import NotificationNotFound, NotificationStoreError
from crowdsolve.models.notification import Notification
from crowdsolve.realtime.fanout import EventFanOut
from crowdsolve.realtime.membership import RoomMembershipTable
from crowdsolve.realtime.presence import PresenceCounter
from crowdsolve.realtime.sessions import SessionLifecycleHandler
from crowdsolve.services.content import ContentPublisher
from crowdsolve.services.notifications import NotificationService


class InMemoryNotificationStore:
    """Same surface as NotificationStore, backed by a dict."""

    def __init__(self):
        self.rows: dict[tuple[str, str], Notification] = {}
        self.fail_inserts = False

    def insert(self, record: Notification) -> str:
        if self.fail_inserts:
            raise NotificationStoreError("table unavailable")
        self.rows[(record.recipient, record.id)] = record.model_copy()
        return record.id

    def get(self, recipient_id, notification_id):
        try:
            return self.rows[(recipient_id, notification_id)]
        except KeyError:
            raise NotificationNotFound(notification_id) from None

    def list_active(self, recipient_id, unread_only=False):
        notis = [
            n for (pk, _), n in self.rows.items()
            if pk == recipient_id and n.isActive and not (unread_only and n.isRead)
        ]
        notis.sort(key=lambda n: n.createdAt, reverse=True)
        return notis

    def find(self, recipient_id, unread_only=False, skip=0, limit=20):
        return self.list_active(recipient_id, unread_only)[skip:skip + limit]

    def count(self, recipient_id, unread_only=False):
        return len(self.list_active(recipient_id, unread_only))

    def count_unread(self, recipient_id):
        return self.count(recipient_id, unread_only=True)

    def update_read_state(self, recipient_id, notification_id, is_read=True):
        self.get(recipient_id, notification_id).isRead = is_read

    def mark_all_read(self, recipient_id):
        unread = self.list_active(recipient_id, unread_only=True)
        for n in unread:
            n.isRead = True
        return len(unread)

    def soft_delete(self, recipient_id, notification_id):
        self.get(recipient_id, notification_id).isActive = False


class RecordingTransport:
    """Collects every (session_id, event, payload) sent; can fail per session."""

    def __init__(self):
        self.sent: list[tuple[str, str, dict]] = []
        self.failing: set[str] = set()

    async def send(self, session_id, event_name, payload):
        if session_id in self.failing:
            raise ConnectionError(f"socket for {session_id} is gone")
        self.sent.append((session_id, event_name, payload))

    def events_for(self, session_id):
        return [(e, p) for s, e, p in self.sent if s == session_id]

    def named(self, event_name):
        return [(s, p) for s, e, p in self.sent if e == event_name]


class Realtime:
    def __init__(self):
        self.membership = RoomMembershipTable()
        self.transport = RecordingTransport()
        self.fanout = EventFanOut(self.membership, self.transport)
        self.presence = PresenceCounter(self.membership, self.fanout)
        self.sessions = SessionLifecycleHandler(self.membership, self.presence)
        self.store = InMemoryNotificationStore()
        self.notifications = NotificationService(self.store, self.fanout)
        self.content = ContentPublisher(self.fanout)


@pytest.fixture
def rt():
    return Realtime()


@pytest.fixture
def store():
    return InMemoryNotificationStore()


def make_token(sub: str) -> str:
    return jwt.encode({"sub": sub}, config.JWT_SECRET, algorithm=config.JWT_ALG)


@pytest.fixture
def token_for():
    return make_token
