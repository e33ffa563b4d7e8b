"""
Tests for event fan-out: delivery, failure isolation and per-topic ordering.
"""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, patch

import pytest

from crowdsolve.realtime.events import EventName, ViewCountUpdated
from crowdsolve.realtime.fanout import EventFanOut
from crowdsolve.realtime.membership import RoomMembershipTable
from crowdsolve.realtime.transport import SessionNotConnected, WebSocketTransport


class TestEventFanOut:
    @pytest.mark.asyncio
    async def test_empty_topic_is_silent_noop(self, rt):
        delivered = await rt.fanout.broadcast("problem:nobody", "view-count-updated", {"x": 1})
        assert delivered == 0
        assert rt.transport.sent == []

    @pytest.mark.asyncio
    async def test_delivers_to_every_member_only(self, rt):
        rt.membership.join("problem:P", "s1")
        rt.membership.join("problem:P", "s2")
        rt.membership.join("problem:Q", "s3")

        delivered = await rt.fanout.emit("problem:P", ViewCountUpdated(problemId="P", views=7))

        assert delivered == 2
        assert sorted(s for s, _, _ in rt.transport.sent) == ["s1", "s2"]
        assert rt.transport.sent[0][1] == "view-count-updated"
        assert rt.transport.sent[0][2] == {"problemId": "P", "views": 7}

    @pytest.mark.asyncio
    async def test_enum_event_names_are_sent_as_text(self, rt):
        rt.membership.join("problem:P", "s1")
        await rt.fanout.broadcast("problem:P", EventName.VIEW_COUNT_UPDATED, {"problemId": "P", "views": 1})
        assert rt.transport.sent[0][1] == "view-count-updated"

    @pytest.mark.asyncio
    async def test_failed_send_does_not_abort_broadcast(self, rt):
        for sid in ("s1", "s2", "s3"):
            rt.membership.join("problem:P", sid)
        rt.transport.failing.add("s2")

        delivered = await rt.fanout.broadcast("problem:P", "view-count-updated", {"problemId": "P", "views": 1})

        assert delivered == 2
        assert sorted(s for s, _, _ in rt.transport.sent) == ["s1", "s3"]

    @pytest.mark.asyncio
    async def test_same_topic_broadcasts_keep_submission_order(self):
        membership = RoomMembershipTable()
        membership.join("problem:P", "s1")
        received = []

        async def slow_send(session_id, event_name, payload):
            # first event is slower than the second one
            await asyncio.sleep(0.02 if payload["views"] == 1 else 0)
            received.append(payload["views"])

        transport = AsyncMock()
        transport.send = AsyncMock(side_effect=slow_send)
        fanout = EventFanOut(membership, transport)

        await asyncio.gather(
            fanout.broadcast("problem:P", "view-count-updated", {"problemId": "P", "views": 1}),
            fanout.broadcast("problem:P", "view-count-updated", {"problemId": "P", "views": 2}),
            fanout.broadcast("problem:P", "view-count-updated", {"problemId": "P", "views": 3}),
        )

        assert received == [1, 2, 3]

    @pytest.mark.asyncio
    async def test_topic_locks_are_released(self, rt):
        rt.membership.join("problem:P", "s1")
        await rt.fanout.broadcast("problem:P", "view-count-updated", {"problemId": "P", "views": 1})
        assert rt.fanout._locks == {}
        assert rt.fanout._pending == {}

    @pytest.mark.asyncio
    async def test_concurrent_broadcasts_share_one_lock(self, rt):
        rt.membership.join("problem:P", "s1")
        payload = {"problemId": "P", "views": 1}

        with patch("crowdsolve.realtime.fanout.asyncio.Lock", wraps=asyncio.Lock) as lock_cls:
            await asyncio.gather(
                rt.fanout.broadcast("problem:P", "view-count-updated", payload),
                rt.fanout.broadcast("problem:P", "view-count-updated", payload),
                rt.fanout.broadcast("problem:P", "view-count-updated", payload),
            )

        assert lock_cls.call_count == 1
        assert len(rt.transport.sent) == 3


class TestWebSocketTransport:
    @pytest.mark.asyncio
    async def test_send_wraps_frame(self):
        transport = WebSocketTransport()
        ws = AsyncMock()
        transport.register("s1", ws)

        await transport.send("s1", "new-comment", {"problemId": "P"})

        ws.send_json.assert_awaited_once_with({"event": "new-comment", "data": {"problemId": "P"}})

    @pytest.mark.asyncio
    async def test_unregistered_session_raises(self):
        transport = WebSocketTransport()
        transport.register("s1", AsyncMock())
        transport.unregister("s1")

        assert not transport.is_connected("s1")
        with pytest.raises(SessionNotConnected):
            await transport.send("s1", "new-comment", {})

    @pytest.mark.asyncio
    async def test_fanout_treats_closed_socket_as_absent(self):
        membership = RoomMembershipTable()
        transport = WebSocketTransport()
        good, dead = AsyncMock(), AsyncMock()
        dead.send_json.side_effect = RuntimeError("closed")
        transport.register("good", good)
        transport.register("dead", dead)
        membership.join("problem:P", "good")
        membership.join("problem:P", "dead")
        membership.join("problem:P", "gone")  # never registered

        delivered = await EventFanOut(membership, transport).broadcast(
            "problem:P", "view-count-updated", {"problemId": "P", "views": 3}
        )

        assert delivered == 1
        good.send_json.assert_awaited_once()
