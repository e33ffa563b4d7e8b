"""
Tests for content broadcasts and the event wire contract.
"""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from crowdsolve.models.notification import Notification
from crowdsolve.realtime.events import (
    CONTENT_EVENTS,
    AllNotificationsRead,
    EventName,
    NewNotification,
    SolutionAccepted,
)


@pytest.fixture
def viewer(rt):
    rt.membership.join("problem:P1", "viewer")
    rt.membership.join("problem:P2", "elsewhere")
    return "viewer"


class TestContentPublisher:
    @pytest.mark.asyncio
    async def test_new_comment(self, rt, viewer):
        await rt.content.new_comment({"_id": "c1", "text": "try vinegar"}, "s1", "P1")
        assert rt.transport.sent == [
            (viewer, "new-comment", {
                "comment": {"_id": "c1", "text": "try vinegar"},
                "solutionId": "s1",
                "problemId": "P1",
            })
        ]

    @pytest.mark.asyncio
    async def test_comment_deleted_and_updated(self, rt, viewer):
        await rt.content.comment_updated({"_id": "c1"}, "s1", "P1")
        await rt.content.comment_deleted("c1", "s1", "P1")
        assert [e for _, e, _ in rt.transport.sent] == ["comment-updated", "comment-deleted"]
        assert rt.transport.sent[1][2] == {"commentId": "c1", "solutionId": "s1", "problemId": "P1"}

    @pytest.mark.asyncio
    async def test_solution_events(self, rt, viewer):
        await rt.content.new_solution({"_id": "s1"}, "P1")
        await rt.content.solution_updated({"_id": "s1"}, "P1")
        await rt.content.solution_deleted("s1", "P1")
        await rt.content.solution_accepted("s2", "P1")
        assert [e for _, e, _ in rt.transport.sent] == [
            "new-solution",
            "solution-updated",
            "solution-deleted",
            "solution-accepted",
        ]
        assert rt.transport.sent[-1][2] == {"solutionId": "s2", "problemId": "P1"}

    @pytest.mark.asyncio
    async def test_upvote_and_view_events(self, rt, viewer):
        await rt.content.problem_upvote_updated("P1", 4, True)
        await rt.content.solution_upvote_updated("s1", 2, False, "P1")
        await rt.content.comment_upvote_updated("c1", 1, True, "s1", "P1")
        await rt.content.view_count_updated("P1", 99)

        payloads = {e: p for _, e, p in rt.transport.sent}
        assert payloads["upvote-updated"] == {"problemId": "P1", "upvoteCount": 4, "hasUpvoted": True}
        assert payloads["solution-upvote-updated"] == {
            "solutionId": "s1", "upvoteCount": 2, "hasUpvoted": False, "problemId": "P1",
        }
        assert payloads["comment-upvote-updated"] == {
            "commentId": "c1", "upvoteCount": 1, "hasUpvoted": True, "solutionId": "s1", "problemId": "P1",
        }
        assert payloads["view-count-updated"] == {"problemId": "P1", "views": 99}

    @pytest.mark.asyncio
    async def test_publish_validates_raw_payload(self, rt, viewer):
        await rt.content.publish("solution-accepted", {"solutionId": "s1", "problemId": "P1"})
        assert rt.transport.sent[0][1] == "solution-accepted"

        with pytest.raises(ValidationError):
            await rt.content.publish("solution-accepted", {"problemId": "P1"})

    @pytest.mark.asyncio
    @pytest.mark.parametrize("name", ["active-viewers-updated", "new-notification", "nope"])
    async def test_publish_rejects_non_content_events(self, rt, name):
        with pytest.raises(ValueError):
            await rt.content.publish(name, {"problemId": "P1"})


class TestEventModels:
    def test_every_content_event_is_registered(self):
        assert EventName.SOLUTION_ACCEPTED in CONTENT_EVENTS
        assert CONTENT_EVENTS[EventName.SOLUTION_ACCEPTED] is SolutionAccepted
        assert EventName.ACTIVE_VIEWERS_UPDATED not in CONTENT_EVENTS
        assert EventName.NEW_NOTIFICATION not in CONTENT_EVENTS

    def test_new_notification_payload_is_the_record(self):
        record = Notification(recipient="u2", sender="u1", type="follow", title="t", message="m")
        assert NewNotification(notification=record).to_payload() == record.to_wire()

    def test_all_read_default(self):
        assert AllNotificationsRead().to_payload() == {"unreadCount": 0}
