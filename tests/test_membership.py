"""
Tests for the room membership table and topic naming.
"""

from __future__ import annotations

import pytest

from crowdsolve.realtime.membership import RoomMembershipTable
from crowdsolve.realtime.topics import (
    is_problem_topic,
    is_user_topic,
    problem_id_of,
    problem_topic,
    user_topic,
)


class TestTopics:
    def test_topic_names(self):
        assert user_topic("u1") == "user:u1"
        assert problem_topic(42) == "problem:42"

    def test_kind_checks(self):
        assert is_problem_topic("problem:p1")
        assert not is_problem_topic("user:p1")
        assert is_user_topic("user:u1")
        assert problem_id_of("problem:p1") == "p1"
        assert problem_id_of("user:u1") is None

    @pytest.mark.parametrize("bad", [None, "", "   "])
    def test_missing_id_rejected(self, bad):
        with pytest.raises(ValueError):
            problem_topic(bad)
        with pytest.raises(ValueError):
            user_topic(bad)


class TestRoomMembershipTable:
    @pytest.fixture
    def table(self):
        return RoomMembershipTable()

    def test_join_is_idempotent(self, table):
        assert table.join("problem:P", "s1") is True
        assert table.join("problem:P", "s1") is False
        assert table.member_count("problem:P") == 1

    def test_repeated_leave_is_idempotent(self, table):
        table.join("problem:P", "s1")
        assert table.leave("problem:P", "s1") is True
        assert table.leave("problem:P", "s1") is False
        assert "problem:P" not in table

    def test_last_operation_wins(self, table):
        for _ in range(3):
            table.join("problem:P", "s1")
        table.leave("problem:P", "s1")
        assert table.member_count("problem:P") == 0

        table.leave("problem:P", "s1")
        table.join("problem:P", "s1")
        table.join("problem:P", "s1")
        assert table.member_count("problem:P") == 1

    def test_counts_and_empty_topic_removed(self, table):
        table.join("problem:P", "s1")
        table.join("problem:P", "s2")
        assert table.member_count("problem:P") == 2

        table.leave("problem:P", "s1")
        assert table.member_count("problem:P") == 1

        table.leave("problem:P", "s2")
        assert "problem:P" not in table
        assert table.topics() == []

    def test_unknown_topic_count_is_zero(self, table):
        assert table.member_count("problem:nope") == 0
        assert table.members("problem:nope") == frozenset()

    def test_leave_one_topic_keeps_others(self, table):
        table.join("problem:A", "s1")
        table.join("problem:B", "s1")
        table.leave("problem:A", "s1")
        assert table.members("problem:B") == frozenset({"s1"})

    def test_members_is_a_snapshot(self, table):
        table.join("problem:A", "s1")
        snapshot = table.members("problem:A")
        table.join("problem:A", "s2")
        assert snapshot == frozenset({"s1"})

    def test_remove_session_everywhere(self, table):
        table.join("problem:A", "s1")
        table.join("problem:B", "s1")
        table.join("user:u1", "s1")
        table.join("problem:B", "s2")
        table.join("problem:C", "s2")

        changed = table.remove_session_everywhere("s1")

        assert sorted(changed) == ["problem:A", "problem:B", "user:u1"]
        assert "problem:A" not in table
        assert "user:u1" not in table
        assert table.member_count("problem:B") == 1
        assert table.member_count("problem:C") == 1

    def test_remove_unknown_session(self, table):
        table.join("problem:A", "s1")
        assert table.remove_session_everywhere("ghost") == []
        assert len(table) == 1
