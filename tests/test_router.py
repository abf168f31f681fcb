"""Tests for the message router."""

from unittest.mock import MagicMock

import pytest

from collabchat.core import Assistant, ChatMessage, DeleteNotice, Human
from collabchat.rooms import RoomRegistry
from collabchat.router import MessageRouter, TimestampClock, extract_prompt

from conftest import ALICE, BOB, OTHER_PROJECT_ID, PROJECT_ID, drain


class TestExtractPrompt:
    def test_directive_in_middle(self):
        assert extract_prompt("please @ai write a loop") == "please write a loop"

    def test_directive_at_start(self):
        assert extract_prompt("@ai generate a hello world script") == "generate a hello world script"

    def test_only_first_directive_removed(self):
        assert extract_prompt("@ai explain @ai mentions") == "explain @ai mentions"

    def test_no_directive(self):
        assert extract_prompt("hello there") is None

    def test_case_sensitive(self):
        assert extract_prompt("@AI write a loop") is None

    def test_bare_directive(self):
        assert extract_prompt("@ai") == ""


class TestTimestampClock:
    def test_never_repeats(self):
        clock = TimestampClock(now=lambda: 1000)
        assert [clock(), clock(), clock()] == [1000, 1001, 1002]

    def test_follows_wall_clock(self):
        ticks = iter([1000, 5000])
        clock = TimestampClock(now=lambda: next(ticks))
        assert clock() == 1000
        assert clock() == 5000

    def test_observed_timestamps_are_skipped(self):
        clock = TimestampClock(now=lambda: 1000)
        clock.observe(2000)
        clock.observe(1500)
        assert clock() == 2001


@pytest.fixture
def room(make_session):
    registry = RoomRegistry()
    a, b = make_session(ALICE), make_session(BOB)
    registry.join(PROJECT_ID, a)
    registry.join(PROJECT_ID, b)
    return registry, a, b


def _chat(text, sender=None, timestamp=None):
    sender = sender or Human(id=ALICE.id, email=ALICE.email)
    return ChatMessage(text=text, sender=sender, timestamp=timestamp)


class TestChat:
    def test_broadcasts_to_whole_room(self, room):
        registry, a, b = room
        router = MessageRouter(registry, clock=TimestampClock(now=lambda: 42))

        router.handle_chat(a, _chat("hello"))

        for session in (a, b):
            frames = drain(session)
            assert frames == [
                {
                    "event": "project-message",
                    "data": {
                        "message": "hello",
                        "sender": {"_id": "u1", "email": "alice@example.com"},
                        "timestamp": 42,
                    },
                }
            ]

    def test_keeps_client_timestamp(self, room):
        registry, a, _ = room
        router = MessageRouter(registry)
        sent = router.handle_chat(a, _chat("hello", timestamp=1700000000123))
        assert sent.timestamp == 1700000000123
        assert drain(a)[0]["data"]["timestamp"] == 1700000000123

    def test_assigned_timestamps_are_unique(self, room):
        registry, a, _ = room
        router = MessageRouter(registry, clock=TimestampClock(now=lambda: 7))
        first = router.handle_chat(a, _chat("one"))
        second = router.handle_chat(a, _chat("two"))
        assert first.timestamp != second.timestamp

    def test_plain_message_does_not_reach_relay(self, room):
        registry, a, _ = room
        relay = MagicMock()
        router = MessageRouter(registry, relay=relay)
        router.handle_chat(a, _chat("no directive here"))
        relay.submit.assert_not_called()

    def test_directive_broadcasts_then_submits(self, room):
        registry, a, b = room
        relay = MagicMock()
        router = MessageRouter(registry, relay=relay)

        router.handle_chat(a, _chat("please @ai write a loop"))

        assert drain(b)[0]["data"]["message"] == "please @ai write a loop"
        relay.submit.assert_called_once_with("please write a loop", PROJECT_ID)

    def test_directive_without_relay_still_broadcasts(self, room):
        registry, a, _ = room
        router = MessageRouter(registry)
        router.handle_chat(a, _chat("@ai hi"))
        assert len(drain(a)) == 1

    def test_post_skips_directive_check(self, room):
        registry, a, _ = room
        relay = MagicMock()
        router = MessageRouter(registry, relay=relay)
        router.post(PROJECT_ID, _chat("@ai this came from the server"))
        relay.submit.assert_not_called()
        assert len(drain(a)) == 1


class TestRoomTimestamps:
    def test_colliding_client_timestamp_is_restamped(self, room):
        registry, a, b = room
        router = MessageRouter(registry, clock=TimestampClock(now=lambda: 500))

        first = router.handle_chat(a, _chat("from alice", timestamp=1000))
        second = router.handle_chat(b, _chat("from bob", Human(id=BOB.id, email=BOB.email), timestamp=1000))

        assert first.timestamp == 1000
        assert second.timestamp == 1001
        assert [f["data"]["timestamp"] for f in drain(a)] == [1000, 1001]

    def test_server_stamp_never_repeats_client_stamp(self, room):
        registry, a, _ = room
        router = MessageRouter(registry, clock=TimestampClock(now=lambda: 1000))

        router.handle_chat(a, _chat("from alice", timestamp=1000))
        answer = router.post_text(PROJECT_ID, "answer", Assistant())

        assert answer.timestamp == 1001

    def test_rooms_track_timestamps_separately(self, room, make_session):
        registry, a, _ = room
        other = make_session(BOB, room_id=OTHER_PROJECT_ID)
        registry.join(OTHER_PROJECT_ID, other)
        router = MessageRouter(registry)

        router.handle_chat(a, _chat("here", timestamp=1000))
        sent = router.handle_chat(other, _chat("there", timestamp=1000))

        assert sent.timestamp == 1000

    def test_forgotten_room_accepts_timestamps_again(self, room):
        registry, a, _ = room
        router = MessageRouter(registry)
        router.handle_chat(a, _chat("one", timestamp=1000))
        router.forget_room(PROJECT_ID)
        assert router.handle_chat(a, _chat("two", timestamp=1000)).timestamp == 1000


class TestDelete:
    def test_owner_delete_is_broadcast(self, room):
        registry, a, b = room
        router = MessageRouter(registry)
        notice = DeleteNotice(timestamp=42, project_id=PROJECT_ID, sender=Human(id="u1", email="alice@example.com"))

        assert router.handle_delete(a, notice) is True

        for session in (a, b):
            assert drain(session) == [
                {
                    "event": "delete-message",
                    "data": {
                        "timestamp": 42,
                        "projectId": PROJECT_ID,
                        "sender": {"_id": "u1", "email": "alice@example.com"},
                    },
                }
            ]

    def test_unauthorized_delete_is_dropped(self, room):
        registry, a, b = room
        router = MessageRouter(registry)
        # Bob's session claims to delete Alice's message.
        notice = DeleteNotice(timestamp=42, project_id=PROJECT_ID, sender=Human(id="u1"))

        assert router.handle_delete(b, notice) is False
        assert drain(a) == []
        assert drain(b) == []

    def test_unauthorized_delete_raises_nothing(self, room):
        registry, _, b = room
        router = MessageRouter(registry)
        notice = DeleteNotice(timestamp=1, project_id=PROJECT_ID, sender=Human(id="someone-else"))
        router.handle_delete(b, notice)
