"""Tests for the presence tracker."""

from datetime import timedelta

import pytest

from app.domains.collaboration.presence import PRESENCE_COLORS, PresenceTracker, presence_color

DOC = "project-1"


@pytest.fixture
def tracker():
    return PresenceTracker(ttl_seconds=300)


def test_heartbeat_makes_user_active(tracker, t0):
    tracker.heartbeat(DOC, "alice", {"name": "Alice", "email": "alice@example.com"}, t0)

    active = tracker.active(DOC, t0 + timedelta(seconds=10))

    assert list(active) == ["alice"]
    assert active["alice"].name == "Alice"
    assert active["alice"].email == "alice@example.com"


def test_stale_entries_filtered(tracker, t0):
    tracker.heartbeat(DOC, "alice", {"name": "Alice"}, t0)

    assert "alice" in tracker.active(DOC, t0 + timedelta(seconds=299))
    assert tracker.active(DOC, t0 + timedelta(seconds=300)) == {}


def test_typing_disappears_with_stale_entry(tracker, t0):
    tracker.heartbeat(DOC, "bob", {"name": "Bob"}, t0)
    tracker.set_typing(DOC, "bob", True, "q_1", t0 + timedelta(seconds=5))

    entry = tracker.active(DOC, t0 + timedelta(seconds=10))["bob"]
    assert entry.is_typing
    assert entry.typing_question == "q_1"

    assert tracker.active(DOC, t0 + timedelta(seconds=400)) == {}


def test_stop_typing_clears_question(tracker, t0):
    tracker.set_typing(DOC, "bob", True, "q_1", t0)
    entry = tracker.set_typing(DOC, "bob", False, "q_1", t0)

    assert not entry.is_typing
    assert entry.typing_question is None


def test_others_excludes_current_user(tracker, t0):
    tracker.heartbeat(DOC, "alice", {"name": "Alice"}, t0)
    tracker.heartbeat(DOC, "bob", {"name": "Bob"}, t0)

    others = tracker.others(DOC, "alice", t0)

    assert [entry["user_id"] for entry in others] == ["bob"]


def test_clear_removes_entry(tracker, t0):
    tracker.heartbeat(DOC, "alice", {"name": "Alice"}, t0)

    tracker.clear(DOC, "alice", t0)
    tracker.clear(DOC, "ghost", t0)

    assert tracker.active(DOC, t0) == {}


def test_subscribe_and_unsubscribe(tracker, t0):
    snapshots = []
    unsubscribe = tracker.subscribe(DOC, snapshots.append)

    tracker.heartbeat(DOC, "alice", {"name": "Alice"}, t0)
    unsubscribe()
    tracker.heartbeat(DOC, "bob", {"name": "Bob"}, t0)

    assert len(snapshots) == 1
    assert list(snapshots[0]) == ["alice"]


def test_failing_subscriber_does_not_break_others(tracker, t0):
    received = []

    def broken(_):
        raise RuntimeError("boom")

    tracker.subscribe(DOC, broken)
    tracker.subscribe(DOC, received.append)

    tracker.heartbeat(DOC, "alice", {"name": "Alice"}, t0)

    assert len(received) == 1


def test_color_is_deterministic():
    assert presence_color("alice") == presence_color("alice")
    assert presence_color("alice") in PRESENCE_COLORS


def test_colors_cover_palette():
    colors = {presence_color(f"user-{i}") for i in range(200)}
    assert colors <= set(PRESENCE_COLORS)
    assert len(colors) > 1


def test_stale_entries_pruned_on_read(tracker, t0):
    tracker.heartbeat(DOC, "alice", {"name": "Alice"}, t0)
    tracker.heartbeat(DOC, "bob", {"name": "Bob"}, t0 + timedelta(seconds=200))

    assert list(tracker.active(DOC, t0 + timedelta(seconds=350))) == ["bob"]
    assert list(tracker._entries[DOC]) == ["bob"]

    tracker.active(DOC, t0 + timedelta(seconds=600))
    assert DOC not in tracker._entries


def test_unsubscribe_drops_empty_list(tracker):
    first = tracker.subscribe(DOC, lambda _: None)
    second = tracker.subscribe(DOC, lambda _: None)
    assert tracker.subscriber_count(DOC) == 2

    first()
    second()
    second()

    assert tracker.subscriber_count(DOC) == 0
    assert DOC not in tracker._subscribers
