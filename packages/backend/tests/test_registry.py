"""Connection registry and dispatcher — the in-memory half of the live stream.

Learn: These run without a database or HTTP. The registry is plain
bookkeeping, so each property can be checked directly.
"""

import asyncio
import uuid

import pytest

from issuetracker.realtime.dispatcher import EventDispatcher
from issuetracker.realtime.events import EventType, LiveEvent
from issuetracker.realtime.registry import ConnectionRegistry, LiveSink, SinkClosedError

from conftest import read_events


# ═══════════════════════════════════════════════════════════
# Registry
# ═══════════════════════════════════════════════════════════


def test_register_then_deregister_leaves_no_entry():
    registry = ConnectionRegistry()
    user_id = uuid.uuid4()
    sink = LiveSink()

    registry.register(user_id, sink)
    assert user_id in registry
    assert registry.sinks_for(user_id) == {sink}

    registry.deregister(user_id, sink)
    assert registry.sinks_for(user_id) == frozenset()
    assert user_id not in registry
    assert registry.connected_users() == set()
    assert len(registry) == 0


def test_entry_survives_until_last_sink_goes():
    registry = ConnectionRegistry()
    user_id = uuid.uuid4()
    tab1, tab2 = LiveSink(), LiveSink()
    registry.register(user_id, tab1)
    registry.register(user_id, tab2)
    assert len(registry) == 2

    registry.deregister(user_id, tab1)
    assert registry.sinks_for(user_id) == {tab2}

    registry.deregister(user_id, tab2)
    assert user_id not in registry


def test_deregister_is_idempotent():
    registry = ConnectionRegistry()
    user_id = uuid.uuid4()
    sink = LiveSink()
    registry.register(user_id, sink)

    registry.deregister(user_id, sink)
    registry.deregister(user_id, sink)
    registry.deregister(uuid.uuid4(), LiveSink())
    assert len(registry) == 0


def test_sinks_for_is_a_snapshot():
    """Mutating the registry mid-iteration must not break a dispatch loop."""
    registry = ConnectionRegistry()
    user_id = uuid.uuid4()
    sink = LiveSink()
    registry.register(user_id, sink)

    snapshot = registry.sinks_for(user_id)
    registry.deregister(user_id, sink)
    assert snapshot == {sink}


# ═══════════════════════════════════════════════════════════
# Sinks
# ═══════════════════════════════════════════════════════════


def test_closed_sink_rejects_writes():
    sink = LiveSink()
    sink.close()
    with pytest.raises(SinkClosedError):
        sink.write("data: {}\n\n")


def test_full_sink_raises_queue_full():
    sink = LiveSink(maxsize=1)
    sink.write("data: 1\n\n")
    with pytest.raises(asyncio.QueueFull):
        sink.write("data: 2\n\n")


# ═══════════════════════════════════════════════════════════
# Dispatcher
# ═══════════════════════════════════════════════════════════


def test_send_reaches_every_sink_of_the_user():
    registry = ConnectionRegistry()
    dispatcher = EventDispatcher(registry)
    user_id = uuid.uuid4()
    s1, s2 = LiveSink(), LiveSink()
    registry.register(user_id, s1)
    registry.register(user_id, s2)

    delivered = dispatcher.send(user_id, LiveEvent(EventType.NOTIFICATION, {"id": "n1"}))

    assert delivered == 2
    for sink in (s1, s2):
        assert read_events(sink) == [{"type": "notification", "payload": {"id": "n1"}}]


def test_failing_sink_does_not_block_the_others():
    registry = ConnectionRegistry()
    dispatcher = EventDispatcher(registry)
    user_id, other_id = uuid.uuid4(), uuid.uuid4()
    dead, alive, other = LiveSink(), LiveSink(), LiveSink()
    dead.close()
    registry.register(user_id, dead)
    registry.register(user_id, alive)
    registry.register(other_id, other)

    delivered = dispatcher.broadcast(
        [user_id, other_id], LiveEvent(EventType.ISSUE_CREATED, {"project_id": "p"})
    )

    assert delivered == 2
    assert len(read_events(alive)) == 1
    assert len(read_events(other)) == 1


def test_send_without_sinks_is_a_silent_drop():
    registry = ConnectionRegistry()
    dispatcher = EventDispatcher(registry)

    assert dispatcher.send(uuid.uuid4(), LiveEvent(EventType.NOTIFICATION)) == 0
    assert len(registry) == 0


def test_frame_format():
    frame = LiveEvent(EventType.CONNECTED).to_frame()
    assert frame == 'data: {"type": "connected", "payload": {}}\n\n'
