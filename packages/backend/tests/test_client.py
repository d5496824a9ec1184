"""Client reconciliation: cache, SSE parsing and the subscriber loop.

Learn: The subscriber is driven against httpx.MockTransport, so every
"connection" is a handler call we fully control: a finite stream, an
endless one, a 401, or a transport error.
"""

import asyncio
import json

import httpx
import pytest

from issuetracker.client import INVALIDATIONS, QueryCache, RealtimeSubscriber, Reconciler, SSEParser
from issuetracker.realtime.events import EventType, LiveEvent


def _frame(type_: str, payload: dict | None = None) -> str:
    return f"data: {json.dumps({'type': type_, 'payload': payload or {}})}\n\n"


async def _seed(cache: QueryCache, *keys):
    for key in keys:
        async def fetch(key=key):
            return f"value of {key}"
        await cache.get(key, fetch)


# ═══════════════════════════════════════════════════════════
# QueryCache
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_cache_refetches_only_after_invalidation():
    cache = QueryCache()
    calls = []

    async def fetch():
        calls.append(1)
        return len(calls)

    assert await cache.get(("issues", "p1"), fetch) == 1
    assert await cache.get(("issues", "p1"), fetch) == 1

    assert cache.invalidate("issues") == 1
    assert cache.is_stale(("issues", "p1"))
    assert await cache.get(("issues", "p1"), fetch) == 2


@pytest.mark.asyncio
async def test_invalidate_matches_query_name_only():
    cache = QueryCache()
    await _seed(cache, ("issues", "p1"), ("issues", "p2"), ("issue", "i1"), ("notifications",))

    assert cache.invalidate("issues") == 2
    assert not cache.is_stale(("issue", "i1"))
    assert not cache.is_stale(("notifications",))


# ═══════════════════════════════════════════════════════════
# Reconciler
# ═══════════════════════════════════════════════════════════


def test_every_event_type_has_an_invalidation_entry():
    assert set(INVALIDATIONS) == set(EventType)


@pytest.mark.asyncio
async def test_issue_events_stale_issue_queries():
    cache = QueryCache()
    await _seed(cache, ("issues", "p1"), ("issue", "i1"), ("activities", "i1"), ("notifications",))

    raw = LiveEvent(EventType.ISSUE_UPDATED, {"issue": {"title": "from the wire"}}).to_dict()
    parsed = Reconciler(cache).apply(json.dumps(raw))

    assert parsed[0] is EventType.ISSUE_UPDATED
    assert cache.is_stale(("issues", "p1"))
    assert cache.is_stale(("issue", "i1"))
    assert cache.is_stale(("activities", "i1"))
    assert not cache.is_stale(("notifications",))
    # The payload never lands in the cache
    assert cache.peek(("issue", "i1")) == "value of ('issue', 'i1')"


@pytest.mark.asyncio
async def test_member_removed_stales_projects_too():
    cache = QueryCache()
    await _seed(cache, ("projects",), ("project_members", "p1"))
    Reconciler(cache).apply(json.dumps({"type": "project_member_removed", "payload": {}}))
    assert cache.is_stale(("projects",))
    assert cache.is_stale(("project_members", "p1"))


@pytest.mark.parametrize("raw", ["not json", "[1, 2]", '{"type": "galaxy_exploded"}', '{"payload": {}}'])
def test_malformed_or_unknown_frames_are_ignored(raw):
    assert Reconciler(QueryCache()).apply(raw) is None


# ═══════════════════════════════════════════════════════════
# SSEParser
# ═══════════════════════════════════════════════════════════


def test_parser_handles_data_comments_and_retry():
    parser = SSEParser()
    lines = [": ping", "", "retry: 1500", 'data: {"a":', 'data: 1}', "", "event: x", ""]
    messages = [m for m in (parser.feed(line) for line in lines) if m is not None]

    assert [m.data for m in messages] == ['{"a":\n1}']
    assert parser.retry_ms == 1500


# ═══════════════════════════════════════════════════════════
# RealtimeSubscriber
# ═══════════════════════════════════════════════════════════


class FakeServer:
    """MockTransport handler that plays one scripted response per connection."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.tokens: list[str] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/api/v1/realtime"
        self.tokens.append(request.url.params["token"])
        response = self.responses.pop(0) if self.responses else httpx.Response(401)
        if isinstance(response, Exception):
            raise response
        return response


def _stream(*frames: str) -> httpx.Response:
    return httpx.Response(
        200,
        headers={"content-type": "text/event-stream"},
        content="".join(frames).encode(),
    )


def _subscriber(server: FakeServer, **kwargs) -> RealtimeSubscriber:
    return RealtimeSubscriber(
        "http://test",
        transport=httpx.MockTransport(server),
        retry_delay=0.01,
        **kwargs,
    )


@pytest.mark.asyncio
async def test_subscriber_reconciles_and_stops_on_401():
    received = []
    server = FakeServer(
        _stream(
            _frame("connected"),
            ": ping\n\n",
            "data: garbage\n\n",
            _frame("galaxy_exploded"),
            _frame("notification", {"id": "n1"}),
        )
    )
    subscriber = _subscriber(server, on_event=lambda t, p: received.append((t, p)))
    await _seed(subscriber.cache, ("notifications",))

    await subscriber.set_token("jwt-1")
    await asyncio.wait_for(subscriber.wait(), timeout=2)

    assert received == [(EventType.CONNECTED, {}), (EventType.NOTIFICATION, {"id": "n1"})]
    assert subscriber.cache.is_stale(("notifications",))
    assert subscriber.unauthorized
    assert server.tokens == ["jwt-1", "jwt-1"]


@pytest.mark.asyncio
async def test_reconnect_stales_the_whole_cache():
    server = FakeServer(_stream(_frame("connected")), _stream(_frame("connected")))
    subscriber = _subscriber(server)
    await _seed(subscriber.cache, ("issues", "p1"), ("labels",))

    await subscriber.set_token("jwt-1")
    await asyncio.wait_for(subscriber.wait(), timeout=2)

    assert subscriber.connections == 2
    assert subscriber.cache.is_stale(("issues", "p1"))
    assert subscriber.cache.is_stale(("labels",))


@pytest.mark.asyncio
async def test_transport_error_retries_after_fixed_delay():
    server = FakeServer(httpx.ConnectError("refused"), httpx.Response(503))
    subscriber = _subscriber(server)

    await subscriber.set_token("jwt-1")
    await asyncio.wait_for(subscriber.wait(), timeout=2)

    assert len(server.tokens) == 3
    assert subscriber.unauthorized


@pytest.mark.asyncio
async def test_server_retry_field_overrides_delay():
    server = FakeServer(_stream("retry: 10\n\n", _frame("connected")))
    subscriber = RealtimeSubscriber(
        "http://test", transport=httpx.MockTransport(server), retry_delay=60
    )

    await subscriber.set_token("jwt-1")
    await asyncio.wait_for(subscriber.wait(), timeout=2)
    assert len(server.tokens) == 2


@pytest.mark.asyncio
async def test_set_token_replaces_the_subscription():
    hold = asyncio.Event()

    async def endless():
        yield _frame("connected").encode()
        await hold.wait()

    server = FakeServer(httpx.Response(200, content=endless()))
    received = []
    subscriber = _subscriber(server, on_event=lambda t, p: received.append(t))

    await subscriber.set_token("old")
    for _ in range(100):
        if received:
            break
        await asyncio.sleep(0.01)
    assert received == [EventType.CONNECTED]
    assert subscriber.running

    await subscriber.set_token("new")
    await asyncio.wait_for(subscriber.wait(), timeout=2)
    assert server.tokens == ["old", "new"]
    assert subscriber.unauthorized

    await subscriber.set_token(None)
    assert not subscriber.running


@pytest.mark.asyncio
async def test_callback_errors_do_not_kill_the_loop():
    def boom(event_type, payload):
        raise ValueError("ui bug")

    server = FakeServer(_stream(_frame("connected"), _frame("notification")))
    subscriber = _subscriber(server, on_event=boom)
    await _seed(subscriber.cache, ("notifications",))

    await subscriber.set_token("jwt-1")
    await asyncio.wait_for(subscriber.wait(), timeout=2)
    assert subscriber.cache.is_stale(("notifications",))


def test_deeply_nested_frame_is_ignored():
    raw = "[" * 100000 + "]" * 100000
    assert Reconciler(QueryCache()).apply(raw) is None


@pytest.mark.asyncio
async def test_deeply_nested_frame_does_not_end_the_subscription():
    received = []
    nested = "data: " + "[" * 100000 + "]" * 100000 + "\n\n"
    server = FakeServer(
        _stream(_frame("connected"), nested, _frame("notification", {"id": "n1"}))
    )
    subscriber = _subscriber(server, on_event=lambda t, p: received.append(t))

    await subscriber.set_token("jwt-1")
    await asyncio.wait_for(subscriber.wait(), timeout=5)

    assert received == [EventType.CONNECTED, EventType.NOTIFICATION]
    assert subscriber.unauthorized


@pytest.mark.asyncio
async def test_unexpected_error_reconnects_instead_of_dying():
    server = FakeServer(RuntimeError("decoder blew up"), _stream(_frame("connected")))
    received = []
    subscriber = _subscriber(server, on_event=lambda t, p: received.append(t))

    await subscriber.set_token("jwt-1")
    await asyncio.wait_for(subscriber.wait(), timeout=2)

    assert len(server.tokens) == 3
    assert received == [EventType.CONNECTED]
    assert subscriber.unauthorized
