"""Connection registry — which live sinks are open for which user.

Learn: One user can hold several sinks at once (browser tabs, devices);
each gets every event. The registry is plain dict/set bookkeeping with no
awaits, so on a single event loop register/deregister/lookup can never
interleave mid-operation and no lock is needed.

It is constructed once per app (see main.create_app) and handed to the
stream endpoint and the dispatcher through app.state, never imported as a
module global. Sinks are process-local; running several workers would
need a shared pub/sub layer in front of this.
"""

import asyncio
import uuid

import structlog
from starlette.requests import Request

logger = structlog.get_logger()


class SinkClosedError(Exception):
    """Raised when writing to a sink whose stream has already ended."""


class LiveSink:
    """Outbound buffer for one open stream connection.

    Learn: The dispatcher never touches the socket. It drops framed text
    into a bounded queue with put_nowait, and the stream's response
    generator drains it. A stalled client fills its own queue
    (asyncio.QueueFull on write) without slowing anyone else.
    """

    def __init__(self, maxsize: int = 100):
        self._queue: asyncio.Queue[str] = asyncio.Queue(maxsize=maxsize)
        self.closed = False

    def write(self, frame: str) -> None:
        if self.closed:
            raise SinkClosedError("sink is closed")
        self._queue.put_nowait(frame)

    async def read(self) -> str:
        return await self._queue.get()

    def close(self) -> None:
        self.closed = True

    @property
    def pending(self) -> int:
        return self._queue.qsize()


class ConnectionRegistry:
    """Map of user id → set of open sinks."""

    def __init__(self):
        self._sinks: dict[uuid.UUID, set[LiveSink]] = {}

    def register(self, user_id: uuid.UUID, sink: LiveSink) -> None:
        self._sinks.setdefault(user_id, set()).add(sink)
        logger.info(
            "realtime.sink_registered",
            user_id=str(user_id),
            user_sinks=len(self._sinks[user_id]),
        )

    def deregister(self, user_id: uuid.UUID, sink: LiveSink) -> None:
        """Remove a sink. Removing an unknown sink is a no-op.

        The user's entry is dropped as soon as its last sink goes, so the
        map only ever holds currently connected users.
        """
        sinks = self._sinks.get(user_id)
        if sinks is None:
            return
        sinks.discard(sink)
        if not sinks:
            del self._sinks[user_id]
        logger.info(
            "realtime.sink_deregistered",
            user_id=str(user_id),
            user_sinks=len(sinks),
        )

    def sinks_for(self, user_id: uuid.UUID) -> frozenset[LiveSink]:
        """Snapshot of the user's open sinks (empty if none)."""
        return frozenset(self._sinks.get(user_id, ()))

    def connected_users(self) -> set[uuid.UUID]:
        return set(self._sinks)

    def __contains__(self, user_id: uuid.UUID) -> bool:
        return user_id in self._sinks

    def __len__(self) -> int:
        return sum(len(s) for s in self._sinks.values())


def get_registry(request: Request) -> ConnectionRegistry:
    """FastAPI dependency — the app's registry instance."""
    return request.app.state.registry
