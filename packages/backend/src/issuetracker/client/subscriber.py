"""RealtimeSubscriber — one live stream per authenticated session.

Learn: Lifecycle mirrors the session credential:

    set_token(None) ──▶ idle (no task)
    set_token(jwt)  ──▶ old task cancelled, new task streams /api/v1/realtime
                          │
              401 ◀───────┤──────▶ transport error / server closed stream
        (stop; credential       (sleep retry delay, reconnect, no backoff)
         is no good)

After a reconnect every cached query is marked stale: events sent while
the stream was down are gone for good, so only a re-fetch can catch up.
"""

import asyncio
from collections.abc import Callable
from typing import Any, Optional

import httpx
import structlog

from issuetracker.client.cache import QueryCache
from issuetracker.client.reconcile import Reconciler, SSEParser
from issuetracker.realtime.events import EventType

logger = structlog.get_logger()

STREAM_PATH = "/api/v1/realtime"

EventCallback = Callable[[EventType, dict[str, Any]], None]


class RealtimeSubscriber:
    def __init__(
        self,
        base_url: str,
        cache: Optional[QueryCache] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        retry_delay: float = 3.0,
        on_event: Optional[EventCallback] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.cache = cache if cache is not None else QueryCache()
        self.reconciler = Reconciler(self.cache)
        self.transport = transport
        self.retry_delay = retry_delay
        self.on_event = on_event

        self.token: Optional[str] = None
        self.unauthorized = False
        self.connections = 0
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def set_token(self, token: Optional[str]) -> None:
        """Switch credentials: tear down any open stream, then reopen if `token`."""
        await self.close()
        self.token = token
        self.unauthorized = False
        self.connections = 0
        if token:
            self._task = asyncio.create_task(self._run(token))

    async def close(self) -> None:
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def wait(self) -> None:
        """Block until the subscription ends on its own (e.g. a 401)."""
        if self._task is not None:
            await self._task

    async def _run(self, token: str) -> None:
        async with httpx.AsyncClient(
            base_url=self.base_url,
            transport=self.transport,
            timeout=httpx.Timeout(10.0, read=None),
        ) as client:
            while True:
                parser = SSEParser()
                try:
                    if not await self._stream_once(client, token, parser):
                        return
                    logger.info("realtime.client_stream_ended")
                except httpx.HTTPError as e:
                    logger.warning("realtime.client_stream_error", error=str(e))
                except Exception as e:
                    logger.error("realtime.client_stream_failed", error=repr(e))

                delay = parser.retry_ms / 1000 if parser.retry_ms is not None else self.retry_delay
                await asyncio.sleep(delay)

    async def _stream_once(
        self, client: httpx.AsyncClient, token: str, parser: SSEParser
    ) -> bool:
        """Consume one connection. Returns False when retrying is pointless."""
        async with client.stream(
            "GET",
            STREAM_PATH,
            params={"token": token},
            headers={"Accept": "text/event-stream"},
        ) as response:
            if response.status_code == 401:
                self.unauthorized = True
                logger.warning("realtime.client_unauthorized")
                return False
            response.raise_for_status()

            async for line in response.aiter_lines():
                message = parser.feed(line.rstrip("\r"))
                if message is not None:
                    self._handle(message.data)
        return True

    def _handle(self, raw: str) -> None:
        parsed = self.reconciler.apply(raw)
        if parsed is None:
            return
        event_type, payload = parsed

        if event_type is EventType.CONNECTED:
            self.connections += 1
            if self.connections > 1:
                self.cache.invalidate_all()

        if self.on_event is not None:
            try:
                self.on_event(event_type, payload)
            except Exception as e:
                logger.error("realtime.client_callback_failed", type=event_type.value, error=str(e))
