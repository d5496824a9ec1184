"""Live subscription endpoint — GET /api/v1/realtime (Server-Sent Events).

Learn: Each browser session opens one long-lived GET with ?token=JWT
(EventSource cannot send headers; a Bearer header is accepted too).

    Unauthenticated ──bad/missing token──▶ 401, nothing registered
          │
          ▼ valid token
    Open: sink registered → `connected` event → frames / keepalives
          │
          ▼ client closes, network drops, or server shuts down
    Closed: sink closed + deregistered

The server keeps nothing between connections. A reconnect is a brand-new
subscription that starts from scratch; the client re-fetches whatever
it may have missed.
"""

import asyncio
import uuid
from collections.abc import AsyncIterator
from typing import Optional

import structlog
from fastapi import APIRouter, Depends, Header, HTTPException, Query, Request
from fastapi.responses import StreamingResponse

from issuetracker.auth.dependencies import identity_from_token
from issuetracker.auth.jwt import TokenError
from issuetracker.config import settings
from issuetracker.realtime.events import KEEPALIVE_FRAME, EventType, LiveEvent
from issuetracker.realtime.registry import ConnectionRegistry, LiveSink, get_registry

logger = structlog.get_logger()
router = APIRouter()


class LiveSubscription:
    """One open stream: owns its sink for exactly the connection's lifetime."""

    def __init__(
        self,
        user_id: uuid.UUID,
        registry: ConnectionRegistry,
        request: Optional[Request] = None,
        keepalive_seconds: float = 25.0,
        queue_size: int = 100,
    ):
        self.user_id = user_id
        self.registry = registry
        self.request = request
        self.keepalive_seconds = keepalive_seconds
        self.sink = LiveSink(maxsize=queue_size)

    async def frames(self) -> AsyncIterator[str]:
        """Yield SSE frames until the client goes away.

        Learn: The keepalive "timer" is the timeout on waiting for the next
        frame, so it lives and dies with this generator. Starlette cancels
        the generator when the client disconnects; the finally block then
        closes and deregisters the sink before any further write can land.
        """
        self.registry.register(self.user_id, self.sink)
        try:
            yield LiveEvent(EventType.CONNECTED).to_frame()
            while True:
                if self.request is not None and await self.request.is_disconnected():
                    break
                try:
                    frame = await asyncio.wait_for(
                        self.sink.read(), timeout=self.keepalive_seconds
                    )
                except asyncio.TimeoutError:
                    frame = KEEPALIVE_FRAME
                yield frame
        finally:
            self.sink.close()
            self.registry.deregister(self.user_id, self.sink)


def _extract_token(token: Optional[str], authorization: Optional[str]) -> Optional[str]:
    if token:
        return token
    if authorization and authorization.startswith("Bearer "):
        return authorization[7:]
    return None


@router.get("/realtime")
async def subscribe(
    request: Request,
    token: Optional[str] = Query(None, description="JWT access token"),
    authorization: Optional[str] = Header(None),
    registry: ConnectionRegistry = Depends(get_registry),
):
    """Open the caller's live event stream.

    Authentication happens before the response starts, so a bad token is
    a plain 401 and no sink is ever created.
    """
    raw = _extract_token(token, authorization)
    if not raw:
        raise HTTPException(status_code=401, detail="Access token required")
    try:
        identity = identity_from_token(raw)
    except TokenError as e:
        logger.info("realtime.subscribe_rejected", reason=str(e))
        raise HTTPException(status_code=401, detail=str(e))

    subscription = LiveSubscription(
        user_id=identity.user_id,
        registry=registry,
        request=request,
        keepalive_seconds=settings.realtime_keepalive_seconds,
        queue_size=settings.realtime_sink_queue_size,
    )
    return StreamingResponse(
        subscription.frames(),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",  # Disable nginx buffering
        },
    )
