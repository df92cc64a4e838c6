"""Change Stream — SSE feed of slot/request change notices for live views.

Invariants:
    - First event is always `ready`: the client (re)reads current state on (re)connect
    - Every subsequent `change` event is a re-fetch signal, never a delta
    - Request notices are always scoped to the caller; slot notices may be `all` (marketplace)
    - The subscription is released when the client disconnects or the generator is closed

Design Decisions:
    - Heartbeat comment lines keep proxies from closing idle streams and give the loop a
      chance to notice disconnects without a notice arriving
    - SSE framing is plain `data: <json>\\n\\n` lines; clients need no event names
"""

import json
import logging
from typing import AsyncIterator, Awaitable, Callable, Literal

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import StreamingResponse

from app.api.dependencies import get_caller_id, get_change_feed
from app.config import get_settings
from app.core.domain_types import EntityType, UserId
from app.infrastructure.change_feed import ChangeFeed, Subscription, involving

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/changes", tags=["changes"])

# ADR: SSE headers prevent proxy/browser buffering of streamed events.
SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "X-Accel-Buffering": "no",
    "Connection": "keep-alive",
}

HEARTBEAT_LINE = ": keep-alive\n\n"


def sse_line(event: dict) -> str:
    """Format event as SSE data line."""
    return f"data: {json.dumps(event, ensure_ascii=False)}\n\n"


def ready_event(subscription: Subscription) -> dict:
    return {
        "type": "ready",
        "data": {"entity": subscription.entity.value, "subscription": subscription.id},
    }


async def change_events(
    subscription: Subscription,
    is_disconnected: Callable[[], Awaitable[bool]],
    heartbeat_seconds: float,
) -> AsyncIterator[str]:
    """Yield SSE lines for one subscription until the client goes away."""
    try:
        yield sse_line(ready_event(subscription))
        while subscription.active:
            if await is_disconnected():
                break
            notice = await subscription.get(timeout=heartbeat_seconds)
            if notice is None:
                if not subscription.active:
                    break
                yield HEARTBEAT_LINE
                continue
            yield sse_line(notice.to_event())
    finally:
        subscription.close()


@router.get("/stream")
async def stream_changes(
    request: Request,
    entity: EntityType = Query(...),
    scope: Literal["mine", "all"] = Query("mine"),
    caller_id: UserId = Depends(get_caller_id),
    feed: ChangeFeed = Depends(get_change_feed),
):
    """SSE stream of change notices for one entity type."""
    predicate = involving(caller_id)
    if entity == EntityType.SLOTS and scope == "all":
        predicate = None
    subscription = feed.subscribe(entity, predicate)
    return StreamingResponse(
        change_events(
            subscription,
            request.is_disconnected,
            get_settings().change_stream_heartbeat_seconds,
        ),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )
