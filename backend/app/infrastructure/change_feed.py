"""Change Feed — in-process publish/subscribe of "something changed, re-fetch" notices.

Invariants:
    - A notice carries identity only (entity type, id, kind, affected users), never a delta
    - Delivery is at-least-once best effort: a full subscriber queue drops the new notice
    - No replay: a subscriber reconciles by re-reading current state on (re)connect
    - No ordering guarantee across independent mutations
    - unsubscribe() (or leaving the subscription context) releases the queue immediately
      and ends a consumer already blocked in get() or `async for`

Design Decisions:
    - One ChangeFeed object per application (created in lifespan, held on app.state):
      no module-level subscriber list
    - Bounded asyncio.Queue per subscription: a slow SSE client cannot grow memory, and
      one queued signal already forces the re-fetch a dropped one would have caused
    - publish() is synchronous (put_nowait): engine calls it after commit without awaiting
"""

import asyncio
import itertools
import logging
from dataclasses import dataclass, field
from typing import Callable
from uuid import UUID

from app.core.domain_types import ChangeKind, EntityType

logger = logging.getLogger(__name__)

DEFAULT_QUEUE_SIZE = 64

# Queued by unsubscribe() to wake a consumer blocked on an empty queue
_CLOSED = object()


@dataclass(frozen=True)
class ChangeNotice:
    """Opaque re-fetch signal for one mutated entity."""
    entity: EntityType
    entity_id: UUID
    kind: ChangeKind
    user_ids: frozenset[UUID] = field(default_factory=frozenset)

    def to_event(self) -> dict:
        """Convert to SSE change event."""
        return {
            "type": "change",
            "data": {
                "entity": self.entity.value,
                "id": str(self.entity_id),
                "kind": self.kind.value,
            },
        }


NoticeFilter = Callable[[ChangeNotice], bool]


def involving(user_id: UUID) -> NoticeFilter:
    """Filter for notices touching user_id (slot owner or request participant)."""
    def _matches(notice: ChangeNotice) -> bool:
        return user_id in notice.user_ids
    return _matches


class Subscription:
    """A registered interest in one entity type, drained as an async iterator."""

    def __init__(
        self,
        feed: "ChangeFeed",
        subscription_id: int,
        entity: EntityType,
        predicate: NoticeFilter | None,
        queue_size: int,
    ):
        self._feed = feed
        self.id = subscription_id
        self.entity = entity
        self._predicate = predicate
        self._queue: asyncio.Queue[ChangeNotice] = asyncio.Queue(maxsize=queue_size)
        self.dropped = 0

    def _wake(self) -> None:
        """Release a consumer waiting on the queue. A full queue needs no wake-up."""
        try:
            self._queue.put_nowait(_CLOSED)
        except asyncio.QueueFull:
            pass

    @property
    def active(self) -> bool:
        return self._feed.is_subscribed(self)

    def matches(self, notice: ChangeNotice) -> bool:
        if notice.entity != self.entity:
            return False
        return self._predicate is None or self._predicate(notice)

    def offer(self, notice: ChangeNotice) -> bool:
        """Enqueue without blocking. Returns False when the notice was dropped."""
        try:
            self._queue.put_nowait(notice)
        except asyncio.QueueFull:
            self.dropped += 1
            return False
        return True

    def pending(self) -> int:
        return self._queue.qsize()

    async def get(self, timeout: float | None = None) -> ChangeNotice | None:
        """Next notice, or None when timeout elapses first."""
        if timeout is None:
            item = await self._queue.get()
        else:
            try:
                item = await asyncio.wait_for(self._queue.get(), timeout)
            except asyncio.TimeoutError:
                return None
        return None if item is _CLOSED else item

    def close(self) -> None:
        self._feed.unsubscribe(self)

    def __aiter__(self):
        return self

    async def __anext__(self) -> ChangeNotice:
        if not self.active and self._queue.empty():
            raise StopAsyncIteration
        item = await self._queue.get()
        if item is _CLOSED:
            raise StopAsyncIteration
        return item

    async def __aenter__(self) -> "Subscription":
        return self

    async def __aexit__(self, *exc_info) -> None:
        self.close()


class ChangeFeed:
    """Fan-out of change notices to matching subscriptions."""

    def __init__(self, queue_size: int = DEFAULT_QUEUE_SIZE):
        self._queue_size = queue_size
        self._subscriptions: dict[int, Subscription] = {}
        self._ids = itertools.count(1)

    @property
    def subscriber_count(self) -> int:
        return len(self._subscriptions)

    def subscribe(
        self, entity: EntityType, predicate: NoticeFilter | None = None,
    ) -> Subscription:
        subscription = Subscription(
            self, next(self._ids), entity, predicate, self._queue_size,
        )
        self._subscriptions[subscription.id] = subscription
        logger.info(
            f"Subscription {subscription.id} opened",
            extra={"entity": entity.value, "subscribers": self.subscriber_count},
        )
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        """Idempotent: unknown or already-closed subscriptions are ignored."""
        if self._subscriptions.pop(subscription.id, None) is not None:
            subscription._wake()
            logger.info(
                f"Subscription {subscription.id} closed",
                extra={
                    "entity": subscription.entity.value,
                    "subscribers": self.subscriber_count,
                },
            )

    def is_subscribed(self, subscription: Subscription) -> bool:
        return self._subscriptions.get(subscription.id) is subscription

    def publish(self, notice: ChangeNotice) -> int:
        """Deliver to every matching subscription. Returns how many accepted it."""
        delivered = 0
        for subscription in list(self._subscriptions.values()):
            if not subscription.matches(notice):
                continue
            if subscription.offer(notice):
                delivered += 1
            else:
                logger.warning(
                    f"Subscription {subscription.id} queue full, notice dropped",
                    extra={"entity": notice.entity.value},
                )
        return delivered
