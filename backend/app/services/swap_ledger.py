"""Swap Request Ledger — swap request storage, display projections, and cleanup.

Invariants:
    - incoming_for / outgoing_for ordered by created_at descending
    - Projections join live slot data and display names; nothing is copied into requests
    - remove_request deletes exactly one terminal request row and never touches slots
    - Status changes are NOT made here — only SwapNegotiationEngine decides requests

Design Decisions:
    - Views are plain dataclasses: routes convert them with from_attributes, services stay
      free of API schema imports
    - Slot summaries may be None when a slot was deleted after the request resolved
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.domain_types import (
    ChangeKind, EntityType, SwapRequestId, SwapStatus, UserId,
)
from app.core.enforce_swaps import check_removable, counterpart_of
from app.core.errors import NotFoundError
from app.core.repository_protocols import ChangePublisher, ProfileDirectory
from app.infrastructure.change_feed import ChangeNotice
from app.infrastructure.database import transaction
from app.models.event_slot import EventSlot
from app.models.swap_request import SwapRequest

logger = logging.getLogger(__name__)


@dataclass
class SlotSummary:
    id: UUID
    owner_id: UUID
    title: str
    start_time: datetime
    end_time: datetime
    trade_status: str


@dataclass
class SwapRequestView:
    """A swap request as a participant sees it, with live slot and name data."""
    id: UUID
    status: str
    created_at: datetime
    resolved_at: datetime | None
    requester_id: UUID
    receiver_id: UUID
    requester_name: str | None
    receiver_name: str | None
    counterpart_name: str | None
    requester_slot: SlotSummary | None
    receiver_slot: SlotSummary | None


def request_notice(request: SwapRequest, kind: ChangeKind) -> ChangeNotice:
    return ChangeNotice(
        entity=EntityType.REQUESTS, entity_id=request.id, kind=kind,
        user_ids=frozenset({request.requester_id, request.receiver_id}),
    )


def _summarize(slot: EventSlot | None) -> SlotSummary | None:
    if slot is None:
        return None
    return SlotSummary(
        id=slot.id,
        owner_id=slot.owner_id,
        title=slot.title,
        start_time=slot.start_time,
        end_time=slot.end_time,
        trade_status=slot.trade_status,
    )


class SwapLedger:
    """Read side of swap requests plus participant cleanup of resolved ones."""

    def __init__(
        self,
        db: AsyncSession,
        publisher: ChangePublisher,
        profiles: ProfileDirectory | None = None,
    ):
        self.db = db
        self.publisher = publisher
        self.profiles = profiles

    async def get(
        self, request_id: SwapRequestId, for_update: bool = False,
    ) -> SwapRequest:
        query = select(SwapRequest).where(SwapRequest.id == request_id)
        if for_update:
            query = query.with_for_update()
        result = await self.db.execute(query)
        request = result.scalar_one_or_none()
        if request is None:
            raise NotFoundError("SwapRequest", str(request_id))
        return request

    async def incoming_for(self, user_id: UserId) -> list[SwapRequestView]:
        return await self._project(SwapRequest.receiver_id == user_id, user_id)

    async def outgoing_for(self, user_id: UserId) -> list[SwapRequestView]:
        return await self._project(SwapRequest.requester_id == user_id, user_id)

    async def pending_incoming_count(self, user_id: UserId) -> int:
        result = await self.db.execute(
            select(func.count())
            .select_from(SwapRequest)
            .where(SwapRequest.receiver_id == user_id)
            .where(SwapRequest.status == SwapStatus.PENDING.value),
        )
        return result.scalar_one()

    async def remove_request(
        self, request_id: SwapRequestId, caller_id: UserId,
    ) -> None:
        async with transaction(self.db):
            request = await self.get(request_id, for_update=True)
            check_removable(request, caller_id)
            notice = request_notice(request, ChangeKind.DELETED)
            await self.db.delete(request)
        logger.info(
            "Swap request removed",
            extra={"request_id": request_id, "user_id": caller_id},
        )
        self.publisher.publish(notice)

    async def _project(self, criterion, viewer_id: UserId) -> list[SwapRequestView]:
        result = await self.db.execute(
            select(SwapRequest)
            .where(criterion)
            .order_by(SwapRequest.created_at.desc(), SwapRequest.id),
        )
        requests = result.scalars().all()
        names: dict = {}
        if self.profiles and requests:
            names = await self.profiles.resolve_names(
                uid for r in requests for uid in (r.requester_id, r.receiver_id)
            )
        return [
            SwapRequestView(
                id=r.id,
                status=r.status,
                created_at=r.created_at,
                resolved_at=r.resolved_at,
                requester_id=r.requester_id,
                receiver_id=r.receiver_id,
                requester_name=names.get(r.requester_id),
                receiver_name=names.get(r.receiver_id),
                counterpart_name=names.get(counterpart_of(r, viewer_id)),
                requester_slot=_summarize(r.requester_slot),
                receiver_slot=_summarize(r.receiver_slot),
            )
            for r in requests
        ]
