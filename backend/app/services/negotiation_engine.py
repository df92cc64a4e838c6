"""Swap Negotiation Engine — propose, accept and reject swap requests atomically.

Invariants:
    - Each operation is ONE transaction: snapshot checks (core.enforce_swaps), then guarded
      updates whose row counts re-prove the preconditions at commit time
    - propose: both slots TRADABLE → TRADE_PENDING and a PENDING request inserted, or nothing
    - accept: request ACCEPTED, owners exchanged, both slots BUSY, or nothing
    - reject: request REJECTED, both slots back to TRADABLE, owners untouched, or nothing
    - A second decision on the same request fails with InvalidStateError and writes nothing
    - No automatic retry: stale callers get ConflictError / InvalidStateError and re-fetch

Design Decisions:
    - Guarded UPDATE ... WHERE <expected state> + rowcount check instead of trusting the read:
      correct under READ COMMITTED and under SQLite's single-writer lock alike
    - SELECT ... FOR UPDATE on the rows being decided (no-op on SQLite) so Postgres
      serializes racing deciders before the snapshot check runs
    - The request is closed BEFORE the slots move: a concurrent decider loses on the
      request row and never reaches the slot updates
    - Notices published after commit only; a rolled-back operation publishes nothing
"""

import logging
from datetime import datetime, timezone

from sqlalchemy import exists, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.domain_types import (
    ChangeKind, SlotId, SwapRequestId, SwapStatus, TradeStatus, UserId,
)
from app.core.enforce_swaps import check_decision, check_proposal
from app.core.errors import ConflictError, ErrorContext, InvalidStateError
from app.core.repository_protocols import ChangePublisher
from app.infrastructure.database import transaction
from app.models.event_slot import EventSlot
from app.models.swap_request import SwapRequest
from app.services.slot_store import SlotStore, slot_notice
from app.services.swap_ledger import SwapLedger, request_notice

logger = logging.getLogger(__name__)


class SwapNegotiationEngine:
    """Validates and executes swap request state transitions."""

    def __init__(self, db: AsyncSession, publisher: ChangePublisher):
        self.db = db
        self.publisher = publisher
        self.slots = SlotStore(db, publisher)
        self.ledger = SwapLedger(db, publisher)

    # ─── Operations ──────────────────────────────────────────────

    async def propose_swap(
        self,
        requester_id: UserId,
        requester_slot_id: SlotId,
        receiver_slot_id: SlotId,
        expected_receiver_id: UserId | None = None,
    ) -> SwapRequest:
        async with transaction(self.db):
            requester_slot = await self.slots.get(requester_slot_id, for_update=True)
            receiver_slot = await self.slots.get(receiver_slot_id, for_update=True)
            check_proposal(
                requester_id, requester_slot, receiver_slot, expected_receiver_id,
            )
            receiver_id = receiver_slot.owner_id
            await self._claim_slot(requester_slot.id, requester_id)
            await self._claim_slot(receiver_slot.id, receiver_id)
            request = SwapRequest(
                requester_id=requester_id,
                receiver_id=receiver_id,
                requester_slot_id=requester_slot.id,
                receiver_slot_id=receiver_slot.id,
                status=SwapStatus.PENDING.value,
                requester_slot=requester_slot,
                receiver_slot=receiver_slot,
            )
            self.db.add(request)
            await self.db.flush()
            await self.db.refresh(requester_slot)
            await self.db.refresh(receiver_slot)
        logger.info(
            "Swap proposed",
            extra={"request_id": request.id, "user_id": requester_id},
        )
        self._publish(request, ChangeKind.CREATED)
        return request

    async def accept_swap(
        self, request_id: SwapRequestId, caller_id: UserId,
    ) -> SwapRequest:
        """Receiver accepts: ownership of both slots is exchanged atomically."""
        return await self._decide(request_id, caller_id, SwapStatus.ACCEPTED)

    async def reject_swap(
        self, request_id: SwapRequestId, caller_id: UserId,
    ) -> SwapRequest:
        """Either participant closes the request; both slots become TRADABLE again."""
        return await self._decide(request_id, caller_id, SwapStatus.REJECTED)

    # ─── Transaction steps ───────────────────────────────────────

    async def _decide(
        self, request_id: SwapRequestId, caller_id: UserId, target: SwapStatus,
    ) -> SwapRequest:
        async with transaction(self.db):
            request = await self.ledger.get(request_id, for_update=True)
            check_decision(request, caller_id, target)
            await self._close_request(request, target)
            if target == SwapStatus.ACCEPTED:
                await self._release_slot(
                    request.requester_slot_id, request.requester_id,
                    new_owner_id=request.receiver_id, status=TradeStatus.BUSY,
                )
                await self._release_slot(
                    request.receiver_slot_id, request.receiver_id,
                    new_owner_id=request.requester_id, status=TradeStatus.BUSY,
                )
            else:
                await self._release_slot(
                    request.requester_slot_id, request.requester_id,
                    new_owner_id=request.requester_id, status=TradeStatus.TRADABLE,
                )
                await self._release_slot(
                    request.receiver_slot_id, request.receiver_id,
                    new_owner_id=request.receiver_id, status=TradeStatus.TRADABLE,
                )
            await self.db.refresh(request, attribute_names=["status", "resolved_at"])
            for slot in (request.requester_slot, request.receiver_slot):
                if slot is not None:
                    await self.db.refresh(slot)
        logger.info(
            f"Swap {target.value.lower()}",
            extra={"request_id": request.id, "user_id": caller_id},
        )
        self._publish(request, ChangeKind.UPDATED)
        return request

    async def _claim_slot(self, slot_id: SlotId, owner_id: UserId) -> None:
        """TRADABLE → TRADE_PENDING, only if still owned, tradable and unreferenced."""
        already_referenced = exists().where(
            SwapRequest.status == SwapStatus.PENDING.value,
            or_(
                SwapRequest.requester_slot_id == slot_id,
                SwapRequest.receiver_slot_id == slot_id,
            ),
        )
        result = await self.db.execute(
            update(EventSlot)
            .where(EventSlot.id == slot_id)
            .where(EventSlot.owner_id == owner_id)
            .where(EventSlot.trade_status == TradeStatus.TRADABLE.value)
            .where(~already_referenced)
            .values(trade_status=TradeStatus.TRADE_PENDING.value)
            .execution_options(synchronize_session=False),
        )
        if result.rowcount != 1:
            raise ConflictError(
                f"Slot '{slot_id}' was claimed by another request; reload and retry",
                ErrorContext(user_id=str(owner_id), slot_id=str(slot_id)),
            )

    async def _close_request(self, request: SwapRequest, target: SwapStatus) -> None:
        """PENDING → terminal. Zero rows means another decision already won."""
        result = await self.db.execute(
            update(SwapRequest)
            .where(SwapRequest.id == request.id)
            .where(SwapRequest.status == SwapStatus.PENDING.value)
            .values(status=target.value, resolved_at=datetime.now(timezone.utc))
            .execution_options(synchronize_session=False),
        )
        if result.rowcount != 1:
            current = await self.db.scalar(
                select(SwapRequest.status).where(SwapRequest.id == request.id),
            )
            raise InvalidStateError(
                f"Swap request is already {current}",
                current_state=str(current),
                context=ErrorContext(request_id=str(request.id)),
            )

    async def _release_slot(
        self,
        slot_id: SlotId,
        expected_owner_id: UserId,
        new_owner_id: UserId,
        status: TradeStatus,
    ) -> None:
        """TRADE_PENDING → status (and owner), only if the hold is still intact."""
        result = await self.db.execute(
            update(EventSlot)
            .where(EventSlot.id == slot_id)
            .where(EventSlot.owner_id == expected_owner_id)
            .where(EventSlot.trade_status == TradeStatus.TRADE_PENDING.value)
            .values(owner_id=new_owner_id, trade_status=status.value)
            .execution_options(synchronize_session=False),
        )
        if result.rowcount != 1:
            raise ConflictError(
                f"Slot '{slot_id}' is no longer held by this request",
                ErrorContext(slot_id=str(slot_id)),
            )

    def _publish(self, request: SwapRequest, kind: ChangeKind) -> None:
        self.publisher.publish(request_notice(request, kind))
        participants = (request.requester_id, request.receiver_id)
        for slot_id in (request.requester_slot_id, request.receiver_slot_id):
            self.publisher.publish(
                slot_notice(slot_id, ChangeKind.UPDATED, *participants),
            )
