"""Event Slot Store — owner-facing slot operations and read projections.

Invariants:
    - Every mutation runs inside transaction(): checks + write commit together or not at all
    - Owner status changes are guarded updates on the observed status; a lost race is a
      ConflictError, never a silent overwrite
    - TRADE_PENDING is never entered or left here — only the negotiation engine moves it
    - Listings are ordered by start_time ascending
    - Change notices are published only after commit

Design Decisions:
    - Authorization and transition rules live in core.enforce_slots so the engine and the
      store cannot drift apart (ADR: single precondition source)
    - list_tradable joins owner names through ProfileDirectory, not an ORM relationship:
      profiles are an external identity source
    - create_slot resolves the owner's profile first: an unregistered caller is a
      NotFoundError, not a foreign-key IntegrityError surfacing as a conflict
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.domain_types import (
    ChangeKind, EntityType, SlotId, TradeStatus, UserId,
)
from app.core.enforce_slots import (
    check_deletable, check_owner_toggle, check_time_range, check_title,
)
from app.core.errors import ConflictError, ErrorContext, NotFoundError
from app.core.repository_protocols import ChangePublisher, ProfileDirectory
from app.infrastructure.change_feed import ChangeNotice
from app.infrastructure.database import transaction
from app.models.event_slot import EventSlot
from app.services.profile_directory import SqlProfileDirectory

logger = logging.getLogger(__name__)


@dataclass
class MarketplaceSlot:
    """A tradable slot together with its owner's display name."""
    id: SlotId
    owner_id: UserId
    owner_name: str | None
    title: str
    start_time: datetime
    end_time: datetime
    trade_status: str


def as_utc(value: datetime) -> datetime:
    """Naive datetimes are taken to be UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def slot_notice(slot_id: SlotId, kind: ChangeKind, *owner_ids: UserId) -> ChangeNotice:
    return ChangeNotice(
        entity=EntityType.SLOTS, entity_id=slot_id, kind=kind,
        user_ids=frozenset(owner_ids),
    )


class SlotStore:
    """Slot persistence behind the owner's create/toggle/delete operations."""

    def __init__(
        self,
        db: AsyncSession,
        publisher: ChangePublisher,
        profiles: ProfileDirectory | None = None,
    ):
        self.db = db
        self.publisher = publisher
        self.profiles = profiles or SqlProfileDirectory(db)

    async def get(self, slot_id: SlotId, for_update: bool = False) -> EventSlot:
        query = select(EventSlot).where(EventSlot.id == slot_id)
        if for_update:
            query = query.with_for_update()
        result = await self.db.execute(query)
        slot = result.scalar_one_or_none()
        if slot is None:
            raise NotFoundError("EventSlot", str(slot_id))
        return slot

    async def create_slot(
        self,
        owner_id: UserId,
        title: str,
        start_time: datetime,
        end_time: datetime,
    ) -> EventSlot:
        start_time, end_time = as_utc(start_time), as_utc(end_time)
        check_time_range(start_time, end_time)
        title = check_title(title)
        async with transaction(self.db):
            await self.profiles.get(owner_id)
            slot = EventSlot(
                owner_id=owner_id,
                title=title,
                start_time=start_time,
                end_time=end_time,
                trade_status=TradeStatus.BUSY.value,
            )
            self.db.add(slot)
            await self.db.flush()
        logger.info(
            "Slot created", extra={"slot_id": slot.id, "user_id": owner_id},
        )
        self.publisher.publish(slot_notice(slot.id, ChangeKind.CREATED, owner_id))
        return slot

    async def set_trade_status(
        self, slot_id: SlotId, target: TradeStatus, caller_id: UserId,
    ) -> EventSlot:
        async with transaction(self.db):
            slot = await self.get(slot_id, for_update=True)
            observed = TradeStatus(slot.trade_status)
            if not check_owner_toggle(slot, target, caller_id):
                return slot
            result = await self.db.execute(
                update(EventSlot)
                .where(EventSlot.id == slot_id)
                .where(EventSlot.owner_id == caller_id)
                .where(EventSlot.trade_status == observed.value)
                .values(trade_status=target.value)
                .execution_options(synchronize_session=False),
            )
            if result.rowcount != 1:
                raise ConflictError(
                    "Slot changed while updating its status; reload and retry",
                    ErrorContext(user_id=str(caller_id), slot_id=str(slot_id)),
                )
            await self.db.refresh(slot)
        logger.info(
            f"Slot status {observed.value} -> {target.value}",
            extra={"slot_id": slot_id, "user_id": caller_id},
        )
        self.publisher.publish(slot_notice(slot.id, ChangeKind.UPDATED, caller_id))
        return slot

    async def delete_slot(self, slot_id: SlotId, caller_id: UserId) -> None:
        async with transaction(self.db):
            slot = await self.get(slot_id, for_update=True)
            check_deletable(slot, caller_id)
            await self.db.delete(slot)
        logger.info("Slot deleted", extra={"slot_id": slot_id, "user_id": caller_id})
        self.publisher.publish(slot_notice(slot_id, ChangeKind.DELETED, caller_id))

    async def list_by_owner(
        self, owner_id: UserId, status: TradeStatus | None = None,
    ) -> list[EventSlot]:
        query = select(EventSlot).where(EventSlot.owner_id == owner_id)
        if status is not None:
            query = query.where(EventSlot.trade_status == status.value)
        query = query.order_by(EventSlot.start_time.asc(), EventSlot.id)
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def list_tradable(self, excluding_owner_id: UserId) -> list[MarketplaceSlot]:
        """Marketplace projection: other users' TRADABLE slots with owner names."""
        result = await self.db.execute(
            select(EventSlot)
            .where(EventSlot.trade_status == TradeStatus.TRADABLE.value)
            .where(EventSlot.owner_id != excluding_owner_id)
            .order_by(EventSlot.start_time.asc(), EventSlot.id),
        )
        slots = result.scalars().all()
        names = await self.profiles.resolve_names(s.owner_id for s in slots)
        return [
            MarketplaceSlot(
                id=s.id,
                owner_id=s.owner_id,
                owner_name=names.get(s.owner_id),
                title=s.title,
                start_time=s.start_time,
                end_time=s.end_time,
                trade_status=s.trade_status,
            )
            for s in slots
        ]
