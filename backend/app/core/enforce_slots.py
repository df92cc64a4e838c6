"""Slot Enforcement — pure tradability transitions and ownership checks.

Invariants:
    - SLOT_TRANSITIONS is the single source of truth for legal slot status moves
    - TRADE_PENDING is engine-only: owners can neither enter nor leave it directly
    - Every check is PURE: raises a typed error or returns None, never mutates the slot

Design Decisions:
    - Checks raise instead of returning error dicts: callers are transactional services
      that must roll back on the first violation (ADR: no partial writes)
    - Re-setting the current status is allowed as a no-op so toggling is idempotent
"""

from datetime import datetime

from app.core.domain_types import TradeStatus, UserId
from app.core.errors import (
    AuthorizationError, ErrorContext, InvalidStateError, ValidationError,
)
from app.core.repository_protocols import SlotLike


SLOT_TRANSITIONS: dict[TradeStatus, frozenset[TradeStatus]] = {
    TradeStatus.BUSY: frozenset({TradeStatus.TRADABLE}),
    TradeStatus.TRADABLE: frozenset({TradeStatus.BUSY, TradeStatus.TRADE_PENDING}),
    # exchange resets to BUSY, reject restores TRADABLE
    TradeStatus.TRADE_PENDING: frozenset({TradeStatus.BUSY, TradeStatus.TRADABLE}),
}

OWNER_SETTABLE: frozenset[TradeStatus] = frozenset(
    {TradeStatus.BUSY, TradeStatus.TRADABLE},
)

MAX_TITLE_LENGTH: int = 200


def can_transition(current: TradeStatus, target: TradeStatus) -> bool:
    """True when the slot state machine allows current → target."""
    return target in SLOT_TRANSITIONS[current]


def check_time_range(start_time: datetime, end_time: datetime) -> None:
    """A slot must start strictly before it ends."""
    if start_time >= end_time:
        raise ValidationError(
            f"start_time ({start_time.isoformat()}) must be before "
            f"end_time ({end_time.isoformat()})",
            field="end_time",
        )


def check_title(title: str) -> str:
    """Strip and bound the display title. Returns the normalized title."""
    title = title.strip()
    if not title:
        raise ValidationError("title cannot be empty or whitespace", field="title")
    if len(title) > MAX_TITLE_LENGTH:
        raise ValidationError(
            f"title exceeds {MAX_TITLE_LENGTH} characters", field="title",
        )
    return title


def check_slot_owner(slot: SlotLike, caller_id: UserId) -> None:
    """Only the owner may modify or delete a slot."""
    if slot.owner_id != caller_id:
        raise AuthorizationError(
            "Only the slot owner can modify this slot",
            ErrorContext(user_id=str(caller_id), slot_id=str(slot.id)),
        )


def check_not_pending(slot: SlotLike, action: str) -> None:
    """A slot held by a live negotiation is frozen for its owner."""
    if TradeStatus(slot.trade_status) == TradeStatus.TRADE_PENDING:
        raise InvalidStateError(
            f"Cannot {action} a slot with a pending swap request",
            current_state=TradeStatus.TRADE_PENDING.value,
            context=ErrorContext(slot_id=str(slot.id)),
        )


def check_owner_toggle(
    slot: SlotLike, target: TradeStatus, caller_id: UserId,
) -> bool:
    """Validate an owner-initiated status change.

    Returns False when target equals the current status (nothing to write),
    True when the transition must be applied.
    """
    check_slot_owner(slot, caller_id)
    if target not in OWNER_SETTABLE:
        raise ValidationError(
            f"Status {target.value} cannot be set directly",
            field="trade_status",
            context=ErrorContext(slot_id=str(slot.id)),
        )
    check_not_pending(slot, "change the status of")
    current = TradeStatus(slot.trade_status)
    if current == target:
        return False
    if not can_transition(current, target):
        raise InvalidStateError(
            f"Slot cannot move from {current.value} to {target.value}",
            current_state=current.value,
            context=ErrorContext(slot_id=str(slot.id)),
        )
    return True


def check_deletable(slot: SlotLike, caller_id: UserId) -> None:
    """Same rules as toggling: owner only, never while pending."""
    check_slot_owner(slot, caller_id)
    check_not_pending(slot, "delete")
