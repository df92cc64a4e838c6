"""Swap Enforcement — pure request lifecycle and proposal preconditions.

Invariants:
    - REQUEST_TRANSITIONS: PENDING → {ACCEPTED, REJECTED}; both terminal
    - Only the receiver accepts; requester and receiver may both reject (symmetric cancel)
    - Only terminal requests may be removed, and only by a participant
    - Check order is fixed: existence (shell) → authorization → state

Design Decisions:
    - Proposal preconditions evaluated on a read snapshot here, then re-proven at commit
      time by guarded updates in the engine (ADR: marketplace view is always stale)
    - Not-TRADABLE is a ConflictError, not InvalidStateError: from the proposer's point of
      view someone else changed the slot since it was listed
"""

from uuid import UUID

from app.core.domain_types import SwapStatus, TradeStatus, UserId
from app.core.errors import (
    AuthorizationError, ConflictError, ErrorContext, InvalidStateError,
    ValidationError,
)
from app.core.repository_protocols import SlotLike, SwapRequestLike


REQUEST_TRANSITIONS: dict[SwapStatus, frozenset[SwapStatus]] = {
    SwapStatus.PENDING: frozenset({SwapStatus.ACCEPTED, SwapStatus.REJECTED}),
    SwapStatus.ACCEPTED: frozenset(),
    SwapStatus.REJECTED: frozenset(),
}

TERMINAL_STATUSES: frozenset[SwapStatus] = frozenset(
    status for status, targets in REQUEST_TRANSITIONS.items() if not targets
)


def is_terminal(status: SwapStatus) -> bool:
    return status in TERMINAL_STATUSES


def check_proposal(
    requester_id: UserId,
    requester_slot: SlotLike,
    receiver_slot: SlotLike,
    expected_receiver_id: UserId | None = None,
) -> None:
    """Validate a swap proposal against a read snapshot of both slots."""
    ctx = ErrorContext(user_id=str(requester_id), slot_id=str(receiver_slot.id))
    if requester_slot.id == receiver_slot.id:
        raise ValidationError(
            "A slot cannot be swapped with itself", field="receiver_slot_id",
            context=ctx,
        )
    if requester_slot.owner_id != requester_id:
        raise AuthorizationError(
            "You can only offer slots you own",
            ErrorContext(user_id=str(requester_id), slot_id=str(requester_slot.id)),
        )
    if receiver_slot.owner_id == requester_id:
        raise ValidationError(
            "You cannot request a swap for your own slot",
            field="receiver_slot_id", context=ctx,
        )
    if (
        expected_receiver_id is not None
        and receiver_slot.owner_id != expected_receiver_id
    ):
        raise ConflictError(
            "The requested slot has changed owner since it was listed", ctx,
        )
    for slot in (requester_slot, receiver_slot):
        if TradeStatus(slot.trade_status) != TradeStatus.TRADABLE:
            raise ConflictError(
                f"Slot '{slot.id}' is no longer available for trading "
                f"(status {slot.trade_status})",
                ErrorContext(user_id=str(requester_id), slot_id=str(slot.id)),
            )


def check_decision(
    request: SwapRequestLike, caller_id: UserId, target: SwapStatus,
) -> None:
    """Authorize and validate a PENDING → terminal decision."""
    ctx = ErrorContext(user_id=str(caller_id), request_id=str(request.id))
    if target == SwapStatus.ACCEPTED:
        if request.receiver_id != caller_id:
            raise AuthorizationError(
                "Only the receiver can accept a swap request", ctx,
            )
    elif target == SwapStatus.REJECTED:
        if caller_id not in (request.requester_id, request.receiver_id):
            raise AuthorizationError(
                "Only a participant can reject a swap request", ctx,
            )
    else:
        raise ValidationError(
            f"{target.value} is not a decision", field="status", context=ctx,
        )
    check_transition(request, target)


def check_transition(request: SwapRequestLike, target: SwapStatus) -> None:
    """Raise InvalidStateError unless REQUEST_TRANSITIONS allows it."""
    current = SwapStatus(request.status)
    if target not in REQUEST_TRANSITIONS[current]:
        raise InvalidStateError(
            f"Swap request is already {current.value}",
            current_state=current.value,
            context=ErrorContext(request_id=str(request.id)),
        )


def check_removable(request: SwapRequestLike, caller_id: UserId) -> None:
    """Participants may clean up resolved requests; live ones must be decided first."""
    if caller_id not in (request.requester_id, request.receiver_id):
        raise AuthorizationError(
            "Only a participant can delete a swap request",
            ErrorContext(user_id=str(caller_id), request_id=str(request.id)),
        )
    current = SwapStatus(request.status)
    if not is_terminal(current):
        raise InvalidStateError(
            "Pending swap requests must be accepted or rejected before deletion",
            current_state=current.value,
            context=ErrorContext(request_id=str(request.id)),
        )


def counterpart_of(request: SwapRequestLike, user_id: UUID) -> UUID:
    """The other participant of the request, from user_id's point of view."""
    if user_id == request.requester_id:
        return request.receiver_id
    return request.requester_id
