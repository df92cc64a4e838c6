"""Boundary Protocols — contracts between core and shell.

Invariants:
    - Core NEVER imports from shell — dependency arrows point inward only
    - Precondition checks in core read entities through SlotLike / SwapRequestLike only
    - Profile lookups and change publishing are capabilities injected by the shell

Design Decisions:
    - Protocol over ABC: structural subtyping, ORM rows satisfy SlotLike without inheritance
    - ProfileDirectory is async because implementations do IO; the checks that consume
      SlotLike / SwapRequestLike stay synchronous and pure
"""

from datetime import datetime
from typing import TYPE_CHECKING, Iterable, Protocol
from uuid import UUID

from app.core.domain_types import UserId

if TYPE_CHECKING:
    from app.infrastructure.change_feed import ChangeNotice


class SlotLike(Protocol):
    """Structural contract for an event slot as seen by precondition checks."""
    id: UUID
    owner_id: UUID
    start_time: datetime
    end_time: datetime
    trade_status: str


class SwapRequestLike(Protocol):
    """Structural contract for a swap request as seen by precondition checks."""
    id: UUID
    requester_id: UUID
    receiver_id: UUID
    requester_slot_id: UUID
    receiver_slot_id: UUID
    status: str


class ProfileDirectory(Protocol):
    """External identity capability — resolves user ids to display names."""
    async def resolve_names(self, user_ids: Iterable[UserId]) -> dict[UUID, str]: ...

    async def get(self, user_id: UserId) -> object:
        """The caller's profile; NotFoundError when the user never registered."""
        ...


class ChangePublisher(Protocol):
    """Contract for the change notification fan-out — implemented by shell."""
    def publish(self, notice: "ChangeNotice") -> int: ...
