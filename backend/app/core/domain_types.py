"""Domain Types — rich types that replace bare primitives across the codebase.

Invariants:
    - UserId, SlotId, SwapRequestId wrap UUIDs — never use bare UUID in domain logic
    - All valid states encoded as Enums — no raw string matching
    - Enum values are the exact strings persisted in the database

Design Decisions:
    - NewType over dataclass wrappers: zero runtime cost, full type-checker support
    - str Enums: serialize to JSON without custom encoders, compare equal to DB strings
"""

from enum import Enum
from typing import NewType
from uuid import UUID


# ─── Identity Types ──────────────────────────────────────────────

UserId = NewType("UserId", UUID)
SlotId = NewType("SlotId", UUID)
SwapRequestId = NewType("SwapRequestId", UUID)


# ─── Enums ───────────────────────────────────────────────────────

class TradeStatus(str, Enum):
    """Slot tradability — maps to event_slots.trade_status."""
    BUSY = "BUSY"
    TRADABLE = "TRADABLE"
    TRADE_PENDING = "TRADE_PENDING"


class SwapStatus(str, Enum):
    """Swap request lifecycle — maps to swap_requests.status."""
    PENDING = "PENDING"
    ACCEPTED = "ACCEPTED"
    REJECTED = "REJECTED"


class EntityType(str, Enum):
    """Change feed channels, one per persisted entity type."""
    SLOTS = "slots"
    REQUESTS = "requests"


class ChangeKind(str, Enum):
    """What happened to the entity named in a change notice."""
    CREATED = "created"
    UPDATED = "updated"
    DELETED = "deleted"
