"""ORM Models — SQLAlchemy declarative models for all persisted entities.

Invariants:
    - All models inherit from Base (db/base.py)
    - Two owned relations (event_slots, swap_requests) plus the external profiles relation

Design Decisions:
    - One file per entity for locality
    - All models imported here so SQLAlchemy resolves string-based relationship()
      references before any query runs (ADR: standard SQLAlchemy pattern)
"""

from app.models.profile import Profile  # noqa: F401
from app.models.event_slot import EventSlot  # noqa: F401
from app.models.swap_request import SwapRequest  # noqa: F401
