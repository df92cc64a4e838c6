"""Route Dependencies — caller identity and per-request service wiring.

Invariants:
    - Caller identity comes from the X-User-Id header set by the upstream auth layer
    - Every service built here shares the request's DB session and the app's ChangeFeed
    - Routes obtain services only through these dependencies (no ORM writes in routes)

Design Decisions:
    - ChangeFeed read from app.state (created in lifespan), not imported as a module global
"""

from uuid import UUID

from fastapi import Depends, Header, Request
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.domain_types import UserId
from app.infrastructure.change_feed import ChangeFeed
from app.infrastructure.database import get_db
from app.services.negotiation_engine import SwapNegotiationEngine
from app.services.profile_directory import SqlProfileDirectory
from app.services.slot_store import SlotStore
from app.services.swap_ledger import SwapLedger


async def get_caller_id(
    x_user_id: UUID = Header(..., alias="X-User-Id"),
) -> UserId:
    return UserId(x_user_id)


def get_change_feed(request: Request) -> ChangeFeed:
    return request.app.state.change_feed


def get_profile_directory(
    db: AsyncSession = Depends(get_db),
) -> SqlProfileDirectory:
    return SqlProfileDirectory(db)


def get_slot_store(
    db: AsyncSession = Depends(get_db),
    feed: ChangeFeed = Depends(get_change_feed),
) -> SlotStore:
    return SlotStore(db, feed, SqlProfileDirectory(db))


def get_swap_ledger(
    db: AsyncSession = Depends(get_db),
    feed: ChangeFeed = Depends(get_change_feed),
) -> SwapLedger:
    return SwapLedger(db, feed, SqlProfileDirectory(db))


def get_engine(
    db: AsyncSession = Depends(get_db),
    feed: ChangeFeed = Depends(get_change_feed),
) -> SwapNegotiationEngine:
    return SwapNegotiationEngine(db, feed)
