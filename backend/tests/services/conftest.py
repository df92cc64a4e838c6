"""Service test fixtures — async DB, change feed, seeded users, FastAPI test client.

Invariants:
    - Every test gets a fresh in-memory SQLite database
    - get_db dependency overridden to use the test session factory
    - app.state.change_feed replaced with the per-test feed (lifespan does not run under
      ASGITransport)
    - Services under test share the `test_db` session, so ORM rows returned by fixtures are
      the same identity-map objects the services refresh

Design Decisions:
    - SQLite in-memory: fast, no external dependency; guarded updates behave the same as
      on PostgreSQL (FOR UPDATE is simply omitted)
    - make_slot inserts rows directly: tests can start from any trade status without
      replaying the state machine
"""

from datetime import datetime, timedelta, timezone
from types import SimpleNamespace
from uuid import uuid4

import pytest
from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import (
    AsyncSession, create_async_engine, async_sessionmaker,
)
from httpx import ASGITransport, AsyncClient

from app.core.domain_types import SwapStatus, TradeStatus, UserId
from app.db.base import Base
from app.infrastructure.change_feed import ChangeFeed
from app.infrastructure.database import (
    DatabaseSessionManager, enable_sqlite_foreign_keys, get_db,
)
from app.models import EventSlot, Profile, SwapRequest
from app.services.negotiation_engine import SwapNegotiationEngine
from app.services.profile_directory import SqlProfileDirectory
from app.services.slot_store import SlotStore
from app.services.swap_ledger import SwapLedger
import app.infrastructure.database as db_module
from app.main import app


@pytest.fixture
async def test_engine():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:", echo=False,
    )
    enable_sqlite_foreign_keys(engine)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
async def test_session_factory(test_engine):
    return async_sessionmaker(
        test_engine, class_=AsyncSession, expire_on_commit=False,
    )


@pytest.fixture
async def test_db(test_session_factory):
    async with test_session_factory() as session:
        yield session


@pytest.fixture
def feed():
    return ChangeFeed(queue_size=16)


@pytest.fixture
async def users(test_db):
    """Three registered users: alice, bob, carol."""
    ids = {}
    for name in ("alice", "bob", "carol"):
        user_id = UserId(uuid4())
        test_db.add(Profile(id=user_id, name=name.capitalize()))
        ids[name] = user_id
    await test_db.commit()
    return SimpleNamespace(**ids)


@pytest.fixture
def make_slot(test_db):
    """Factory: insert a slot for owner_id with the given trade status."""
    base = datetime(2026, 11, 2, 9, 0, tzinfo=timezone.utc)
    counter = {"n": 0}

    async def _make_slot(
        owner_id, status=TradeStatus.TRADABLE, title=None, start=None, hours=1,
    ):
        counter["n"] += 1
        start = start or base + timedelta(days=counter["n"])
        slot = EventSlot(
            owner_id=owner_id,
            title=title or f"Shift {counter['n']}",
            start_time=start,
            end_time=start + timedelta(hours=hours),
            trade_status=status.value,
        )
        test_db.add(slot)
        await test_db.commit()
        return slot

    return _make_slot


@pytest.fixture
def slot_store(test_db, feed):
    return SlotStore(test_db, feed, SqlProfileDirectory(test_db))


@pytest.fixture
def ledger(test_db, feed):
    return SwapLedger(test_db, feed, SqlProfileDirectory(test_db))


@pytest.fixture
def engine(test_db, feed):
    return SwapNegotiationEngine(test_db, feed)


@pytest.fixture
def assert_pending_invariant(test_db):
    """TRADE_PENDING iff referenced by exactly one PENDING request."""
    async def _check():
        slots = (await test_db.execute(select(EventSlot))).scalars().all()
        for slot in slots:
            references = await test_db.scalar(
                select(func.count())
                .select_from(SwapRequest)
                .where(SwapRequest.status == SwapStatus.PENDING.value)
                .where(or_(
                    SwapRequest.requester_slot_id == slot.id,
                    SwapRequest.receiver_slot_id == slot.id,
                )),
            )
            pending = slot.trade_status == TradeStatus.TRADE_PENDING.value
            assert pending == (references == 1), (
                f"slot {slot.title}: status={slot.trade_status} references={references}"
            )
    return _check


@pytest.fixture
async def client(test_engine, test_session_factory, feed):
    """FastAPI test client with DB dependency and change feed overridden."""
    async def override_get_db():
        async with test_session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.state.change_feed = feed

    # Patch db_manager for the readiness check, which uses it directly
    original_manager = db_module.db_manager
    fake_manager = DatabaseSessionManager.__new__(DatabaseSessionManager)
    fake_manager.engine = test_engine
    fake_manager._session_factory = test_session_factory
    db_module.db_manager = fake_manager

    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test",
    ) as c:
        yield c

    app.dependency_overrides.clear()
    db_module.db_manager = original_manager


@pytest.fixture
def as_user():
    """Request headers identifying the caller."""
    def _headers(user_id) -> dict:
        return {"X-User-Id": str(user_id)}
    return _headers
