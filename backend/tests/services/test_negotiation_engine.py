"""Swap Negotiation Engine — propose/accept/reject as atomic state transitions.

Invariants:
    - A slot is TRADE_PENDING iff exactly one PENDING request references it
    - Accept exchanges owners and leaves both slots BUSY
    - Reject restores both slots to TRADABLE with owners unchanged
    - A failed operation writes nothing and publishes nothing

Design Decisions:
    - Objects are refreshed after a failed call: rollback expires the identity map
    - The pure checks are monkeypatched out in a few tests so the guarded UPDATEs are the
      only line of defense, which is what a lost race looks like at commit time
"""

from uuid import uuid4

import pytest
from sqlalchemy import select, update

from app.core.domain_types import EntityType, SwapStatus, TradeStatus
from app.core.errors import (
    AuthorizationError, ConflictError, InvalidStateError, NotFoundError,
    ValidationError,
)
from app.models import EventSlot, SwapRequest
import app.services.negotiation_engine as engine_module


@pytest.fixture
async def pair(users, make_slot):
    """Alice's and Bob's TRADABLE slots."""
    mine = await make_slot(users.alice, title="Alice standup")
    theirs = await make_slot(users.bob, title="Bob retro")
    return mine, theirs


async def _request_count(test_db) -> int:
    result = await test_db.execute(select(SwapRequest))
    return len(result.scalars().all())


# ─── propose ─────────────────────────────────────────────────────

async def test_propose_marks_both_slots_pending(engine, users, pair, assert_pending_invariant):
    mine, theirs = pair
    request = await engine.propose_swap(users.alice, mine.id, theirs.id)

    assert request.status == SwapStatus.PENDING.value
    assert request.requester_id == users.alice
    assert request.receiver_id == users.bob
    assert mine.trade_status == TradeStatus.TRADE_PENDING.value
    assert theirs.trade_status == TradeStatus.TRADE_PENDING.value
    assert request.resolved_at is None
    await assert_pending_invariant()


async def test_propose_with_matching_expected_receiver(engine, users, pair):
    mine, theirs = pair
    request = await engine.propose_swap(
        users.alice, mine.id, theirs.id, expected_receiver_id=users.bob,
    )
    assert request.receiver_id == users.bob


async def test_propose_stale_receiver_writes_nothing(engine, users, pair, test_db):
    mine, theirs = pair
    with pytest.raises(ConflictError):
        await engine.propose_swap(
            users.alice, mine.id, theirs.id, expected_receiver_id=users.carol,
        )
    await test_db.refresh(mine)
    assert mine.trade_status == TradeStatus.TRADABLE.value
    assert await _request_count(test_db) == 0


async def test_propose_busy_slot_is_conflict(engine, users, make_slot, test_db):
    mine = await make_slot(users.alice)
    theirs = await make_slot(users.bob, status=TradeStatus.BUSY)

    with pytest.raises(ConflictError):
        await engine.propose_swap(users.alice, mine.id, theirs.id)

    await test_db.refresh(mine)
    assert mine.trade_status == TradeStatus.TRADABLE.value


async def test_propose_someone_elses_slot_is_forbidden(engine, users, make_slot):
    bobs = await make_slot(users.bob)
    carols = await make_slot(users.carol)
    with pytest.raises(AuthorizationError):
        await engine.propose_swap(users.alice, bobs.id, carols.id)


async def test_propose_for_own_slot_is_invalid(engine, users, make_slot):
    first = await make_slot(users.alice)
    second = await make_slot(users.alice)
    with pytest.raises(ValidationError):
        await engine.propose_swap(users.alice, first.id, second.id)


async def test_propose_unknown_slot_is_not_found(engine, users, pair):
    mine, _ = pair
    with pytest.raises(NotFoundError):
        await engine.propose_swap(users.alice, mine.id, uuid4())


async def test_second_proposal_for_same_slot_loses(
    engine, users, pair, make_slot, test_db, assert_pending_invariant,
):
    mine, theirs = pair
    carols = await make_slot(users.carol)
    await engine.propose_swap(users.alice, mine.id, theirs.id)

    with pytest.raises(ConflictError):
        await engine.propose_swap(users.carol, carols.id, theirs.id)

    await test_db.refresh(carols)
    assert carols.trade_status == TradeStatus.TRADABLE.value
    assert await _request_count(test_db) == 1
    await assert_pending_invariant()


async def test_claim_guard_rejects_untradable_slot(
    engine, users, make_slot, test_db, monkeypatch,
):
    """With the snapshot check skipped, the guarded update still refuses a BUSY slot."""
    monkeypatch.setattr(engine_module, "check_proposal", lambda *a, **kw: None)
    mine = await make_slot(users.alice)
    theirs = await make_slot(users.bob, status=TradeStatus.BUSY)

    with pytest.raises(ConflictError):
        await engine.propose_swap(users.alice, mine.id, theirs.id)

    await test_db.refresh(mine)
    await test_db.refresh(theirs)
    assert mine.trade_status == TradeStatus.TRADABLE.value
    assert theirs.trade_status == TradeStatus.BUSY.value
    assert await _request_count(test_db) == 0


# ─── accept ──────────────────────────────────────────────────────

async def test_accept_exchanges_owners(engine, users, pair, assert_pending_invariant):
    mine, theirs = pair
    request = await engine.propose_swap(users.alice, mine.id, theirs.id)

    accepted = await engine.accept_swap(request.id, users.bob)

    assert accepted.status == SwapStatus.ACCEPTED.value
    assert accepted.resolved_at is not None
    assert mine.owner_id == users.bob
    assert theirs.owner_id == users.alice
    assert mine.trade_status == TradeStatus.BUSY.value
    assert theirs.trade_status == TradeStatus.BUSY.value
    await assert_pending_invariant()


async def test_requester_cannot_accept(engine, users, pair, test_db):
    mine, theirs = pair
    request = await engine.propose_swap(users.alice, mine.id, theirs.id)

    with pytest.raises(AuthorizationError):
        await engine.accept_swap(request.id, users.alice)

    await test_db.refresh(request)
    assert request.status == SwapStatus.PENDING.value


async def test_accept_twice_is_invalid_state(engine, users, pair, test_db):
    mine, theirs = pair
    request = await engine.propose_swap(users.alice, mine.id, theirs.id)
    await engine.accept_swap(request.id, users.bob)

    with pytest.raises(InvalidStateError) as exc:
        await engine.accept_swap(request.id, users.bob)
    assert exc.value.current_state == SwapStatus.ACCEPTED.value

    await test_db.refresh(mine)
    assert mine.owner_id == users.bob


async def test_close_guard_rejects_already_decided_request(
    engine, users, pair, test_db, monkeypatch,
):
    """A decision racing a committed one fails on the request row, not on the slots."""
    mine, theirs = pair
    request = await engine.propose_swap(users.alice, mine.id, theirs.id)
    await engine.reject_swap(request.id, users.bob)
    monkeypatch.setattr(engine_module, "check_decision", lambda *a, **kw: None)

    with pytest.raises(InvalidStateError) as exc:
        await engine.accept_swap(request.id, users.bob)
    assert "REJECTED" in exc.value.message

    await test_db.refresh(mine)
    await test_db.refresh(theirs)
    assert mine.owner_id == users.alice
    assert theirs.trade_status == TradeStatus.TRADABLE.value


async def test_accept_rolls_back_when_slot_hold_is_broken(
    engine, users, pair, test_db, feed,
):
    mine, theirs = pair
    request = await engine.propose_swap(users.alice, mine.id, theirs.id)
    await test_db.execute(
        update(EventSlot)
        .where(EventSlot.id == theirs.id)
        .values(trade_status=TradeStatus.BUSY.value),
    )
    await test_db.commit()
    subscription = feed.subscribe(EntityType.REQUESTS)

    with pytest.raises(ConflictError):
        await engine.accept_swap(request.id, users.bob)

    await test_db.refresh(request)
    await test_db.refresh(mine)
    assert request.status == SwapStatus.PENDING.value
    assert request.resolved_at is None
    assert mine.owner_id == users.alice
    assert mine.trade_status == TradeStatus.TRADE_PENDING.value
    assert subscription.pending() == 0


async def test_accept_unknown_request_is_not_found(engine, users):
    with pytest.raises(NotFoundError):
        await engine.accept_swap(uuid4(), users.bob)


# ─── reject ──────────────────────────────────────────────────────

async def test_reject_restores_tradable(engine, users, pair, assert_pending_invariant):
    mine, theirs = pair
    request = await engine.propose_swap(users.alice, mine.id, theirs.id)

    rejected = await engine.reject_swap(request.id, users.bob)

    assert rejected.status == SwapStatus.REJECTED.value
    assert rejected.resolved_at is not None
    assert mine.owner_id == users.alice
    assert theirs.owner_id == users.bob
    assert mine.trade_status == TradeStatus.TRADABLE.value
    assert theirs.trade_status == TradeStatus.TRADABLE.value
    await assert_pending_invariant()


async def test_requester_can_withdraw(engine, users, pair):
    mine, theirs = pair
    request = await engine.propose_swap(users.alice, mine.id, theirs.id)
    rejected = await engine.reject_swap(request.id, users.alice)
    assert rejected.status == SwapStatus.REJECTED.value


async def test_outsider_cannot_reject(engine, users, pair):
    mine, theirs = pair
    request = await engine.propose_swap(users.alice, mine.id, theirs.id)
    with pytest.raises(AuthorizationError):
        await engine.reject_swap(request.id, users.carol)


async def test_slots_can_be_reoffered_after_reject(engine, users, pair, make_slot):
    mine, theirs = pair
    carols = await make_slot(users.carol)
    first = await engine.propose_swap(users.alice, mine.id, theirs.id)
    await engine.reject_swap(first.id, users.bob)

    second = await engine.propose_swap(users.carol, carols.id, theirs.id)

    assert second.status == SwapStatus.PENDING.value
    assert mine.trade_status == TradeStatus.TRADABLE.value


# ─── notices ─────────────────────────────────────────────────────

async def test_propose_publishes_request_and_slot_notices(engine, users, pair, feed):
    mine, theirs = pair
    requests = feed.subscribe(EntityType.REQUESTS)
    slots = feed.subscribe(EntityType.SLOTS)

    request = await engine.propose_swap(users.alice, mine.id, theirs.id)

    notice = await requests.get(timeout=0.1)
    assert notice.entity_id == request.id
    assert notice.user_ids == {users.alice, users.bob}
    assert slots.pending() == 2


async def test_failed_proposal_publishes_nothing(engine, users, make_slot, feed):
    mine = await make_slot(users.alice)
    theirs = await make_slot(users.bob, status=TradeStatus.BUSY)
    subscription = feed.subscribe(EntityType.SLOTS)

    with pytest.raises(ConflictError):
        await engine.propose_swap(users.alice, mine.id, theirs.id)

    assert subscription.pending() == 0


async def test_unregistered_caller_cannot_propose(engine, users, pair, test_db):
    mine, theirs = pair
    with pytest.raises(AuthorizationError):
        await engine.propose_swap(uuid4(), mine.id, theirs.id)
    assert await _request_count(test_db) == 0
