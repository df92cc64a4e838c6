"""Slot Enforcement — tests for pure slot transition and ownership checks.

Tests cover:
    - SLOT_TRANSITIONS shape (TRADE_PENDING reachable only from TRADABLE)
    - check_time_range rejects inverted and empty ranges
    - check_owner_toggle: owner only, BUSY/TRADABLE only, frozen while pending, idempotent
    - check_deletable mirrors toggle rules
"""

from datetime import datetime, timedelta, timezone
from types import SimpleNamespace
from uuid import uuid4

import pytest

from app.core.domain_types import TradeStatus
from app.core.enforce_slots import (
    SLOT_TRANSITIONS,
    can_transition,
    check_deletable,
    check_owner_toggle,
    check_time_range,
    check_title,
)
from app.core.errors import AuthorizationError, InvalidStateError, ValidationError


def _slot(owner_id, status=TradeStatus.BUSY):
    start = datetime(2026, 11, 1, 9, tzinfo=timezone.utc)
    return SimpleNamespace(
        id=uuid4(), owner_id=owner_id, start_time=start,
        end_time=start + timedelta(hours=1), trade_status=status.value,
    )


# ─── transition table ────────────────────────────────────────────

def test_every_status_has_transition_entry():
    assert set(SLOT_TRANSITIONS) == set(TradeStatus)


def test_trade_pending_only_reachable_from_tradable():
    sources = {s for s, targets in SLOT_TRANSITIONS.items() if TradeStatus.TRADE_PENDING in targets}
    assert sources == {TradeStatus.TRADABLE}


def test_busy_cannot_jump_to_pending():
    assert not can_transition(TradeStatus.BUSY, TradeStatus.TRADE_PENDING)
    assert can_transition(TradeStatus.BUSY, TradeStatus.TRADABLE)


# ─── check_time_range ────────────────────────────────────────────

def test_time_range_accepts_ordered_interval():
    start = datetime(2026, 11, 1, 9, tzinfo=timezone.utc)
    check_time_range(start, start + timedelta(minutes=30))


def test_time_range_rejects_inverted_interval():
    start = datetime(2026, 11, 1, 9, tzinfo=timezone.utc)
    with pytest.raises(ValidationError) as exc:
        check_time_range(start, start - timedelta(hours=1))
    assert exc.value.field == "end_time"
    assert exc.value.http_status == 400


def test_time_range_rejects_zero_length_interval():
    start = datetime(2026, 11, 1, 9, tzinfo=timezone.utc)
    with pytest.raises(ValidationError):
        check_time_range(start, start)


def test_title_is_stripped():
    assert check_title("  Morning shift  ") == "Morning shift"


def test_blank_title_rejected():
    with pytest.raises(ValidationError):
        check_title("   ")


# ─── check_owner_toggle ──────────────────────────────────────────

def test_owner_can_mark_busy_slot_tradable():
    owner = uuid4()
    assert check_owner_toggle(_slot(owner), TradeStatus.TRADABLE, owner) is True


def test_setting_same_status_is_noop():
    owner = uuid4()
    slot = _slot(owner, TradeStatus.TRADABLE)
    assert check_owner_toggle(slot, TradeStatus.TRADABLE, owner) is False


def test_non_owner_cannot_toggle():
    with pytest.raises(AuthorizationError):
        check_owner_toggle(_slot(uuid4()), TradeStatus.TRADABLE, uuid4())


def test_owner_cannot_set_trade_pending_directly():
    owner = uuid4()
    with pytest.raises(ValidationError):
        check_owner_toggle(_slot(owner, TradeStatus.TRADABLE), TradeStatus.TRADE_PENDING, owner)


def test_pending_slot_cannot_be_toggled():
    owner = uuid4()
    slot = _slot(owner, TradeStatus.TRADE_PENDING)
    with pytest.raises(InvalidStateError) as exc:
        check_owner_toggle(slot, TradeStatus.BUSY, owner)
    assert exc.value.current_state == "TRADE_PENDING"


def test_authorization_checked_before_state():
    slot = _slot(uuid4(), TradeStatus.TRADE_PENDING)
    with pytest.raises(AuthorizationError):
        check_owner_toggle(slot, TradeStatus.BUSY, uuid4())


# ─── check_deletable ─────────────────────────────────────────────

def test_owner_can_delete_busy_slot():
    owner = uuid4()
    check_deletable(_slot(owner), owner)


def test_pending_slot_cannot_be_deleted():
    owner = uuid4()
    with pytest.raises(InvalidStateError):
        check_deletable(_slot(owner, TradeStatus.TRADE_PENDING), owner)


def test_non_owner_cannot_delete():
    with pytest.raises(AuthorizationError):
        check_deletable(_slot(uuid4()), uuid4())
