"""Slot Routes — create, list, toggle tradability, delete.

Invariants:
    - Every route acts on behalf of the X-User-Id caller
    - Mutations go through SlotStore (authorization + transition checks live in core)

Design Decisions:
    - /mine and /marketplace as separate paths: different projections, different ordering owners
"""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status

from app.api.dependencies import get_caller_id, get_slot_store
from app.core.domain_types import TradeStatus, UserId
from app.schemas.slot import (
    MarketplaceSlotResponse, SlotCreate, SlotResponse, TradeStatusUpdate,
)
from app.services.slot_store import SlotStore

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/slots", tags=["slots"])


@router.post(
    "", response_model=SlotResponse, status_code=status.HTTP_201_CREATED,
)
async def create_slot(
    body: SlotCreate,
    caller_id: UserId = Depends(get_caller_id),
    store: SlotStore = Depends(get_slot_store),
):
    """Publish a new BUSY slot for the caller."""
    slot = await store.create_slot(
        caller_id, body.title, body.start_time, body.end_time,
    )
    return SlotResponse.model_validate(slot)


@router.get("/mine", response_model=list[SlotResponse])
async def list_my_slots(
    status_filter: TradeStatus | None = Query(None, alias="status"),
    caller_id: UserId = Depends(get_caller_id),
    store: SlotStore = Depends(get_slot_store),
):
    """Caller's slots by start time; ?status=TRADABLE lists what they can offer."""
    slots = await store.list_by_owner(caller_id, status_filter)
    return [SlotResponse.model_validate(s) for s in slots]


@router.get("/marketplace", response_model=list[MarketplaceSlotResponse])
async def list_marketplace(
    caller_id: UserId = Depends(get_caller_id),
    store: SlotStore = Depends(get_slot_store),
):
    """Other users' TRADABLE slots by start time."""
    slots = await store.list_tradable(caller_id)
    return [MarketplaceSlotResponse.model_validate(s) for s in slots]


@router.patch("/{slot_id}/trade-status", response_model=SlotResponse)
async def set_trade_status(
    slot_id: UUID,
    body: TradeStatusUpdate,
    caller_id: UserId = Depends(get_caller_id),
    store: SlotStore = Depends(get_slot_store),
):
    slot = await store.set_trade_status(slot_id, body.target, caller_id)
    return SlotResponse.model_validate(slot)


@router.delete("/{slot_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_slot(
    slot_id: UUID,
    caller_id: UserId = Depends(get_caller_id),
    store: SlotStore = Depends(get_slot_store),
):
    await store.delete_slot(slot_id, caller_id)
