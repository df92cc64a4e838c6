"""Slot Schemas — Pydantic models for slot API boundaries.

Invariants:
    - SlotCreate.title: 1-200 chars, stripped, non-empty
    - TradeStatusUpdate only accepts owner-settable statuses (BUSY, TRADABLE)
    - Time-range ordering is NOT checked here: the store raises the domain ValidationError

Design Decisions:
    - Literal for TradeStatusUpdate.status over TradeStatus: TRADE_PENDING rejected at the
      boundary with a field-level error
    - from_attributes on responses: routes hand ORM rows and service dataclasses straight in
"""

from datetime import datetime
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.core.domain_types import TradeStatus


class SlotCreate(BaseModel):
    """Slot creation — validates title length and whitespace."""
    title: str = Field(min_length=1, max_length=200)
    start_time: datetime
    end_time: datetime

    @field_validator("title")
    @classmethod
    def strip_title(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("title cannot be empty or whitespace")
        return v


class TradeStatusUpdate(BaseModel):
    """Owner toggle between BUSY and TRADABLE."""
    status: Literal["BUSY", "TRADABLE"]

    @property
    def target(self) -> TradeStatus:
        return TradeStatus(self.status)


class SlotResponse(BaseModel):
    """Slot as seen by its owner."""
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    owner_id: UUID
    title: str
    start_time: datetime
    end_time: datetime
    trade_status: TradeStatus


class MarketplaceSlotResponse(SlotResponse):
    """Tradable slot offered by another user."""
    owner_name: str | None = None
