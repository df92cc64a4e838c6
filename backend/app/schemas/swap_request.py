"""Swap Request Schemas — Pydantic models for swap negotiation API boundaries.

Invariants:
    - SwapProposal names two distinct slots
    - receiver_id is optional: when sent, it is the owner the caller saw in the
      marketplace and the engine rejects the proposal if ownership moved since

Design Decisions:
    - SwapRequestDetail nests slot summaries read live at query time (requests store ids only)
"""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, model_validator

from app.core.domain_types import SwapStatus, TradeStatus


class SwapProposal(BaseModel):
    """Offer one of the caller's slots for another user's slot."""
    requester_slot_id: UUID
    receiver_slot_id: UUID
    receiver_id: UUID | None = None

    @model_validator(mode="after")
    def validate_distinct_slots(self):
        if self.requester_slot_id == self.receiver_slot_id:
            raise ValueError("requester_slot_id and receiver_slot_id must differ")
        return self


class SwapRequestResponse(BaseModel):
    """Swap request record as returned by propose/accept/reject."""
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    requester_id: UUID
    receiver_id: UUID
    requester_slot_id: UUID
    receiver_slot_id: UUID
    status: SwapStatus
    created_at: datetime
    resolved_at: datetime | None = None


class SlotSummaryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    owner_id: UUID
    title: str
    start_time: datetime
    end_time: datetime
    trade_status: TradeStatus


class SwapRequestDetail(BaseModel):
    """Swap request joined with live slot data and participant names."""
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    status: SwapStatus
    created_at: datetime
    resolved_at: datetime | None = None
    requester_id: UUID
    receiver_id: UUID
    requester_name: str | None = None
    receiver_name: str | None = None
    counterpart_name: str | None = None
    requester_slot: SlotSummaryResponse | None = None
    receiver_slot: SlotSummaryResponse | None = None


class IncomingRequests(BaseModel):
    requests: list[SwapRequestDetail]
    pending: int


class OutgoingRequests(BaseModel):
    requests: list[SwapRequestDetail]
