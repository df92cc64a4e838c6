"""Swap Request Routes — propose, accept, reject, list, delete.

Invariants:
    - propose/accept/reject go through SwapNegotiationEngine only
    - Listing and deletion go through SwapLedger
    - Domain errors propagate to the global SlotSwapError handler (no per-route mapping)

Design Decisions:
    - Accept/reject as POST sub-resources: they are commands with side effects on slots,
      not field updates on the request
"""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, status

from app.api.dependencies import get_caller_id, get_engine, get_swap_ledger
from app.core.domain_types import UserId
from app.schemas.swap_request import (
    IncomingRequests, OutgoingRequests, SwapProposal, SwapRequestDetail,
    SwapRequestResponse,
)
from app.services.negotiation_engine import SwapNegotiationEngine
from app.services.swap_ledger import SwapLedger

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/requests", tags=["requests"])


@router.post(
    "", response_model=SwapRequestResponse, status_code=status.HTTP_201_CREATED,
)
async def propose_swap(
    body: SwapProposal,
    caller_id: UserId = Depends(get_caller_id),
    engine: SwapNegotiationEngine = Depends(get_engine),
):
    """Offer one of the caller's TRADABLE slots for another user's TRADABLE slot."""
    request = await engine.propose_swap(
        caller_id, body.requester_slot_id, body.receiver_slot_id,
        expected_receiver_id=body.receiver_id,
    )
    return SwapRequestResponse.model_validate(request)


@router.post("/{request_id}/accept", response_model=SwapRequestResponse)
async def accept_swap(
    request_id: UUID,
    caller_id: UserId = Depends(get_caller_id),
    engine: SwapNegotiationEngine = Depends(get_engine),
):
    request = await engine.accept_swap(request_id, caller_id)
    return SwapRequestResponse.model_validate(request)


@router.post("/{request_id}/reject", response_model=SwapRequestResponse)
async def reject_swap(
    request_id: UUID,
    caller_id: UserId = Depends(get_caller_id),
    engine: SwapNegotiationEngine = Depends(get_engine),
):
    request = await engine.reject_swap(request_id, caller_id)
    return SwapRequestResponse.model_validate(request)


@router.get("/incoming", response_model=IncomingRequests)
async def list_incoming(
    caller_id: UserId = Depends(get_caller_id),
    ledger: SwapLedger = Depends(get_swap_ledger),
):
    """Requests the caller received, newest first, with the pending count."""
    views = await ledger.incoming_for(caller_id)
    return IncomingRequests(
        requests=[SwapRequestDetail.model_validate(v) for v in views],
        pending=await ledger.pending_incoming_count(caller_id),
    )


@router.get("/outgoing", response_model=OutgoingRequests)
async def list_outgoing(
    caller_id: UserId = Depends(get_caller_id),
    ledger: SwapLedger = Depends(get_swap_ledger),
):
    views = await ledger.outgoing_for(caller_id)
    return OutgoingRequests(
        requests=[SwapRequestDetail.model_validate(v) for v in views],
    )


@router.delete("/{request_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_request(
    request_id: UUID,
    caller_id: UserId = Depends(get_caller_id),
    ledger: SwapLedger = Depends(get_swap_ledger),
):
    """Remove a resolved request; pending ones must be decided first."""
    await ledger.remove_request(request_id, caller_id)
