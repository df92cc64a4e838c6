"""Services Layer — slot store, swap ledger, negotiation engine, profile directory.

Invariants:
    - Every service works on the caller's AsyncSession; none opens its own
    - Only SwapNegotiationEngine moves slots into or out of TRADE_PENDING

Design Decisions:
    - Store/ledger/engine split by responsibility, not by entity (ADR: no god objects)
"""
