"""Infrastructure Layer — database plumbing, change fan-out, and cross-cutting concerns.

Invariants:
    - Infrastructure never imports core/ checks (errors and domain types only)
    - Every database failure is mapped to a SlotSwapError subclass

Design Decisions:
    - Session manager and change feed are process-scoped objects created in the lifespan
"""
