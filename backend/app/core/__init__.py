"""Core Layer — pure domain logic, no IO, no async, no DB.

Invariants:
    - No module in core/ imports from services/, api/, infrastructure/, or db/
      (repository_protocols references the change notice type for type checking only)
    - All checks are pure and deterministic: raise a typed error or return

Design Decisions:
    - Functional core separated from imperative shell (ADR: impureim sandwich)
"""
