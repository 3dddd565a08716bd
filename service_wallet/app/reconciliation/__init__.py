"""
Outcome reconciliation for the Wallet Service.

Key points:
- Polls inquiry operations keyed by the original idempotency key
- Fixed attempt budget and interval, cooperative sleeps only
- STILL_UNKNOWN means manual follow-up, never success or failure
"""

from .reconciler import (
    OutcomeReconciler,
    ReconciliationOutcome,
    ReconciliationResult,
    ReconciliationState,
)

__all__ = [
    "OutcomeReconciler",
    "ReconciliationOutcome",
    "ReconciliationResult",
    "ReconciliationState",
]
