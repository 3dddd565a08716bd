"""
Endpoint flows for the Wallet Service.

Key points:
- Opens claims tokens and generates idempotency keys
- Business failures are returned as FlowOutcome values
- Unknown refund answers are handed to the reconciler
"""

from .wallet_flows import FlowOutcome, WalletFlows

__all__ = ["FlowOutcome", "WalletFlows"]
