"""
Wallet Service package for the Wallet Access Layer.

This package exposes the FastAPI application that fronts the third-party
wallet gateway for a mini app:

- app.main: Application entrypoint that wires routes and lifecycle.
- app.signing: Canonical request signing and key material.
- app.adapters: Signed gateway client and typed operations.
- app.tokens: Encrypted claims tokens that carry the caller's session.
- app.reconciliation: Bounded polling for refund and payment outcomes.
- app.domain: Flows behind each endpoint.

Design notes:
- Module import must not perform IO. Keys are read and checked when the
  service is constructed, so a bad deployment fails before serving.
- Use the shared/ utilities for logging, metrics and errors.
- No server-side session or idempotency store: the claims token is the
  session and the gateway deduplicates by request id.
"""
