"""
Shared utilities for the Wallet Access Layer.

This package aggregates common building blocks consumed by all services:

- config: Service configuration via pydantic-settings
- logging: Structured logging with request and user correlation
- metrics: Prometheus metrics helpers
- errors: Canonical error types and responses
- retry: Attempt budget and delay policy for polling loops
- base_service: FastAPI service skeleton (health, metrics, error handlers)
- test_helpers: Key factories and an in-process fake wallet gateway

Any cross-service logic should live here to avoid import cycles across
service packages. Do not import from service_* packages into shared/.
"""
