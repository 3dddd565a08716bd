"""
Request signing package.

Holds the canonical signer used for every outbound gateway call and the
startup-time loaders for merchant/gateway key material.

Key points:
- The signed string and the sent body must be the same bytes.
- Request-Time always carries a literal +00:00 offset.
- Key problems surface as ConfigError before the service starts.
"""

from .keys import GatewayCredential, load_gateway_credential
from .signer import SignedRequest, build_signed_request, canonical_json, request_time, sign, verify

__all__ = [
    "GatewayCredential",
    "load_gateway_credential",
    "SignedRequest",
    "build_signed_request",
    "canonical_json",
    "request_time",
    "sign",
    "verify",
]
