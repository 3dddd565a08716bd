"""
Canonical request signing for the wallet gateway.

Every outbound call is authenticated by an RSA/SHA-256 signature over

    "{method} {path}\\n{client_id}.{request_time}.{body_json}"

The gateway rebuilds the same string from the received headers and body,
so the body must be serialized once and sent byte-for-byte as signed.
"""

import base64
import json
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Mapping, Optional

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import padding, rsa

SIGNATURE_ALGORITHM = "RSA256"
KEY_VERSION = 1


@dataclass(frozen=True)
class SignedRequest:
    """A request ready to go on the wire."""
    http_method: str
    path: str
    request_time: str
    body_json: str
    signature: str


def request_time(now: Optional[datetime] = None) -> str:
    """Current instant as ISO-8601 seconds with a literal +00:00 offset."""
    now = now or datetime.now(timezone.utc)
    return now.astimezone(timezone.utc).isoformat(timespec="seconds")


def canonical_json(params: Mapping[str, Any]) -> str:
    """Compact JSON in construction order; what gets signed is what gets sent."""
    return json.dumps(params, separators=(",", ":"), ensure_ascii=False)


def sign_content(method: str, path: str, client_id: str, timestamp: str, body_json: str) -> str:
    return f"{method} {path}\n{client_id}.{timestamp}.{body_json}"


def sign(
    method: str,
    path: str,
    client_id: str,
    timestamp: str,
    body_json: str,
    private_key: rsa.RSAPrivateKey,
) -> str:
    """Sign the canonical string with PKCS#1 v1.5 / SHA-256 and return base64."""
    content = sign_content(method, path, client_id, timestamp, body_json)
    signature = private_key.sign(content.encode("utf-8"), padding.PKCS1v15(), hashes.SHA256())
    return base64.b64encode(signature).decode("ascii")


def verify(
    signature_b64: str,
    method: str,
    path: str,
    client_id: str,
    timestamp: str,
    body_json: str,
    public_key: rsa.RSAPublicKey,
) -> bool:
    """Check a signature produced by :func:`sign`."""
    content = sign_content(method, path, client_id, timestamp, body_json)
    try:
        public_key.verify(
            base64.b64decode(signature_b64),
            content.encode("utf-8"),
            padding.PKCS1v15(),
            hashes.SHA256(),
        )
    except (InvalidSignature, ValueError):
        return False
    return True


def signature_header(signature_b64: str) -> str:
    return f"algorithm={SIGNATURE_ALGORITHM}, keyVersion={KEY_VERSION}, signature={signature_b64}"


def parse_signature_header(value: str) -> Optional[str]:
    """Extract the base64 signature from a Signature header, if present."""
    for part in value.split(","):
        part = part.strip()
        # base64 may itself end in '=' padding, so no partition on '='
        if part.startswith("signature="):
            return part[len("signature="):]
    return None


def build_signed_request(
    method: str,
    path: str,
    client_id: str,
    params: Mapping[str, Any],
    private_key: rsa.RSAPrivateKey,
    now: Optional[datetime] = None,
) -> SignedRequest:
    """Serialize, timestamp and sign one call."""
    timestamp = request_time(now)
    body_json = canonical_json(params)
    return SignedRequest(
        http_method=method,
        path=path,
        request_time=timestamp,
        body_json=body_json,
        signature=sign(method, path, client_id, timestamp, body_json, private_key),
    )
