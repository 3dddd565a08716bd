"""
Encrypted claims tokens.

A claims token is base64(JWE compact) with ``alg=dir`` and ``enc=A256GCM``.
The token is the session: nothing is stored server side, and the codec only
guarantees confidentiality and integrity of the claims, not freshness.
"""

import base64
import binascii
import json
from typing import Dict, Mapping, Optional, Union

from jose import jwe
from jose.exceptions import JOSEError, JWEParseError

from shared.config import BaseConfig
from shared.errors import ConfigError, TokenError, TokenErrorKind
from shared.logging import get_logger
from shared.metrics import MetricsCollector

KEY_BYTES = 32
ALGORITHM = "dir"
ENCRYPTION = "A256GCM"


class ClaimsTokenCodec:
    """Issues and opens claims tokens under one symmetric key."""

    def __init__(self, key: Union[str, bytes], metrics: Optional[MetricsCollector] = None):
        key_bytes = key.encode("utf-8") if isinstance(key, str) else bytes(key)
        if len(key_bytes) != KEY_BYTES:
            raise ConfigError(
                "Claims key must be exactly 32 bytes",
                details={"length": len(key_bytes)},
            )
        self._key = key_bytes
        self.metrics = metrics
        self.logger = get_logger("wallet.claims_codec")

    @classmethod
    def from_config(cls, config: BaseConfig, metrics: Optional[MetricsCollector] = None) -> "ClaimsTokenCodec":
        if not config.claims_key:
            raise ConfigError("Missing claims key", details={"missing": ["WALLET_CLAIMS_KEY"]})
        return cls(config.claims_key, metrics=metrics)

    def issue(self, claims: Mapping[str, str]) -> str:
        """Encrypt ``claims`` into an opaque token."""
        _check_claims(claims)
        plaintext = json.dumps(dict(claims), separators=(",", ":"), ensure_ascii=False)
        compact = jwe.encrypt(plaintext.encode("utf-8"), self._key, encryption=ENCRYPTION, algorithm=ALGORITHM)
        if self.metrics:
            self.metrics.increment_counter("claims_tokens_total", event="issued")
        return base64.b64encode(compact).decode("ascii")

    def open(self, token: str) -> Dict[str, str]:
        """Decrypt a token back into its claims.

        Raises TokenError whose ``kind`` says which layer rejected it.
        """
        try:
            compact = base64.b64decode(token, validate=True)
        except (binascii.Error, ValueError) as e:
            raise self._reject(TokenErrorKind.DECODE, "outer envelope is not base64") from e

        try:
            plaintext = jwe.decrypt(compact, self._key)
        except JWEParseError as e:
            raise self._reject(TokenErrorKind.DECODE, str(e)) from e
        except JOSEError as e:
            raise self._reject(TokenErrorKind.DECRYPT, str(e)) from e

        try:
            claims = json.loads(plaintext)
        except ValueError as e:
            raise self._reject(TokenErrorKind.PAYLOAD, "claims are not JSON") from e
        if not _is_string_map(claims):
            raise self._reject(TokenErrorKind.PAYLOAD, "claims are not a string map")
        return claims

    def _reject(self, kind: TokenErrorKind, reason: str) -> TokenError:
        self.logger.warning("Claims token rejected", kind=kind.value, reason=reason)
        if self.metrics:
            self.metrics.increment_counter("claims_tokens_total", event=f"rejected_{kind.value}")
        return TokenError(kind, reason)


def _is_string_map(value) -> bool:
    return isinstance(value, dict) and all(
        isinstance(k, str) and isinstance(v, str) for k, v in value.items()
    )


def _check_claims(claims: Mapping[str, str]):
    if not _is_string_map(dict(claims)):
        raise ValueError("claims must map strings to strings")
