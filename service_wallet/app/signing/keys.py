"""
Key material and the gateway credential.

Everything here runs once at startup. Any problem is a ConfigError so the
process refuses to start instead of failing on the first signed call.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

from shared.config import BaseConfig
from shared.errors import ConfigError


@dataclass(frozen=True)
class GatewayCredential:
    """Merchant identity used for every gateway call. Read-only after startup."""
    client_id: str
    private_key: rsa.RSAPrivateKey
    gateway_base_url: str
    gateway_public_key: Optional[rsa.RSAPublicKey] = None


def _read_pem(path: str, what: str) -> bytes:
    try:
        return Path(path).read_bytes()
    except OSError as e:
        raise ConfigError(f"Cannot read {what}", details={"path": path, "error": str(e)}) from e


def load_private_key_pem(pem: bytes) -> rsa.RSAPrivateKey:
    """Parse a PKCS#1 or PKCS#8 PEM RSA private key."""
    try:
        key = serialization.load_pem_private_key(pem, password=None)
    except (ValueError, TypeError, UnsupportedAlgorithm) as e:
        raise ConfigError("Malformed merchant private key", details={"error": str(e)}) from e
    if not isinstance(key, rsa.RSAPrivateKey):
        raise ConfigError("Merchant private key is not an RSA key")
    return key


def load_public_key_pem(pem: bytes) -> rsa.RSAPublicKey:
    """Parse a SubjectPublicKeyInfo PEM RSA public key."""
    try:
        key = serialization.load_pem_public_key(pem)
    except (ValueError, TypeError, UnsupportedAlgorithm) as e:
        raise ConfigError("Malformed gateway public key", details={"error": str(e)}) from e
    if not isinstance(key, rsa.RSAPublicKey):
        raise ConfigError("Gateway public key is not an RSA key")
    return key


def load_private_key(path: str) -> rsa.RSAPrivateKey:
    return load_private_key_pem(_read_pem(path, "merchant private key"))


def load_public_key(path: str) -> rsa.RSAPublicKey:
    return load_public_key_pem(_read_pem(path, "gateway public key"))


def load_gateway_credential(config: BaseConfig) -> GatewayCredential:
    """Build the credential from configuration, failing fast on anything missing."""
    required = {
        "WALLET_GATEWAY_URL": config.gateway_url,
        "WALLET_CLIENT_ID": config.client_id,
        "WALLET_MERCHANT_PRIVATE_KEY_PATH": config.merchant_private_key_path,
        "WALLET_GATEWAY_PUBLIC_KEY_PATH": config.gateway_public_key_path,
    }
    missing = sorted(name for name, value in required.items() if not value)
    if missing:
        raise ConfigError("Missing gateway configuration", details={"missing": missing})

    return GatewayCredential(
        client_id=config.client_id,
        private_key=load_private_key(config.merchant_private_key_path),
        gateway_base_url=config.gateway_url.rstrip("/"),
        gateway_public_key=load_public_key(config.gateway_public_key_path),
    )
