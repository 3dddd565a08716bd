"""
Claims tokens for the Wallet Service.

Key points:
- Tokens carry the caller's session (user id and upstream access token)
- JWE ``dir`` + ``A256GCM`` under a 32-byte key, wrapped in base64
- Rejections say whether the envelope, the decryption or the payload failed
"""

from .claims_codec import ClaimsTokenCodec

__all__ = ["ClaimsTokenCodec"]
