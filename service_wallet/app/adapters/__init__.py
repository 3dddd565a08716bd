"""
Adapters package for the Wallet Service.

Contains the signed HTTP client for the wallet gateway and the typed
operation set built on it. These adapters encapsulate:

- Gateway paths and request shapes
- Request signing and identity headers
- Transport failures mapped to shared errors

Business failures (resultStatus F) come back as values, never exceptions.
"""

from .gateway_client import SignedGatewayClient
from .models import GatewayResult, ResultStatus
from .operations import WalletGateway

__all__ = [
    "SignedGatewayClient",
    "GatewayResult",
    "ResultStatus",
    "WalletGateway",
]
