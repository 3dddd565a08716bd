"""
Signed HTTP client for the wallet gateway.
"""

import time
from typing import Any, Dict, Mapping, Optional

import httpx

from shared.errors import TransportError
from shared.logging import get_logger
from shared.metrics import MetricsCollector
from service_wallet.app.signing.keys import GatewayCredential
from service_wallet.app.signing.signer import SignedRequest, build_signed_request, signature_header

CONTENT_TYPE = "application/json; charset=UTF-8"
DEFAULT_TIMEOUT = 25.0


class SignedGatewayClient:
    """Client for communicating with the wallet gateway.

    One request per call, no retries. Anything that keeps us from getting a
    JSON object back is a TransportError; business result codes are left to
    the caller.
    """

    def __init__(
        self,
        credential: GatewayCredential,
        timeout: float = DEFAULT_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        metrics: Optional[MetricsCollector] = None,
    ):
        self.credential = credential
        self.timeout = timeout
        self.metrics = metrics
        self.logger = get_logger("wallet.gateway_client")
        self._client = httpx.AsyncClient(
            base_url=credential.gateway_base_url,
            timeout=timeout,
            transport=transport,
        )

    def build_headers(self, signed: SignedRequest) -> Dict[str, str]:
        """Identity and signature headers for an already signed request."""
        return {
            "Content-Type": CONTENT_TYPE,
            "Client-Id": self.credential.client_id,
            "Request-Time": signed.request_time,
            "Signature": signature_header(signed.signature),
        }

    def sign(self, method: str, path: str, params: Mapping[str, Any]) -> SignedRequest:
        return build_signed_request(
            method,
            path,
            self.credential.client_id,
            params,
            self.credential.private_key,
        )

    async def send(
        self,
        path: str,
        method: str = "POST",
        params: Optional[Mapping[str, Any]] = None,
        operation: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Sign and send one call, returning the decoded JSON body verbatim."""
        operation = operation or path
        signed = self.sign(method, path, params or {})
        start_time = time.time()

        try:
            response = await self._client.request(
                method,
                path,
                content=signed.body_json.encode("utf-8"),
                headers=self.build_headers(signed),
            )
        except httpx.TimeoutException as e:
            self._record_failure(operation, path, start_time, e)
            raise TransportError(path, "Gateway timed out", cause=e) from e
        except httpx.HTTPError as e:
            self._record_failure(operation, path, start_time, e)
            raise TransportError(path, "Gateway unavailable", cause=e) from e

        try:
            body = response.json()
        except ValueError as e:
            self._record_failure(operation, path, start_time, e, status_code=response.status_code)
            raise TransportError(path, "Gateway returned a non-JSON body", cause=e) from e

        if not isinstance(body, dict):
            self._record_failure(operation, path, start_time, None, status_code=response.status_code)
            raise TransportError(path, "Gateway returned a non-object body")

        result = body.get("result") if isinstance(body.get("result"), dict) else {}
        result_status = result.get("resultStatus") or "missing"
        duration = time.time() - start_time
        if self.metrics:
            self.metrics.record_gateway_call(operation, str(result_status), duration)
        self.logger.info(
            "Gateway call completed",
            operation=operation,
            path=path,
            status_code=response.status_code,
            result_status=result_status,
            result_code=result.get("resultCode"),
            duration_ms=round(duration * 1000, 2),
        )
        return body

    def _record_failure(
        self,
        operation: str,
        path: str,
        start_time: float,
        error: Optional[BaseException],
        status_code: Optional[int] = None,
    ):
        if self.metrics:
            self.metrics.record_gateway_call(operation, "transport_error", time.time() - start_time)
            self.metrics.record_error("gateway_transport")
        self.logger.error(
            "Gateway transport error",
            operation=operation,
            path=path,
            status_code=status_code,
            error=str(error) if error else "non-object body",
            error_type=type(error).__name__ if error else None,
        )

    async def aclose(self):
        await self._client.aclose()

    async def __aenter__(self) -> "SignedGatewayClient":
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.aclose()
