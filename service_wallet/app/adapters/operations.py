"""
Typed wallet gateway operations.

Each operation builds its body, sends it through the signed client and parses
the envelope. A resultStatus of F is returned, not raised; only transport
problems escape as exceptions.
"""

from typing import Any, Mapping, Optional, Type, TypeVar

from pydantic import ValidationError as ModelValidationError

from shared.errors import TransportError, ValidationError
from shared.logging import get_logger, mask_secret
from service_wallet.app.adapters.gateway_client import SignedGatewayClient
from service_wallet.app.adapters.models import (
    ApplyTokenResult,
    CardListResult,
    GatewayResult,
    MerchantInfoResult,
    NotificationRequest,
    NotificationResult,
    PaymentInquiryRequest,
    PaymentInquiryResult,
    PaymentRequest,
    PaymentResult,
    PrepareAuthorizationResult,
    RefundInquiryRequest,
    RefundInquiryResult,
    RefundRequest,
    RefundResult,
    UserInfoResult,
    build_extend_info,
)

APPLY_TOKEN_PATH = "/v1/authorizations/applyToken"
USER_INFO_PATH = "/v1/users/inquiryUserInfo"
USER_CARD_LIST_PATH = "/v1/users/inquiryUserCardList"
PREPARE_AUTHORIZATION_PATH = "/v1/authorizations/prepare"
PAY_PATH = "/v1/payments/pay"
INQUIRY_PAYMENT_PATH = "/v1/payments/inquiryPayment"
REFUND_PATH = "/v1/payments/refund"
INQUIRY_REFUND_PATH = "/v1/payments/inquiryRefund"
SEND_INBOX_PATH = "/v1/messages/sendInbox"
SEND_PUSH_PATH = "/v1/messages/sendPush"
MERCHANT_INFO_PATH = "/v1/merchants/inquiryMerchantInfo"

AGREEMENT_PAY_SCOPE = "AGREEMENT_PAY"

R = TypeVar("R", bound=GatewayResult)


class WalletGateway:
    """Operation set over a :class:`SignedGatewayClient`."""

    def __init__(self, client: SignedGatewayClient):
        self.client = client
        self.logger = get_logger("wallet.gateway")

    async def _call(
        self,
        operation: str,
        path: str,
        params: Mapping[str, Any],
        result_type: Type[R],
        correlation_id: Optional[str] = None,
    ) -> R:
        body = await self.client.send(path, "POST", params, operation=operation)
        try:
            result = result_type.from_envelope(body)
        except ModelValidationError as e:
            self.logger.error("Unparseable gateway envelope", operation=operation, error=str(e))
            raise TransportError(path, "Gateway returned an unexpected envelope", cause=e) from e

        log = self.logger.warning if result.is_failed else self.logger.info
        log(
            "Gateway operation finished",
            operation=operation,
            correlation_id=correlation_id,
            result_status=result.result_status.value,
            result_code=result.result_code,
        )
        return result

    async def apply_token(self, auth_code: str) -> ApplyTokenResult:
        """Exchange an authorization code for an access token."""
        self.logger.info("Applying token", auth_code=mask_secret(auth_code))
        params = {"grantType": "AUTHORIZATION_CODE", "authCode": auth_code}
        return await self._call("apply_token", APPLY_TOKEN_PATH, params, ApplyTokenResult)

    async def inquiry_user_info(self, access_token: str) -> UserInfoResult:
        params = {"accessToken": access_token}
        return await self._call("inquiry_user_info", USER_INFO_PATH, params, UserInfoResult)

    async def inquiry_user_card_list(self, access_token: str) -> CardListResult:
        params = {"accessToken": access_token}
        return await self._call("inquiry_user_card_list", USER_CARD_LIST_PATH, params, CardListResult)

    async def inquiry_merchant_info(self, access_token: str) -> MerchantInfoResult:
        """Merchant profile as seen by the user behind ``access_token``."""
        params = {"accessToken": access_token}
        return await self._call("inquiry_merchant_info", MERCHANT_INFO_PATH, params, MerchantInfoResult)

    async def prepare_authorization(self, description: str) -> PrepareAuthorizationResult:
        """Prepare an agreement-pay contract; the user signs it via the returned authUrl."""
        params = {
            "scopes": AGREEMENT_PAY_SCOPE,
            "extendInfo": build_extend_info({"language": "en-US", "contractDesc": description}),
        }
        return await self._call(
            "prepare_authorization", PREPARE_AUTHORIZATION_PATH, params, PrepareAuthorizationResult
        )

    async def pay(self, request: PaymentRequest) -> PaymentResult:
        """Create a payment.

        ``payment_request_id`` is the idempotency key: the gateway returns the
        original payment for a repeated key.
        """
        _require_key(request.payment_request_id, "paymentRequestId")
        return await self._call(
            "pay", PAY_PATH, request.to_params(), PaymentResult,
            correlation_id=request.payment_request_id,
        )

    async def inquiry_payment(self, request: PaymentInquiryRequest) -> PaymentInquiryResult:
        if not (request.payment_id or request.payment_request_id):
            raise ValidationError("paymentId or paymentRequestId is required")
        return await self._call(
            "inquiry_payment", INQUIRY_PAYMENT_PATH, request.to_params(), PaymentInquiryResult,
            correlation_id=request.payment_request_id or request.payment_id,
        )

    async def refund(self, request: RefundRequest) -> RefundResult:
        """Refund a payment, keyed by ``refund_request_id``."""
        _require_key(request.refund_request_id, "refundRequestId")
        return await self._call(
            "refund", REFUND_PATH, request.to_params(), RefundResult,
            correlation_id=request.refund_request_id,
        )

    async def inquiry_refund(self, request: RefundInquiryRequest) -> RefundInquiryResult:
        if not (request.refund_id or request.refund_request_id):
            raise ValidationError("refundId or refundRequestId is required")
        return await self._call(
            "inquiry_refund", INQUIRY_REFUND_PATH, request.to_params(), RefundInquiryResult,
            correlation_id=request.refund_request_id or request.refund_id,
        )

    async def send_inbox(self, request: NotificationRequest) -> NotificationResult:
        return await self._call(
            "send_inbox", SEND_INBOX_PATH, request.to_params(), NotificationResult,
            correlation_id=request.request_id,
        )

    async def send_push(self, request: NotificationRequest) -> NotificationResult:
        return await self._call(
            "send_push", SEND_PUSH_PATH, request.to_params(), NotificationResult,
            correlation_id=request.request_id,
        )


def _require_key(value: str, name: str):
    if not value or not value.strip():
        raise ValidationError(f"{name} is required", details={"field": name})

