"""
Wallet flows behind the HTTP endpoints.

Each flow opens the caller's claims token where needed, runs one or more
gateway operations and shapes the answer the mini app expects. Gateway
business failures come back as a FlowOutcome with ``success=False``;
transport and token problems propagate as exceptions.
"""

import asyncio
import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from decimal import ROUND_DOWN, Decimal
from typing import Any, Callable, Dict, Optional

from shared.errors import ReconciliationTimeout, TokenError, TokenErrorKind, ValidationError
from shared.logging import get_logger, mask_secret, set_user_context
from service_wallet.app.adapters.models import (
    AGREEMENT_PAYMENT,
    INBOX_TEMPLATE,
    ONLINE_PURCHASE,
    PUSH_TEMPLATE,
    Amount,
    GatewayResult,
    NotificationRequest,
    NotificationTemplate,
    Order,
    OrderBuyer,
    PaymentInquiryRequest,
    PaymentRequest,
    RefundRequest,
    ResultStatus,
    parse_extend_info,
)
from service_wallet.app.adapters.operations import WalletGateway
from service_wallet.app.reconciliation.reconciler import (
    OutcomeReconciler,
    ReconciliationOutcome,
    ReconciliationResult,
)
from service_wallet.app.signing.signer import request_time
from service_wallet.app.tokens.claims_codec import ClaimsTokenCodec

DEFAULT_DEEP_LINK = "mini://platformapi/startapp?_ariver_appid=888888"
DEFAULT_ORDER_DESCRIPTION = "Online Purchase"
DEFAULT_AGREEMENT_DESCRIPTION = "Agreement payment - Monthly subscription"
DEFAULT_REFUND_REASON = "Customer requested refund from mini app"
PAYMENT_EXPIRY = timedelta(minutes=30)
FILS_PER_DINAR = 1000


def _request_id(prefix: str) -> str:
    return f"{prefix}-{uuid.uuid4()}-{int(time.time() * 1000)}"


def payment_request_id() -> str:
    return _request_id("PAY")


def agreement_payment_request_id() -> str:
    return _request_id("AGREEMENT-PAY")


def refund_request_id() -> str:
    return _request_id("REFUND")


def notification_request_id() -> str:
    return _request_id("NOTIF")


def to_fils(amount: Any) -> str:
    """Dinar amount to integer fils, truncating sub-fils fractions."""
    fils = (Decimal(str(amount)) * FILS_PER_DINAR).to_integral_value(rounding=ROUND_DOWN)
    return str(int(fils))


def expiry_time(now: Optional[datetime] = None) -> str:
    return request_time((now or datetime.now(timezone.utc)) + PAYMENT_EXPIRY)


@dataclass
class FlowOutcome:
    """What a flow hands back to the HTTP layer."""
    success: bool
    body: Dict[str, Any] = field(default_factory=dict)
    result: Optional[GatewayResult] = None
    # Gateway answered U and nobody follows it up; not a business failure
    pending: bool = False


def _status_label(status: ResultStatus) -> str:
    return {
        ResultStatus.SUCCESS: "SUCCESS",
        ResultStatus.ACCEPTED: "ACCEPTED",
        ResultStatus.UNKNOWN: "PENDING",
        ResultStatus.FAILED: "FAILED",
    }[status]


def _outcome(result: GatewayResult, success: bool, pending: Optional[bool] = None, **extra) -> FlowOutcome:
    body = {"success": success, "status": _status_label(result.result_status)}
    body.update(result.summary())
    body.update({k: v for k, v in extra.items() if v is not None})
    if pending is None:
        pending = result.is_unknown
    return FlowOutcome(success=success, body=body, result=result, pending=pending)


class WalletFlows:
    """Orchestrates gateway operations for the mini app endpoints."""

    def __init__(
        self,
        gateway: WalletGateway,
        codec: ClaimsTokenCodec,
        reconciler: OutcomeReconciler,
        base_url: str,
        default_currency: str = "IQD",
    ):
        self.gateway = gateway
        self.codec = codec
        self.reconciler = reconciler
        self.base_url = base_url.rstrip("/")
        self.default_currency = default_currency
        self.logger = get_logger("wallet.flows")

    def _open(self, token: str) -> Dict[str, str]:
        claims = self.codec.open(token)
        set_user_context(claims.get("user_id"))
        return claims

    def _access_token(self, token: str) -> str:
        access_token = self._open(token).get("access_token")
        if not access_token:
            raise TokenError(TokenErrorKind.PAYLOAD, "no access_token claim")
        return access_token

    # ------------------------------------------------------------------
    # Authorization
    # ------------------------------------------------------------------

    async def authenticate(self, auth_code: str) -> FlowOutcome:
        """Exchange an auth code and hand back a claims token for the session."""
        token_result = await self.gateway.apply_token(auth_code)
        if not (token_result.is_success and token_result.result_code == "SUCCESS"):
            self.logger.warning("Token exchange rejected", result=token_result.summary())
            return _outcome(token_result, False)

        info = await self.gateway.inquiry_user_info(token_result.access_token)
        if info.result_code != "SUCCESS" or not info.user_id:
            self.logger.warning("User info lookup rejected", result=info.summary())
            return _outcome(info, False)

        set_user_context(info.user_id)
        token = self.codec.issue({"user_id": info.user_id, "access_token": token_result.access_token})
        self.logger.info(
            "Session issued",
            user_id=info.user_id,
            access_token=mask_secret(token_result.access_token),
        )
        return FlowOutcome(success=True, body={"token": token}, result=token_result)

    async def apply_agreement_token(self, auth_code: str) -> FlowOutcome:
        """Token exchange for agreement payments; the access token goes back to the caller."""
        result = await self.gateway.apply_token(auth_code)
        if not (result.is_success and result.result_code == "SUCCESS"):
            return _outcome(result, False)
        return _outcome(
            result,
            True,
            accessToken=result.access_token,
            customerId=result.customer_id,
            accessTokenExpiryTime=result.access_token_expiry_time,
        )

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    async def user_info(self, token: str) -> FlowOutcome:
        result = await self.gateway.inquiry_user_info(self._access_token(token))
        if result.result_code != "SUCCESS":
            return _outcome(result, False)
        return _outcome(result, True, userInfo=result.user_info)

    async def card_list(self, token: str) -> FlowOutcome:
        result = await self.gateway.inquiry_user_card_list(self._access_token(token))
        if not result.is_success:
            return _outcome(result, False)
        return _outcome(result, True, cardList=result.card_list or [])

    async def merchant_info(self, token: str) -> FlowOutcome:
        """Merchant profile for the session's user; anything but SUCCESS is a failure."""
        result = await self.gateway.inquiry_merchant_info(self._access_token(token))
        if result.result_code != "SUCCESS":
            self.logger.warning("Merchant info lookup rejected", result=result.summary())
            return _outcome(result, False, pending=False)
        outcome = _outcome(result, True)
        for key, value in result.details().items():
            outcome.body.setdefault(key, value)
        return outcome

    # ------------------------------------------------------------------
    # Payments
    # ------------------------------------------------------------------

    async def create_payment(
        self,
        token: str,
        amount: str = "1000",
        currency: Optional[str] = None,
        description: str = DEFAULT_ORDER_DESCRIPTION,
    ) -> FlowOutcome:
        """Online purchase for the token's user; the mini app completes it at the redirect URL."""
        user_id = self._open(token).get("user_id")
        if not user_id:
            raise TokenError(TokenErrorKind.PAYLOAD, "no user_id claim")

        request = PaymentRequest(
            product_code=ONLINE_PURCHASE,
            payment_request_id=payment_request_id(),
            payment_amount=Amount(currency=currency or self.default_currency, value=str(amount)),
            order=Order(order_description=description, buyer=OrderBuyer(reference_buyer_id=user_id)),
            payment_expiry_time=expiry_time(),
            payment_redirect_url=f"{self.base_url}/payment-success.html",
        )
        result = await self.gateway.pay(request)
        if result.is_failed:
            return _outcome(result, False, paymentRequestId=request.payment_request_id)
        if not result.redirect_url:
            self.logger.warning("Payment accepted without a redirect URL", payment_id=result.payment_id)
        return _outcome(
            result,
            bool(result.redirect_url) or result.is_success,
            paymentUrl=result.redirect_url or None,
            paymentId=result.payment_id,
            paymentRequestId=request.payment_request_id,
            amount=str(amount),
        )

    async def inquire_payment(
        self,
        payment_id: Optional[str] = None,
        payment_request_id: Optional[str] = None,
    ) -> FlowOutcome:
        """Look up a payment by gateway id or by our request id."""
        if not (payment_id or payment_request_id):
            raise ValidationError(
                "Either paymentId or paymentRequestId is required",
                details={"fields": ["paymentId", "paymentRequestId"]},
            )

        result = await self.gateway.inquiry_payment(
            PaymentInquiryRequest(payment_id=payment_id or None, payment_request_id=payment_request_id or None)
        )
        if not result.is_success:
            return _outcome(result, False, pending=False, paymentId=payment_id, paymentRequestId=payment_request_id)

        extend_info_data = None
        if result.extend_info:
            try:
                extend_info_data = parse_extend_info(result.extend_info)
            except ValueError as e:
                self.logger.warning("Unparseable extendInfo", error=str(e), extend_info=result.extend_info)
            else:
                self.logger.info(
                    "Payment tracking",
                    payment_id=result.payment_id,
                    product_id=extend_info_data.get("productId"),
                    quantity=extend_info_data.get("quantity"),
                    order_id=extend_info_data.get("orderId"),
                )

        return _outcome(
            result,
            True,
            paymentId=result.payment_id,
            paymentRequestId=result.payment_request_id,
            paymentStatus=result.payment_status,
            paymentTime=result.payment_time,
            paymentAmount=result.payment_amount,
            extendInfo=result.extend_info,
            extendInfoData=extend_info_data,
        )

    async def prepare_contract(self, description: str) -> FlowOutcome:
        result = await self.gateway.prepare_authorization(description)
        if not result.is_success:
            return _outcome(result, False)
        if not result.auth_url:
            self.logger.warning("Authorization prepared without authUrl")
        return _outcome(result, True, authUrl=result.auth_url)

    async def agreement_payment(
        self,
        access_token: str,
        customer_id: str,
        amount: Any,
        currency: Optional[str] = None,
        description: str = DEFAULT_AGREEMENT_DESCRIPTION,
    ) -> FlowOutcome:
        """Charge a signed agreement without user interaction."""
        request = PaymentRequest(
            product_code=AGREEMENT_PAYMENT,
            payment_request_id=agreement_payment_request_id(),
            payment_auth_code=access_token,
            payment_amount=Amount(currency=currency or self.default_currency, value=str(amount)),
            order=Order(order_description=description, buyer=OrderBuyer(reference_buyer_id=customer_id)),
            payment_expiry_time=expiry_time(),
            payment_notify_url=f"{self.base_url}/api/webhook/payment-notify",
        )
        result = await self.gateway.pay(request)

        if result.is_unknown:
            self.logger.warning(
                "Agreement payment outcome unknown, reconciling",
                payment_request_id=request.payment_request_id,
            )
            task = self.reconciler.start_payment_reconciliation(request.payment_request_id)
            return self._reconciled_payment(request.payment_request_id, await asyncio.shield(task))

        return _outcome(
            result,
            result.is_success,
            paymentId=result.payment_id,
            paymentRequestId=request.payment_request_id,
            paymentTime=result.payment_time,
        )

    def _reconciled_payment(self, payment_request_id: str, reconciliation: ReconciliationResult) -> FlowOutcome:
        return self._reconciled(
            reconciliation,
            "paymentRequestId",
            payment_request_id,
            label="Payment",
            succeeded=lambda last: {"paymentId": last.payment_id, "paymentTime": last.payment_time},
            fail_reason=lambda last: last.payment_fail_reason,
        )

    # ------------------------------------------------------------------
    # Refunds
    # ------------------------------------------------------------------

    async def refund(self, payment_id: str, amount: Any, reason: str = DEFAULT_REFUND_REASON) -> FlowOutcome:
        """Refund ``amount`` dinars of a payment, reconciling an unknown answer."""
        request = RefundRequest(
            refund_request_id=refund_request_id(),
            payment_id=payment_id,
            refund_amount=Amount(currency=self.default_currency, value=to_fils(amount)),
            refund_reason=reason,
        )
        result = await self.gateway.refund(request)

        if result.is_unknown:
            self.logger.warning("Refund outcome unknown, reconciling", refund_request_id=request.refund_request_id)
            task = self.reconciler.start_refund_reconciliation(request.refund_request_id)
            return self._reconciled_refund(request.refund_request_id, await asyncio.shield(task))

        return _outcome(
            result,
            result.is_success,
            refundId=result.refund_id,
            refundTime=result.refund_time,
            refundRequestId=request.refund_request_id,
        )

    def _reconciled_refund(self, refund_request_id: str, reconciliation: ReconciliationResult) -> FlowOutcome:
        return self._reconciled(
            reconciliation,
            "refundRequestId",
            refund_request_id,
            label="Refund",
            succeeded=lambda last: {"refundId": last.refund_id, "refundTime": last.refund_time},
            fail_reason=lambda last: last.refund_fail_reason,
        )

    def _reconciled(
        self,
        reconciliation: ReconciliationResult,
        key_name: str,
        operation_id: str,
        label: str,
        succeeded: Callable[[GatewayResult], Dict[str, Any]],
        fail_reason: Callable[[GatewayResult], Optional[str]],
    ) -> FlowOutcome:
        """Shape a finished reconciliation like a direct gateway answer."""
        last = reconciliation.last_result
        outcome = reconciliation.outcome
        if outcome == ReconciliationOutcome.STILL_UNKNOWN:
            raise ReconciliationTimeout(operation_id, reconciliation.attempts)

        if outcome == ReconciliationOutcome.SUCCEEDED:
            body = {
                "success": True,
                "status": "SUCCESS",
                "resultStatus": ResultStatus.SUCCESS.value,
                "resultCode": "SUCCESS",
                "resultMessage": "Success",
            }
            body.update(succeeded(last))
        elif outcome == ReconciliationOutcome.FAILED:
            body = {
                "success": False,
                "status": "FAILED",
                "resultStatus": ResultStatus.FAILED.value,
                "resultCode": f"{label.upper()}_FAILED",
                "resultMessage": fail_reason(last) or f"{label} failed",
            }
        else:
            body = {
                "success": False,
                "status": "FAILED",
                "resultStatus": ResultStatus.FAILED.value,
                "resultCode": last.result_code,
                "resultMessage": f"{label} not found in wallet system",
            }
        body[key_name] = operation_id
        body["attempts"] = reconciliation.attempts
        return FlowOutcome(
            success=body["success"],
            body={k: v for k, v in body.items() if v is not None},
            result=last,
        )

    # ------------------------------------------------------------------
    # Notifications
    # ------------------------------------------------------------------

    async def send_inbox(self, token: str, title: str, content: str, url: Optional[str] = None) -> FlowOutcome:
        request = self._notification(token, INBOX_TEMPLATE, title, content, url)
        result = await self.gateway.send_inbox(request)
        return _outcome(
            result,
            result.is_success or result.is_accepted,
            messageId=result.message_id,
            requestId=request.request_id,
        )

    async def send_push(self, token: str, title: str, content: str, url: Optional[str] = None) -> FlowOutcome:
        request = self._notification(token, PUSH_TEMPLATE, title, content, url)
        result = await self.gateway.send_push(request)
        return _outcome(
            result,
            result.is_success or result.is_accepted,
            messageId=result.message_id,
            requestId=request.request_id,
        )

    def _notification(self, token, template_code, title, content, url) -> NotificationRequest:
        return NotificationRequest(
            access_token=self._access_token(token),
            request_id=notification_request_id(),
            template_code=template_code,
            templates=[
                NotificationTemplate(
                    template_parameters={"Title": title, "Content": content, "Url": url or DEFAULT_DEEP_LINK}
                )
            ],
        )

