"""
Request and response shapes for wallet gateway operations.

Field names are snake_case in Python and camelCase on the wire. Request
models are dumped in declaration order, which keeps the signed body stable
for retries of the same call.
"""

import json
from enum import Enum
from typing import Any, Dict, List, Optional, Type, TypeVar

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


# Product codes understood by the gateway
ONLINE_PURCHASE = "ONLINE_PURCHASE"
AGREEMENT_PAYMENT = "AGREEMENT_PAYMENT"

INBOX_TEMPLATE = "MINI_APP_COMMON_INBOX"
PUSH_TEMPLATE = "MINI_APP_COMMON_PUSH"


class ResultStatus(str, Enum):
    """Gateway resultStatus values."""
    SUCCESS = "S"
    ACCEPTED = "A"
    UNKNOWN = "U"
    FAILED = "F"

    @classmethod
    def parse(cls, value: Any) -> "ResultStatus":
        """Unrecognized or missing statuses are treated as unknown."""
        try:
            return cls(value)
        except ValueError:
            return cls.UNKNOWN


class WireModel(BaseModel):
    """Base for everything exchanged with the gateway."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    def to_params(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------

class Amount(WireModel):
    """Money in minor units, as a decimal string."""
    currency: str
    value: str


class OrderBuyer(WireModel):
    reference_buyer_id: str


class Order(WireModel):
    order_description: str
    buyer: Optional[OrderBuyer] = None


class PaymentRequest(WireModel):
    product_code: str
    payment_request_id: str = Field(min_length=1)
    payment_auth_code: Optional[str] = None
    payment_amount: Amount
    order: Optional[Order] = None
    payment_expiry_time: Optional[str] = None
    payment_notify_url: Optional[str] = None
    payment_redirect_url: Optional[str] = None


class PaymentInquiryRequest(WireModel):
    payment_id: Optional[str] = None
    payment_request_id: Optional[str] = None


class RefundRequest(WireModel):
    refund_request_id: str = Field(min_length=1)
    payment_id: Optional[str] = None
    payment_request_id: Optional[str] = None
    capture_id: Optional[str] = None
    refund_amount: Amount
    refund_reason: Optional[str] = None
    extend_info: Optional[str] = None


class RefundInquiryRequest(WireModel):
    refund_id: Optional[str] = None
    refund_request_id: Optional[str] = None


class NotificationTemplate(WireModel):
    # Template parameter keys are PascalCase on the wire (Title, Content, Url)
    template_parameters: Dict[str, str]


class NotificationRequest(WireModel):
    access_token: str
    request_id: str
    template_code: str
    templates: List[NotificationTemplate]


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------

R = TypeVar("R", bound="GatewayResult")


class GatewayResult(WireModel):
    """Universal envelope returned by every gateway operation.

    ``payload`` is the response body exactly as received.
    """

    result_status: ResultStatus
    result_code: str = ""
    result_message: str = ""
    payload: Dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_envelope(cls: Type[R], body: Dict[str, Any]) -> R:
        result = body.get("result")
        if not isinstance(result, dict):
            result = {}
        fields = {k: v for k, v in body.items() if k != "result"}
        fields.update(
            resultStatus=ResultStatus.parse(result.get("resultStatus")),
            resultCode=result.get("resultCode") or "",
            resultMessage=result.get("resultMessage") or "",
            payload=body,
        )
        return cls.model_validate(fields)

    @property
    def is_success(self) -> bool:
        return self.result_status == ResultStatus.SUCCESS

    @property
    def is_accepted(self) -> bool:
        return self.result_status == ResultStatus.ACCEPTED

    @property
    def is_unknown(self) -> bool:
        return self.result_status == ResultStatus.UNKNOWN

    @property
    def is_failed(self) -> bool:
        return self.result_status == ResultStatus.FAILED

    def summary(self) -> Dict[str, str]:
        return {
            "resultStatus": self.result_status.value,
            "resultCode": self.result_code,
            "resultMessage": self.result_message,
        }


class ApplyTokenResult(GatewayResult):
    access_token: Optional[str] = None
    access_token_expiry_time: Optional[str] = None
    refresh_token: Optional[str] = None
    refresh_token_expiry_time: Optional[str] = None
    customer_id: Optional[str] = None


class UserInfoResult(GatewayResult):
    user_info: Optional[Dict[str, Any]] = None

    @property
    def user_id(self) -> Optional[str]:
        return (self.user_info or {}).get("userId")


class CardListResult(GatewayResult):
    card_list: Optional[List[Dict[str, Any]]] = None


class PrepareAuthorizationResult(GatewayResult):
    auth_url: Optional[str] = None


class PaymentResult(GatewayResult):
    payment_id: Optional[str] = None
    payment_request_id: Optional[str] = None
    payment_time: Optional[str] = None
    redirect_action_form: Optional[Dict[str, Any]] = None

    @property
    def redirect_url(self) -> str:
        return (self.redirect_action_form or {}).get("redirectUrl") or ""


class PaymentInquiryResult(GatewayResult):
    payment_id: Optional[str] = None
    payment_request_id: Optional[str] = None
    payment_status: Optional[str] = None
    payment_time: Optional[str] = None
    payment_fail_reason: Optional[str] = None
    payment_amount: Optional[Dict[str, Any]] = None
    extend_info: Optional[str] = None


class RefundResult(GatewayResult):
    refund_id: Optional[str] = None
    refund_time: Optional[str] = None


class RefundInquiryResult(GatewayResult):
    refund_id: Optional[str] = None
    refund_request_id: Optional[str] = None
    refund_amount: Optional[Dict[str, Any]] = None
    refund_reason: Optional[str] = None
    refund_time: Optional[str] = None
    refund_status: Optional[str] = None
    refund_fail_reason: Optional[str] = None


class MerchantInfoResult(GatewayResult):
    """Merchant profile fields are passed through as received."""

    def details(self) -> Dict[str, Any]:
        return {k: v for k, v in self.payload.items() if k != "result"}


class NotificationResult(GatewayResult):
    message_id: Optional[str] = None
    extend_info: Optional[str] = None


def build_extend_info(data: Dict[str, Any]) -> str:
    """Gateways carry extendInfo as a JSON document inside a string field."""
    return json.dumps(data, separators=(",", ":"), ensure_ascii=False)


def parse_extend_info(extend_info: Optional[str]) -> Dict[str, Any]:
    if not extend_info:
        return {}
    data = json.loads(extend_info)
    if not isinstance(data, dict):
        raise ValueError("extendInfo is not a JSON object")
    return data
