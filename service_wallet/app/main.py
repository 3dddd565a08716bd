"""
Wallet service for the Wallet Access Layer.
"""

import asyncio
from typing import Awaitable, Callable, Optional

import httpx
from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from shared.base_service import BaseService
from shared.config import ServiceConfig, get_config
from shared.errors import ValidationError
from shared.metrics import MetricsCollector
from shared.retry import RetryConfig
from .adapters import SignedGatewayClient, WalletGateway
from .domain.wallet_flows import FlowOutcome, WalletFlows
from .reconciliation import OutcomeReconciler
from .signing import load_gateway_credential
from .tokens import ClaimsTokenCodec

SERVICE_NAME = "wallet"
SERVICE_PORT = 1999


class CamelBody(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ApplyTokenBody(BaseModel):
    """Mini app login; field name matches what the mini app sends."""
    auth_code: str = Field(min_length=1)


class TokenBody(CamelBody):
    token: str = Field(min_length=1)


class CreatePaymentBody(TokenBody):
    amount: int = Field(default=1000, gt=0)
    currency: Optional[str] = None
    order_description: Optional[str] = None


class RefundBody(CamelBody):
    payment_id: str = Field(min_length=1)
    amount: float = Field(gt=0)


class PaymentInquiryBody(CamelBody):
    payment_id: Optional[str] = None
    payment_request_id: Optional[str] = None


class PrepareContractBody(CamelBody):
    contract_description: str = Field(min_length=1)


class AgreementTokenBody(CamelBody):
    auth_code: str = Field(min_length=1)


class AgreementPayBody(CamelBody):
    access_token: str = Field(min_length=1)
    customer_id: str = Field(min_length=1)
    amount: int = Field(gt=0)
    currency: Optional[str] = None
    order_description: Optional[str] = None


class NotificationBody(TokenBody):
    title: str = Field(min_length=1)
    content: str = Field(min_length=1)
    url: Optional[str] = None


def respond(outcome: FlowOutcome) -> JSONResponse:
    """200 for success or a still-pending gateway answer, 400 for business failures."""
    status_code = 200 if outcome.success or outcome.pending else 400
    return JSONResponse(status_code=status_code, content=outcome.body)


class WalletService(BaseService):
    """Wallet service implementation."""

    def __init__(
        self,
        config: Optional[ServiceConfig] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        metrics: Optional[MetricsCollector] = None,
    ):
        super().__init__(SERVICE_NAME, SERVICE_PORT, config=config, metrics=metrics)

        # Key material and claims key are checked here so a bad deployment
        # never starts serving
        self.credential = load_gateway_credential(self.config)
        self.codec = ClaimsTokenCodec.from_config(self.config, metrics=self.metrics)

        self.client = SignedGatewayClient(
            self.credential,
            timeout=self.config.gateway_timeout,
            transport=transport,
            metrics=self.metrics,
        )
        self.gateway = WalletGateway(self.client)
        self.reconciler = OutcomeReconciler(
            self.gateway,
            config=RetryConfig(
                self.config.reconcile_max_attempts,
                self.config.reconcile_interval_seconds,
            ),
            sleep=sleep,
            metrics=self.metrics,
        )
        self.flows = WalletFlows(
            self.gateway,
            self.codec,
            self.reconciler,
            base_url=self.config.base_url,
            default_currency=self.config.default_currency,
        )

        self.logger.info(
            "Wallet service configured",
            gateway_url=self.credential.gateway_base_url,
            client_id=self.credential.client_id,
        )
        self._setup_wallet_routes()

    def _setup_wallet_routes(self):
        """Set up wallet-specific routes."""

        @self.app.on_event("shutdown")
        async def shutdown():
            await self.client.aclose()

        @self.app.exception_handler(RequestValidationError)
        async def request_validation_handler(request: Request, exc: RequestValidationError):
            error = ValidationError(
                "Invalid request body",
                details={"errors": [
                    {"field": ".".join(str(p) for p in err.get("loc", ())[1:]), "message": err.get("msg")}
                    for err in exc.errors()
                ]},
            )
            self.logger.warning("Request validation failed", path=request.url.path, details=error.details)
            return JSONResponse(status_code=error.status_code, content=error.to_response().model_dump())

        @self.app.get("/")
        async def root():
            """Root endpoint."""
            return {
                "service": SERVICE_NAME,
                "message": "Wallet Access Layer - Wallet Service",
                "version": "1.0.0"
            }

        @self.app.post("/api/auth/apply-token")
        async def apply_token(body: ApplyTokenBody):
            """Exchange a mini app auth code for a session token."""
            return respond(await self.flows.authenticate(body.auth_code))

        @self.app.post("/api/user/info")
        async def user_info(body: TokenBody):
            return respond(await self.flows.user_info(body.token))

        @self.app.post("/api/user/cards")
        async def user_cards(body: TokenBody):
            return respond(await self.flows.card_list(body.token))

        @self.app.post("/api/merchant/info")
        async def merchant_info(body: TokenBody):
            return respond(await self.flows.merchant_info(body.token))

        @self.app.post("/api/payment/create")
        async def create_payment(body: CreatePaymentBody):
            """Create an online purchase for the session's user."""
            kwargs = {"description": body.order_description} if body.order_description else {}
            return respond(await self.flows.create_payment(
                body.token, amount=str(body.amount), currency=body.currency, **kwargs
            ))

        @self.app.post("/api/payment/refund")
        async def refund(body: RefundBody):
            """Refund a payment; an unknown outcome is reconciled before answering."""
            return respond(await self.flows.refund(body.payment_id, body.amount))

        @self.app.post("/api/payment/inquiry")
        async def payment_inquiry(body: PaymentInquiryBody):
            """Look up a payment by paymentId or paymentRequestId."""
            return respond(await self.flows.inquire_payment(body.payment_id, body.payment_request_id))

        @self.app.post("/api/agreement/prepare")
        async def prepare_contract(body: PrepareContractBody):
            return respond(await self.flows.prepare_contract(body.contract_description))

        @self.app.post("/api/agreement/apply-token")
        async def agreement_token(body: AgreementTokenBody):
            return respond(await self.flows.apply_agreement_token(body.auth_code))

        @self.app.post("/api/agreement/pay")
        async def agreement_pay(body: AgreementPayBody):
            """Charge a signed agreement."""
            kwargs = {"description": body.order_description} if body.order_description else {}
            return respond(await self.flows.agreement_payment(
                body.access_token, body.customer_id, body.amount, currency=body.currency, **kwargs
            ))

        @self.app.post("/api/notification/send-inbox")
        async def send_inbox(body: NotificationBody):
            return respond(await self.flows.send_inbox(body.token, body.title, body.content, body.url))

        @self.app.post("/api/notification/send-push")
        async def send_push(body: NotificationBody):
            return respond(await self.flows.send_push(body.token, body.title, body.content, body.url))

    async def _check_dependencies(self):
        """Report gateway configuration and in-flight reconciliations."""
        return {
            "gateway": "configured",
            "reconciliations_in_flight": str(self.reconciler.in_flight),
        }


def create_app(
    config: Optional[ServiceConfig] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    metrics: Optional[MetricsCollector] = None,
):
    """Create FastAPI application."""
    service = WalletService(config=config, transport=transport, sleep=sleep, metrics=metrics)
    return service.app


if __name__ == "__main__":
    service = WalletService(config=get_config(SERVICE_NAME, SERVICE_PORT))
    service.run()
