"""
Unit tests for the Wallet service HTTP boundary.
"""

import httpx
import pytest
from fastapi.testclient import TestClient

from service_wallet.app.main import WalletService, create_app
from shared.errors import ConfigError
from shared.test_helpers import FakeWalletGateway, KeyFactory, RecordingSleep, envelope, make_config


@pytest.fixture(scope="module")
def key():
    return KeyFactory.private_key()


@pytest.fixture
def fake(key):
    fake = FakeWalletGateway(key.public_key())
    fake.add_user("code-1", "user-1", access_token="AT-1", customer_id="C-1")
    return fake


@pytest.fixture
def config(tmp_path, key):
    return make_config(tmp_path, key=key, reconcile_max_attempts=3)


@pytest.fixture
def client(config, fake):
    app = create_app(config=config, transport=fake.transport, sleep=RecordingSleep())
    with TestClient(app) as client:
        yield client


def login(client) -> str:
    response = client.post("/api/auth/apply-token", json={"auth_code": "code-1"})
    assert response.status_code == 200
    return response.json()["token"]


class TestWalletService:
    """Test cases for service wiring."""

    def test_health_check(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["service"] == "wallet"
        assert data["status"] == "ok"
        assert data["dependencies"]["gateway"] == "configured"

    def test_metrics_endpoint(self, client):
        login(client)
        response = client.get("/metrics")

        assert response.status_code == 200
        assert 'gateway_calls_total{operation="apply_token",result_status="S"} 1.0' in response.text

    def test_request_id_is_echoed(self, client):
        response = client.get("/health", headers={"X-Request-ID": "req-123"})
        assert response.headers["X-Request-ID"] == "req-123"

    def test_missing_claims_key_refuses_to_start(self, tmp_path, key):
        with pytest.raises(ConfigError):
            WalletService(config=make_config(tmp_path, key=key, claims_key=None))

    def test_missing_key_file_refuses_to_start(self, tmp_path, key):
        config = make_config(tmp_path, key=key, merchant_private_key_path=str(tmp_path / "none.pem"))
        with pytest.raises(ConfigError):
            WalletService(config=config)


class TestAuthEndpoints:
    """Test cases for login and session use."""

    def test_login_then_user_info(self, client):
        token = login(client)
        response = client.post("/api/user/info", json={"token": token})

        assert response.status_code == 200
        assert response.json()["userInfo"]["userId"] == "user-1"

    def test_rejected_auth_code_is_bad_request(self, client):
        response = client.post("/api/auth/apply-token", json={"auth_code": "nope"})

        assert response.status_code == 400
        assert response.json()["resultStatus"] == "F"
        assert response.json()["resultCode"] == "INVALID_CODE"

    def test_invalid_token_is_unauthorized(self, client, fake):
        response = client.post(
            "/api/user/cards", json={"token": "garbage"}, headers={"X-Request-ID": "req-9"}
        )

        assert response.status_code == 401
        body = response.json()
        assert body["code"] == "AUTHENTICATION_ERROR"
        assert body["message"] == "Invalid token"
        assert body["request_id"] == "req-9"
        assert "decode" not in response.text
        assert fake.calls == []

    def test_merchant_info(self, client):
        token = login(client)
        response = client.post("/api/merchant/info", json={"token": token})

        assert response.status_code == 200
        assert response.json()["merchantInfo"]["merchantName"] == "Test Merchant"

    def test_merchant_info_invalid_token(self, client, fake):
        response = client.post("/api/merchant/info", json={"token": "garbage"})

        assert response.status_code == 401
        assert fake.calls_to("/v1/merchants/inquiryMerchantInfo") == []

    def test_merchant_info_rejected(self, client, fake):
        token = login(client)
        fake.script("/v1/merchants/inquiryMerchantInfo", envelope("U", "UNKNOWN_EXCEPTION", "Try later"))

        response = client.post("/api/merchant/info", json={"token": token})

        assert response.status_code == 400
        assert response.json()["resultCode"] == "UNKNOWN_EXCEPTION"

    def test_missing_field_is_validation_error(self, client):
        response = client.post("/api/auth/apply-token", json={})

        assert response.status_code == 400
        assert response.json()["code"] == "VALIDATION_ERROR"


class TestPaymentEndpoints:
    """Test cases for payments and refunds."""

    def test_create_payment(self, client):
        token = login(client)
        response = client.post("/api/payment/create", json={"token": token, "amount": 2500})

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["paymentUrl"]
        assert data["amount"] == "2500"

    def test_transport_failure_is_bad_gateway(self, client, fake):
        token = login(client)
        fake.script("/v1/payments/pay", httpx.ConnectError("gateway down"))

        response = client.post("/api/payment/create", json={"token": token})

        assert response.status_code == 502
        assert response.json()["code"] == "GATEWAY_TRANSPORT_ERROR"

    def test_payment_inquiry(self, client):
        token = login(client)
        created = client.post("/api/payment/create", json={"token": token, "amount": 2500}).json()

        response = client.post("/api/payment/inquiry", json={"paymentRequestId": created["paymentRequestId"]})

        assert response.status_code == 200
        data = response.json()
        assert data["paymentId"] == created["paymentId"]
        assert data["paymentStatus"] == "SUCCESS"
        assert data["paymentAmount"] == {"currency": "IQD", "value": "2500"}

    def test_payment_inquiry_requires_an_identifier(self, client, fake):
        response = client.post("/api/payment/inquiry", json={})

        assert response.status_code == 400
        assert response.json()["code"] == "VALIDATION_ERROR"
        assert fake.calls == []

    def test_payment_inquiry_unknown_order(self, client):
        response = client.post("/api/payment/inquiry", json={"paymentId": "P-404"})

        assert response.status_code == 400
        assert response.json()["resultCode"] == "ORDER_NOT_EXIST"

    def test_refund(self, client):
        response = client.post("/api/payment/refund", json={"paymentId": "P-1", "amount": 1})

        assert response.status_code == 200
        assert response.json()["refundId"] == "R-1"

    def test_refund_amount_must_be_positive(self, client):
        response = client.post("/api/payment/refund", json={"paymentId": "P-1", "amount": 0})
        assert response.status_code == 400

    def test_refund_still_unknown_is_accepted(self, client, fake):
        fake.refund_status = "U"
        fake.script(
            "/v1/payments/inquiryRefund",
            *[envelope("S", "SUCCESS", "", refundStatus="PROCESSING") for _ in range(3)],
        )

        response = client.post("/api/payment/refund", json={"paymentId": "P-1", "amount": 1})

        assert response.status_code == 202
        body = response.json()
        assert body["code"] == "RECONCILIATION_TIMEOUT"
        assert body["details"]["attempts"] == 3


class TestAgreementAndNotificationEndpoints:
    """Test cases for agreement payments and messages."""

    def test_agreement_flow(self, client):
        prepare = client.post("/api/agreement/prepare", json={"contractDescription": "Monthly"})
        token = client.post("/api/agreement/apply-token", json={"authCode": "code-1"})
        pay = client.post(
            "/api/agreement/pay",
            json={"accessToken": "AT-1", "customerId": "C-1", "amount": 1000},
        )

        assert prepare.json()["authUrl"]
        assert token.json()["accessToken"] == "AT-1"
        assert pay.status_code == 200
        assert pay.json()["status"] == "SUCCESS"

    def test_agreement_pay_requires_customer(self, client):
        response = client.post("/api/agreement/pay", json={"accessToken": "AT-1", "amount": 1000})
        assert response.status_code == 400

    def test_send_inbox(self, client, fake):
        token = login(client)
        response = client.post(
            "/api/notification/send-inbox",
            json={"token": token, "title": "Hi", "content": "There"},
        )

        assert response.status_code == 200
        assert response.json()["messageId"].startswith("M-NOTIF-")
        assert fake.calls_to("/v1/messages/sendInbox")[0]["params"]["templateCode"] == "MINI_APP_COMMON_INBOX"

    def test_gateway_business_failure_on_push(self, client, fake):
        token = login(client)
        fake.script("/v1/messages/sendPush", envelope("F", "USER_NOT_EXIST", "No such user"))

        response = client.post(
            "/api/notification/send-push",
            json={"token": token, "title": "Hi", "content": "There"},
        )

        assert response.status_code == 400
        assert response.json()["resultCode"] == "USER_NOT_EXIST"
