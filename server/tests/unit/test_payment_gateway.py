"""Unit tests for the payment provider adapter."""

import hashlib
import hmac
import json

import httpx
import pytest

from elite_tours.core.config import Settings
from elite_tours.core.exceptions import PaymentGatewayError, ValidationError, WebhookSignatureError
from elite_tours.models.settings import BusinessSettings
from elite_tours.schemas.payment import BillingDetails, CardDetails
from elite_tours.services.payment_gateway import (
    CloverGateway,
    PaymentCredentials,
    PaymentGateway,
    SimulatedCloverGateway,
    create_payment_gateway,
    resolve_credentials,
)

CREDENTIALS = PaymentCredentials(
    app_id="MERCHANT123",
    api_token="sandbox-token-1234567890",
    environment="sandbox",
    webhook_secret="whsec-test",
)


def card(number: str = "4111111111111111") -> CardDetails:
    return CardDetails(number=number, exp_month="12", exp_year="2030", cvv="123")


BILLING = BillingDetails(name="Keanu Kahale", zip="96815")


def sign(payload: bytes, secret: str = "whsec-test") -> str:
    return hmac.new(secret.encode(), payload, hashlib.sha256).hexdigest()


@pytest.mark.asyncio
async def test_simulated_test_card_succeeds():
    result = await SimulatedCloverGateway(CREDENTIALS).create_payment(48713, "usd", card(), BILLING)

    assert result.success is True
    assert result.payment_id.startswith("clv_")
    assert result.error is None


@pytest.mark.asyncio
async def test_simulated_other_card_is_declined_not_raised():
    result = await SimulatedCloverGateway(CREDENTIALS).create_payment(
        48713, "usd", card("4000000000000002"), BILLING
    )

    assert result.success is False
    assert result.payment_id is None
    assert result.error == "Card declined"


@pytest.mark.asyncio
async def test_simulated_refund_and_intent():
    gateway = SimulatedCloverGateway(CREDENTIALS)

    refund = await gateway.refund_payment("clv_1", 1000)
    intent = await gateway.create_payment_intent(1000, "usd", "order-1")

    assert refund.status == "succeeded"
    assert refund.amount == 1000
    assert intent.id.startswith("pi_")
    assert intent.client_secret.startswith(f"{intent.id}_secret_")
    assert intent.status == "requires_payment_method"


@pytest.mark.parametrize(
    "app_id,api_token,valid,error",
    [
        ("MERCHANT123", "sandbox-token-1234567890", True, None),
        ("MERCHANT123", "short", False, "Invalid API token"),
        ("M1", "sandbox-token-1234567890", False, "Invalid App ID"),
        ("MERCHANT123", "token with spaces", False, "Invalid API token"),
        (None, None, False, "Invalid API token"),
    ],
)
def test_validate_credentials(app_id, api_token, valid, error):
    assert PaymentGateway.validate_credentials(app_id, api_token) == {"valid": valid, "error": error}


def test_dashboard_url_depends_on_environment():
    sandbox = SimulatedCloverGateway(CREDENTIALS)
    production = SimulatedCloverGateway(
        PaymentCredentials(app_id="MERCHANT123", api_token="t" * 20, environment="production")
    )

    assert sandbox.get_dashboard_url() == "https://sandbox.dev.clover.com/dashboard/m/MERCHANT123"
    assert production.get_dashboard_url() == "https://www.clover.com/dashboard/m/MERCHANT123"
    assert sandbox.base_url == "https://sandbox.dev.clover.com"
    assert production.base_url == "https://api.clover.com"


def test_webhook_signature_verified():
    payload = json.dumps({"type": "payment.succeeded", "data": {"id": "clv_1"}}).encode()
    gateway = SimulatedCloverGateway(CREDENTIALS)

    assert gateway.verify_webhook_signature(payload, sign(payload))["type"] == "payment.succeeded"
    assert gateway.verify_webhook_signature(payload, f"sha256={sign(payload)}")["data"]["id"] == "clv_1"


@pytest.mark.parametrize("signature", [None, "", "deadbeef"])
def test_webhook_signature_rejected(signature):
    payload = b'{"type": "payment.succeeded"}'

    with pytest.raises(WebhookSignatureError):
        SimulatedCloverGateway(CREDENTIALS).verify_webhook_signature(payload, signature)


def test_webhook_signature_with_other_secret_rejected():
    payload = b'{"type": "payment.succeeded"}'

    with pytest.raises(WebhookSignatureError):
        SimulatedCloverGateway(CREDENTIALS).verify_webhook_signature(payload, sign(payload, "other"))


def test_webhook_requires_configured_secret():
    gateway = SimulatedCloverGateway(PaymentCredentials(app_id="MERCHANT123", api_token="t" * 20))

    with pytest.raises(WebhookSignatureError, match="not configured"):
        gateway.verify_webhook_signature(b"{}", sign(b"{}"))


def test_webhook_payload_must_be_object():
    payload = b'["not", "an", "object"]'

    with pytest.raises(ValidationError):
        SimulatedCloverGateway(CREDENTIALS).verify_webhook_signature(payload, sign(payload))


def test_resolve_credentials_prefers_stored_settings():
    config = Settings(clover_app_id="ENVAPP01", clover_api_token="env-token-1234567890", clover_webhook_secret="s")
    stored = BusinessSettings(
        clover_app_id="MERCHANT123",
        clover_api_token="sandbox-token-1234567890",
        clover_environment="production",
    )

    credentials = resolve_credentials(stored, config)

    assert credentials.app_id == "MERCHANT123"
    assert credentials.environment == "production"
    assert credentials.webhook_secret == "s"
    assert "sandbox-token" not in repr(credentials)


def test_resolve_credentials_falls_back_to_environment():
    config = Settings(clover_app_id="ENVAPP01", clover_api_token="env-token-1234567890")

    assert resolve_credentials(None, config).app_id == "ENVAPP01"
    assert resolve_credentials(BusinessSettings(clover_app_id=None), config).app_id == "ENVAPP01"


def test_resolve_credentials_none_when_unconfigured():
    assert resolve_credentials(None, Settings(clover_app_id=None, clover_api_token=None)) is None


def test_gateway_factory_follows_mode():
    assert isinstance(create_payment_gateway(CREDENTIALS, Settings(payment_gateway_mode="live")), CloverGateway)
    assert isinstance(
        create_payment_gateway(CREDENTIALS, Settings(payment_gateway_mode="simulated")),
        SimulatedCloverGateway,
    )


def test_gateway_base_cannot_be_instantiated():
    with pytest.raises(TypeError):
        PaymentGateway(CREDENTIALS)

    class ChargeOnlyGateway(PaymentGateway):
        async def create_payment(self, amount, currency, card, billing, idempotency_key=None):
            raise AssertionError("not called")

    with pytest.raises(TypeError):
        ChargeOnlyGateway(CREDENTIALS)


def live_gateway(handler) -> CloverGateway:
    return CloverGateway(CREDENTIALS, timeout=2.0, transport=httpx.MockTransport(handler))


@pytest.mark.asyncio
async def test_live_charge_success_sends_idempotency_key():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["path"] = request.url.path
        seen["key"] = request.headers.get("Idempotency-Key")
        seen["auth"] = request.headers.get("Authorization")
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"id": "ch_123", "status": "succeeded", "paid": True})

    result = await live_gateway(handler).create_payment(48713, "USD", card(), BILLING, idempotency_key="key-1")

    assert result.success is True
    assert result.payment_id == "ch_123"
    assert seen["path"] == "/v1/charges"
    assert seen["key"] == "key-1"
    assert seen["auth"] == "Bearer sandbox-token-1234567890"
    assert seen["body"]["amount"] == 48713
    assert seen["body"]["currency"] == "usd"


@pytest.mark.asyncio
async def test_live_decline_is_a_result():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(402, json={"error": {"message": "Insufficient funds"}})

    result = await live_gateway(handler).create_payment(1000, "usd", card(), BILLING)

    assert result.success is False
    assert result.error == "Insufficient funds"


@pytest.mark.asyncio
async def test_live_server_error_raises_with_upstream_detail():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(503, json={"message": "Service unavailable"})

    with pytest.raises(PaymentGatewayError) as exc_info:
        await live_gateway(handler).create_payment(1000, "usd", card(), BILLING)

    assert exc_info.value.status_code == 502
    assert exc_info.value.upstream_status == 503
    assert exc_info.value.provider_message == "Service unavailable"


@pytest.mark.asyncio
async def test_live_test_connection_surfaces_auth_failure():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/v3/merchants/MERCHANT123"
        return httpx.Response(401, json={"message": "401 Unauthorized"})

    with pytest.raises(PaymentGatewayError) as exc_info:
        await live_gateway(handler).test_connection()

    assert exc_info.value.upstream_status == 401
    assert exc_info.value.provider_message == "401 Unauthorized"
    assert "401 Unauthorized" in exc_info.value.problem_details["detail"]


@pytest.mark.asyncio
async def test_live_timeout_is_marked():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("timed out", request=request)

    with pytest.raises(PaymentGatewayError) as exc_info:
        await live_gateway(handler).create_payment(1000, "usd", card(), BILLING)

    assert exc_info.value.timed_out is True
    assert exc_info.value.status_code == 504


@pytest.mark.asyncio
async def test_live_refund_posts_charge_and_amount():
    def handler(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        assert request.url.path == "/v1/refunds"
        assert body == {"charge": "ch_123", "amount": 500}
        return httpx.Response(200, json={"id": "re_1", "amount": 500, "status": "succeeded", "created": 1})

    refund = await live_gateway(handler).refund_payment("ch_123", 500)

    assert refund.id == "re_1"
    assert refund.amount == 500
