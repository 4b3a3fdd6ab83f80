"""Payment provider adapter (Clover) with a live HTTP client and a simulated test double."""

import hashlib
import hmac
import json
import logging
import secrets
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Optional

import httpx

from ..core.config import Settings
from ..core.exceptions import PaymentGatewayError, ValidationError, WebhookSignatureError
from ..models.settings import BusinessSettings
from ..schemas.payment import BillingDetails, CardDetails

logger = logging.getLogger(__name__)

# Provider's documented test card; the only card the simulator accepts
TEST_CARD_NUMBER = "4111111111111111"

API_BASE_URLS = {
    "sandbox": "https://sandbox.dev.clover.com",
    "production": "https://api.clover.com",
}

DASHBOARD_BASE_URLS = {
    "sandbox": "https://sandbox.dev.clover.com",
    "production": "https://www.clover.com",
}

SIGNATURE_PREFIX = "sha256="


@dataclass(frozen=True)
class PaymentCredentials:
    """Snapshot of provider credentials taken at the start of a request."""

    app_id: str
    api_token: str = field(repr=False)
    environment: str = "sandbox"
    webhook_secret: str = field(default="", repr=False)


@dataclass
class PaymentResult:
    success: bool
    payment_id: Optional[str] = None
    error: Optional[str] = None
    status: Optional[str] = None


@dataclass
class PaymentIntentRecord:
    id: str
    client_secret: str
    status: str


@dataclass
class RefundRecord:
    id: str
    payment_id: str
    amount: int
    status: str
    created: int


def resolve_credentials(
    business_settings: Optional[BusinessSettings],
    config: Settings,
) -> Optional[PaymentCredentials]:
    """
    Pick the credentials to use for this request.

    Credentials saved by an admin win; the process environment is the fallback
    for deployments that have not saved settings yet. ``None`` means payment
    processing is not configured.
    """
    if business_settings and business_settings.clover_app_id and business_settings.clover_api_token:
        return PaymentCredentials(
            app_id=business_settings.clover_app_id,
            api_token=business_settings.clover_api_token,
            environment=business_settings.clover_environment or "sandbox",
            webhook_secret=config.clover_webhook_secret,
        )

    if config.clover_app_id and config.clover_api_token:
        return PaymentCredentials(
            app_id=config.clover_app_id,
            api_token=config.clover_api_token,
            environment=config.clover_environment,
            webhook_secret=config.clover_webhook_secret,
        )

    return None


def _now_ms() -> int:
    return int(time.time() * 1000)


class PaymentGateway(ABC):
    """
    Provider-agnostic interface used by the booking workflow.

    Amounts are integer minor units and are passed through unmodified.
    Subclasses implement the calls that talk to the provider.
    """

    def __init__(self, credentials: PaymentCredentials, timeout: float = 15.0):
        if credentials.environment not in API_BASE_URLS:
            raise ValueError(f"Unknown provider environment: {credentials.environment}")
        self.credentials = credentials
        self.timeout = timeout

    @property
    def environment(self) -> str:
        return self.credentials.environment

    @property
    def base_url(self) -> str:
        return API_BASE_URLS[self.credentials.environment]

    @staticmethod
    def validate_credentials(app_id: Optional[str], api_token: Optional[str]) -> dict[str, Any]:
        """Structural check of credential shape; makes no network call."""
        app_id = (app_id or "").strip()
        api_token = (api_token or "").strip()

        if len(api_token) <= 10 or any(ch.isspace() for ch in api_token):
            return {"valid": False, "error": "Invalid API token"}
        if len(app_id) <= 5 or any(ch.isspace() for ch in app_id):
            return {"valid": False, "error": "Invalid App ID"}
        return {"valid": True, "error": None}

    def get_dashboard_url(self) -> str:
        return f"{DASHBOARD_BASE_URLS[self.credentials.environment]}/dashboard/m/{self.credentials.app_id}"

    def verify_webhook_signature(self, payload: bytes, signature: Optional[str]) -> dict[str, Any]:
        """
        Verify an HMAC-SHA256 webhook signature and decode the event.

        Raises:
            WebhookSignatureError: If the secret is unset or the signature does not match
            ValidationError: If the verified payload is not a JSON object
        """
        secret = self.credentials.webhook_secret
        if not secret:
            raise WebhookSignatureError("Webhook secret is not configured")
        if not signature:
            raise WebhookSignatureError("Missing webhook signature")

        if signature.startswith(SIGNATURE_PREFIX):
            signature = signature[len(SIGNATURE_PREFIX):]

        expected = hmac.new(secret.encode(), payload, hashlib.sha256).hexdigest()
        if not hmac.compare_digest(expected, signature.strip().lower()):
            raise WebhookSignatureError()

        try:
            event = json.loads(payload)
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise ValidationError.for_field("body", "Webhook payload is not valid JSON") from exc
        if not isinstance(event, dict):
            raise ValidationError.for_field("body", "Webhook payload must be a JSON object")
        return event

    @abstractmethod
    async def create_payment(
        self,
        amount: int,
        currency: str,
        card: CardDetails,
        billing: BillingDetails,
        idempotency_key: Optional[str] = None,
    ) -> PaymentResult:
        """Charge a card once; the idempotency key is forwarded to the provider."""

    @abstractmethod
    async def create_payment_intent(self, amount: int, currency: str, order_id: Optional[str]) -> PaymentIntentRecord:
        """Create a provider payment intent for a hosted checkout."""

    @abstractmethod
    async def test_connection(self) -> dict[str, Any]:
        """Authenticated round trip that confirms the credentials work."""

    @abstractmethod
    async def refund_payment(self, payment_id: str, amount: Optional[int] = None) -> RefundRecord:
        """Refund all of a charge, or part of it when an amount is given."""


class CloverGateway(PaymentGateway):
    """Live client for the provider's REST API."""

    def __init__(
        self,
        credentials: PaymentCredentials,
        timeout: float = 15.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        super().__init__(credentials, timeout)
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url,
            timeout=httpx.Timeout(self.timeout),
            transport=self._transport,
            headers={
                "Authorization": f"Bearer {self.credentials.api_token}",
                "Accept": "application/json",
            },
        )

    @staticmethod
    def _provider_message(response: httpx.Response) -> str:
        try:
            body = response.json()
        except ValueError:
            return response.text or response.reason_phrase
        if isinstance(body, dict):
            error = body.get("error")
            if isinstance(error, dict) and error.get("message"):
                return str(error["message"])
            if body.get("message"):
                return str(body["message"])
        return response.text or response.reason_phrase

    async def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        """Send one request; transport failures become PaymentGatewayError."""
        try:
            async with self._client() as client:
                return await client.request(method, path, **kwargs)
        except httpx.TimeoutException as exc:
            logger.error(
                "Payment provider timed out",
                extra={"path": path, "environment": self.environment, "timeout": self.timeout}
            )
            raise PaymentGatewayError(f"No response within {self.timeout:g}s", timed_out=True) from exc
        except httpx.HTTPError as exc:
            logger.error(
                "Payment provider unreachable",
                extra={"path": path, "environment": self.environment, "error": str(exc)}
            )
            raise PaymentGatewayError(str(exc) or exc.__class__.__name__) from exc

    def _raise_for_status(self, response: httpx.Response, path: str) -> None:
        if response.is_success:
            return
        message = self._provider_message(response)
        logger.error(
            "Payment provider returned an error",
            extra={"path": path, "status_code": response.status_code, "provider_message": message}
        )
        raise PaymentGatewayError(message, upstream_status=response.status_code)

    async def create_payment(
        self,
        amount: int,
        currency: str,
        card: CardDetails,
        billing: BillingDetails,
        idempotency_key: Optional[str] = None,
    ) -> PaymentResult:
        body = {
            "amount": amount,
            "currency": currency.lower(),
            "source": {
                "object": "card",
                "number": card.number.get_secret_value(),
                "exp_month": card.exp_month,
                "exp_year": card.exp_year,
                "cvv": card.cvv.get_secret_value(),
                "name": billing.name,
                "address_zip": billing.zip,
            },
        }
        headers = {"Idempotency-Key": idempotency_key} if idempotency_key else {}

        response = await self._request("POST", "/v1/charges", json=body, headers=headers)

        # Declines are answers, not errors
        if response.status_code in (400, 402):
            reason = self._provider_message(response)
            logger.info(
                "Payment declined by provider",
                extra={"amount": amount, "currency": currency, "card_last4": card.last4, "reason": reason}
            )
            return PaymentResult(success=False, error=reason, status="declined")

        self._raise_for_status(response, "/v1/charges")
        charge = response.json()
        status = charge.get("status")
        succeeded = status in ("succeeded", "paid") or charge.get("paid") is True

        logger.info(
            "Payment processed by provider",
            extra={
                "payment_id": charge.get("id"),
                "amount": amount,
                "currency": currency,
                "card_last4": card.last4,
                "status": status,
            }
        )

        return PaymentResult(
            success=succeeded,
            payment_id=charge.get("id"),
            error=None if succeeded else (charge.get("failure_message") or "Card declined"),
            status=status,
        )

    async def create_payment_intent(self, amount: int, currency: str, order_id: Optional[str]) -> PaymentIntentRecord:
        body: dict[str, Any] = {"amount": amount, "currency": currency.lower()}
        if order_id:
            body["external_reference_id"] = order_id

        response = await self._request("POST", "/v1/orders", json=body)
        self._raise_for_status(response, "/v1/orders")
        order = response.json()
        return PaymentIntentRecord(
            id=order["id"],
            client_secret=order.get("client_secret") or f"{order['id']}_secret",
            status=order.get("status", "requires_payment_method"),
        )

    async def test_connection(self) -> dict[str, Any]:
        path = f"/v3/merchants/{self.credentials.app_id}"
        response = await self._request("GET", path)
        self._raise_for_status(response, path)
        logger.info("Payment provider connection verified", extra={"environment": self.environment})
        return {"success": True}

    async def refund_payment(self, payment_id: str, amount: Optional[int] = None) -> RefundRecord:
        body: dict[str, Any] = {"charge": payment_id}
        if amount is not None:
            body["amount"] = amount

        response = await self._request("POST", "/v1/refunds", json=body)
        self._raise_for_status(response, "/v1/refunds")
        refund = response.json()
        return RefundRecord(
            id=refund["id"],
            payment_id=payment_id,
            amount=int(refund.get("amount", amount or 0)),
            status=refund.get("status", "succeeded"),
            created=int(refund.get("created", _now_ms())),
        )


class SimulatedCloverGateway(PaymentGateway):
    """
    In-process stand-in for the provider.

    Only the documented test card succeeds; every other card is answered with
    ``requires_payment_method`` ("Card declined"), never an exception.
    """

    async def create_payment(
        self,
        amount: int,
        currency: str,
        card: CardDetails,
        billing: BillingDetails,
        idempotency_key: Optional[str] = None,
    ) -> PaymentResult:
        is_test_card = card.number.get_secret_value() == TEST_CARD_NUMBER
        payment_id = f"clv_{_now_ms()}_{secrets.token_hex(5)}"
        status = "succeeded" if is_test_card else "requires_payment_method"

        logger.info(
            "Simulated payment processed",
            extra={
                "payment_id": payment_id,
                "amount": amount,
                "currency": currency,
                "card_last4": card.last4,
                "status": status,
            }
        )

        if not is_test_card:
            return PaymentResult(success=False, payment_id=None, error="Card declined", status=status)
        return PaymentResult(success=True, payment_id=payment_id, status=status)

    async def create_payment_intent(self, amount: int, currency: str, order_id: Optional[str]) -> PaymentIntentRecord:
        intent_id = f"pi_{_now_ms()}"
        return PaymentIntentRecord(
            id=intent_id,
            client_secret=f"{intent_id}_secret_{secrets.token_hex(8)}",
            status="requires_payment_method",
        )

    async def test_connection(self) -> dict[str, Any]:
        check = self.validate_credentials(self.credentials.app_id, self.credentials.api_token)
        if not check["valid"]:
            raise PaymentGatewayError(check["error"], upstream_status=401)
        return {"success": True}

    async def refund_payment(self, payment_id: str, amount: Optional[int] = None) -> RefundRecord:
        return RefundRecord(
            id=f"re_{_now_ms()}",
            payment_id=payment_id,
            amount=amount or 0,
            status="succeeded",
            created=_now_ms(),
        )


def create_payment_gateway(credentials: PaymentCredentials, config: Settings) -> PaymentGateway:
    """Build the adapter for this request from a credentials snapshot."""
    if config.payment_gateway_mode == "live":
        return CloverGateway(credentials, timeout=config.payment_timeout_seconds)
    return SimulatedCloverGateway(credentials, timeout=config.payment_timeout_seconds)
