"""Payment service: per-request gateway resolution with timeouts and metrics."""

import asyncio
import logging
import time
from typing import Any, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from ..core.config import Settings, settings
from ..core.exceptions import PaymentGatewayError, PaymentNotConfiguredError
from ..core.observability import metrics_collector
from ..schemas.payment import BillingDetails, CardDetails
from .payment_gateway import (
    PaymentGateway,
    PaymentIntentRecord,
    PaymentResult,
    RefundRecord,
    create_payment_gateway,
    resolve_credentials,
)
from .settings_service import SettingsService

logger = logging.getLogger(__name__)


class PaymentService:
    """
    Entry point for every payment provider call.

    Credentials are read from the database on each request, so a settings
    change applies to the next request without a restart. Each provider call
    is bounded by ``payment_timeout_seconds``.
    """

    def __init__(self, db: AsyncSession, config: Settings = settings):
        self.db = db
        self.config = config
        self.settings_service = SettingsService(db)

    async def get_gateway(self) -> PaymentGateway:
        """
        Raises:
            PaymentNotConfiguredError: If neither stored nor environment credentials exist
        """
        stored = await self.settings_service.get_settings()
        credentials = resolve_credentials(stored, self.config)
        if credentials is None:
            logger.warning("Payment requested but no provider credentials are configured")
            raise PaymentNotConfiguredError()
        return create_payment_gateway(credentials, self.config)

    async def _bounded(self, operation: str, awaitable):
        try:
            return await asyncio.wait_for(awaitable, timeout=self.config.payment_timeout_seconds)
        except asyncio.TimeoutError as exc:
            logger.error(
                "Payment provider call timed out",
                extra={"operation": operation, "timeout": self.config.payment_timeout_seconds}
            )
            raise PaymentGatewayError(
                f"No response within {self.config.payment_timeout_seconds:g}s",
                timed_out=True,
            ) from exc

    async def charge(
        self,
        amount: int,
        card: CardDetails,
        billing: BillingDetails,
        idempotency_key: Optional[str] = None,
        gateway: Optional[PaymentGateway] = None,
        currency: Optional[str] = None,
    ) -> PaymentResult:
        """
        Charge a card for ``amount`` minor units.

        A decline comes back as an unsuccessful result; only transport or
        provider failures raise.
        """
        gateway = gateway or await self.get_gateway()
        currency = currency or self.config.currency
        started = time.perf_counter()

        try:
            result = await self._bounded(
                "charge",
                gateway.create_payment(amount, currency, card, billing, idempotency_key=idempotency_key),
            )
        except PaymentGatewayError as exc:
            metrics_collector.record_payment_attempt(
                "timeout" if exc.timed_out else "error",
                time.perf_counter() - started,
            )
            raise

        metrics_collector.record_payment_attempt(
            "succeeded" if result.success else "declined",
            time.perf_counter() - started,
        )
        return result

    async def create_payment_intent(self, amount: int, currency: str, order_id: Optional[str]) -> PaymentIntentRecord:
        gateway = await self.get_gateway()
        return await self._bounded("intent", gateway.create_payment_intent(amount, currency, order_id))

    async def refund(self, payment_id: str, amount: Optional[int] = None) -> RefundRecord:
        gateway = await self.get_gateway()
        refund = await self._bounded("refund", gateway.refund_payment(payment_id, amount))
        metrics_collector.record_refund()

        logger.info(
            "Refund issued",
            extra={"payment_id": payment_id, "refund_id": refund.id, "amount": refund.amount}
        )
        return refund

    async def test_connection(self) -> dict[str, Any]:
        gateway = await self.get_gateway()
        result = await self._bounded("test_connection", gateway.test_connection())
        return {**result, "environment": gateway.environment}

    async def get_dashboard_url(self) -> str:
        gateway = await self.get_gateway()
        return gateway.get_dashboard_url()

    async def verify_webhook(self, payload: bytes, signature: Optional[str]) -> dict[str, Any]:
        gateway = await self.get_gateway()
        return gateway.verify_webhook_signature(payload, signature)
