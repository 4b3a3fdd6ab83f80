"""Payment router: direct charges, payment intents and provider webhooks."""

import logging
from typing import Optional

from fastapi import APIRouter, Header, Request
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.dependencies import DB_DEPENDENCY, IDEMPOTENCY_KEY
from ..schemas.payment import CreatePaymentIntentRequest, CreatePaymentRequest, PaymentIntent, PaymentResponse
from ..services.checkout_service import CheckoutService
from ..services.payment_service import PaymentService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["payments"])

SIGNATURE_HEADER = Header(None, alias="X-Clover-Signature")


@router.post("/create-payment", response_model=PaymentResponse)
@router.post("/create-clover-payment", response_model=PaymentResponse, include_in_schema=False)
async def create_payment(
    request: CreatePaymentRequest,
    db: AsyncSession = DB_DEPENDENCY,
    idempotency_key: Optional[str] = IDEMPOTENCY_KEY,
) -> JSONResponse:
    """
    Charge a card directly.

    A decline is a normal answer (``success: false`` with the reason);
    only an unconfigured or failing provider is an error.
    """
    result = await PaymentService(db).charge(
        request.amount,
        request.card,
        request.billing,
        idempotency_key=idempotency_key,
        currency=request.currency,
    )

    if request.test:
        logger.info("Operator test payment", extra={"success": result.success, "payment_id": result.payment_id})

    response_data = PaymentResponse(success=result.success, payment_id=result.payment_id, error=result.error)
    return JSONResponse(content=response_data.to_json())


@router.post("/create-payment-intent", response_model=PaymentIntent)
async def create_payment_intent(
    request: CreatePaymentIntentRequest,
    db: AsyncSession = DB_DEPENDENCY,
) -> JSONResponse:
    intent = await PaymentService(db).create_payment_intent(request.amount, request.currency, request.order_id)
    response_data = PaymentIntent(id=intent.id, client_secret=intent.client_secret, status=intent.status)
    return JSONResponse(content=response_data.to_json())


@router.post("/clover/webhook")
async def payment_webhook(
    request: Request,
    db: AsyncSession = DB_DEPENDENCY,
    signature: Optional[str] = SIGNATURE_HEADER,
) -> JSONResponse:
    """
    Receive provider events.

    The raw body is verified against the shared secret before anything in
    it is trusted.
    """
    payload = await request.body()
    event = await PaymentService(db).verify_webhook(payload, signature)
    result = await CheckoutService(db).handle_webhook(event)
    return JSONResponse(content=result)
