"""Payment-related Pydantic schemas."""

import re
from typing import Literal, Optional

from pydantic import Field, SecretStr, field_validator

from .common import ApiModel, Money


class CardDetails(ApiModel):
    """Card data; number and CVV are secrets and never echoed or logged."""

    number: SecretStr = Field(..., description="Primary account number")
    exp_month: str = Field(..., description="Two-digit expiry month")
    exp_year: str = Field(..., description="Two- or four-digit expiry year")
    cvv: SecretStr = Field(..., description="Card verification value")

    @field_validator("number", mode="before")
    @classmethod
    def normalize_number(cls, v):
        raw = v.get_secret_value() if isinstance(v, SecretStr) else str(v)
        digits = re.sub(r"[\s-]", "", raw)
        if not digits.isdigit() or not 12 <= len(digits) <= 19:
            raise ValueError("Card number must be 12 to 19 digits")
        return digits

    @field_validator("cvv", mode="before")
    @classmethod
    def validate_cvv(cls, v):
        raw = v.get_secret_value() if isinstance(v, SecretStr) else str(v)
        if not raw.isdigit() or len(raw) not in (3, 4):
            raise ValueError("CVV must be 3 or 4 digits")
        return raw

    @field_validator("exp_month")
    @classmethod
    def validate_exp_month(cls, v: str) -> str:
        if not v.isdigit() or not 1 <= int(v) <= 12:
            raise ValueError("Expiry month must be between 01 and 12")
        return v.zfill(2)

    @field_validator("exp_year")
    @classmethod
    def validate_exp_year(cls, v: str) -> str:
        if not v.isdigit() or len(v) not in (2, 4):
            raise ValueError("Expiry year must be 2 or 4 digits")
        return v

    @property
    def last4(self) -> str:
        return self.number.get_secret_value()[-4:]


class BillingDetails(ApiModel):
    """Cardholder billing details."""

    name: str = Field(..., min_length=1, max_length=255)
    zip: Optional[str] = Field(None, max_length=16)
    email: Optional[str] = Field(None, max_length=320)


class CreatePaymentRequest(ApiModel):
    """Direct charge; amount is already in minor units (cents)."""

    amount: int = Field(..., gt=0, description="Amount in minor units")
    currency: str = Field("usd", min_length=3, max_length=3)
    card: CardDetails
    billing: BillingDetails
    test: bool = Field(False, description="Marks an operator connection test")


class PaymentResponse(ApiModel):
    """Outcome of a charge attempt."""

    success: bool
    payment_id: Optional[str] = None
    error: Optional[str] = None


class CreatePaymentIntentRequest(ApiModel):
    amount: int = Field(..., gt=0, description="Amount in minor units")
    currency: str = Field("usd", min_length=3, max_length=3)
    order_id: Optional[str] = Field(None, max_length=255)


class PaymentIntent(ApiModel):
    id: str
    client_secret: str
    status: str


class ValidateCredentialsRequest(ApiModel):
    app_id: str = ""
    api_token: str = ""


class CredentialsCheck(ApiModel):
    valid: bool
    error: Optional[str] = None


class ConnectionTest(ApiModel):
    success: bool
    environment: Literal["sandbox", "production"]


class RefundRequest(ApiModel):
    """Partial refund amount in dollars; omitted means the full booking total."""

    amount: Optional[Money] = None


class Refund(ApiModel):
    id: str
    payment_id: str
    amount: int = Field(..., description="Refunded amount in minor units")
    status: str
