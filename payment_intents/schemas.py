from datetime import datetime
from enum import Enum
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, StrictInt, field_validator


class OrderStatus(str, Enum):
    CREATED = "created"
    VERIFIED = "verified"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self is not OrderStatus.CREATED


class OrderIntent(BaseModel):
    """A merchant's request to collect a payment, as held by the store."""

    model_config = ConfigDict(frozen=True)

    order_id: str
    amount_minor_units: int = Field(..., gt=0)
    currency: str = Field(..., min_length=3, max_length=3)
    status: OrderStatus = OrderStatus.CREATED
    created_at: datetime
    receipt: Optional[str] = None
    payment_id: Optional[str] = None


class OrderView(BaseModel):
    """Public-safe representation handed back to the checkout client."""

    order_id: str
    amount_minor_units: int
    currency: str
    status: OrderStatus
    client_secret: Optional[str] = None

    @classmethod
    def from_intent(cls, intent: OrderIntent, client_secret: Optional[str] = None) -> "OrderView":
        return cls(
            order_id=intent.order_id,
            amount_minor_units=intent.amount_minor_units,
            currency=intent.currency,
            status=intent.status,
            client_secret=client_secret,
        )


class VerificationResult(BaseModel):
    order_id: str
    status: Literal["success", "failure"]

    @property
    def verified(self) -> bool:
        return self.status == "success"


def _require_utf8(value):
    # JSON can carry lone surrogates; nothing downstream can store or sign them
    if isinstance(value, str):
        try:
            value.encode("utf-8")
        except UnicodeEncodeError:
            raise ValueError("must be valid UTF-8 text")
    return value


class CreateOrderRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    amount_minor_units: StrictInt
    currency: str = Field(..., min_length=1, max_length=8)
    receipt: Optional[str] = Field(None, min_length=1, max_length=64)

    @field_validator("currency", "receipt")
    @classmethod
    def check_utf8(cls, value):
        return _require_utf8(value)


class VerifyPaymentRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    order_id: str = Field(..., min_length=1)
    payment_id: str = Field(..., min_length=1)
    signature: str = Field(..., min_length=1)

    @field_validator("order_id", "payment_id", "signature")
    @classmethod
    def check_utf8(cls, value):
        return _require_utf8(value)
