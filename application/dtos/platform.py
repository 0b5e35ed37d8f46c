"""
Platform-side DTOs (Pydantic v2): the shapes the e-commerce platform hands to
a payment provider. Only the fields this integration reads are declared.
"""
from __future__ import annotations

from enum import Enum
from typing import Any, Optional
from pydantic import BaseModel, ConfigDict, Field


class _PlatformModel(BaseModel):
    model_config = ConfigDict(extra="allow")


class Address(_PlatformModel):
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    phone: Optional[str] = None
    address_1: Optional[str] = None
    address_2: Optional[str] = None
    city: Optional[str] = None
    province: Optional[str] = None
    country_code: Optional[str] = None
    postal_code: Optional[str] = None


class PlatformCustomer(_PlatformModel):
    id: str
    email: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    phone: Optional[str] = None
    has_account: bool = False
    metadata: dict[str, Any] = Field(default_factory=dict)


class LineItemVariant(_PlatformModel):
    product_id: str


class LineItem(_PlatformModel):
    title: str
    quantity: int
    unit_price: int
    variant: LineItemVariant


class Cart(_PlatformModel):
    id: str
    email: Optional[str] = None
    shipping_address: Optional[Address] = None
    items: list[LineItem] = Field(default_factory=list)


class PaymentContext(_PlatformModel):
    """Context passed when a payment session is created or refreshed."""

    cart: Cart
    customer: Optional[PlatformCustomer] = None
    currency_code: str
    amount: int
    context: dict[str, Any] = Field(default_factory=dict)

    @property
    def is_recurring_order(self) -> bool:
        return bool(self.context.get("isRecurringOrder"))


class PaymentSessionStatus(str, Enum):
    AUTHORIZED = "authorized"
    PENDING = "pending"
    REQUIRES_MORE = "requires_more"
    ERROR = "error"
    CANCELED = "canceled"


class PaymentSession(_PlatformModel):
    cart_id: str
    amount: int
    data: dict[str, Any] = Field(default_factory=dict)


class Payment(_PlatformModel):
    id: Optional[str] = None
    amount: Optional[int] = None
    data: dict[str, Any] = Field(default_factory=dict)


class UpdatePaymentData(_PlatformModel):
    """Body of an update-payment-session request."""

    same_as_shipping_address: bool = False
    billing_address: Optional[Address] = None
    card_id: Optional[str] = None
    card_token: Optional[str] = None
    save_card: bool = False


class PaymentSessionResponse(BaseModel):
    session_data: dict[str, Any]
    update_requests: dict[str, Any] = Field(default_factory=dict)


class AuthorizationResult(BaseModel):
    data: dict[str, Any]
    status: PaymentSessionStatus
