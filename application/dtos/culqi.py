"""
Culqi DTOs (Pydantic v2) mirroring the gateway's request/response envelopes.

Response models allow extra fields so bodies pass through unchanged; payload
models only carry the fields the gateway accepts.
"""
from __future__ import annotations

from enum import Enum
from typing import Any, Optional, TypeVar, Union
from pydantic import BaseModel, ConfigDict, Field, field_validator

from domain.common.result import Ok, Err

T = TypeVar("T")

CULQI_SERVER_ERROR = "Culqi Server Error"


class _Resource(BaseModel):
    model_config = ConfigDict(extra="allow")


class _Payload(BaseModel):
    model_config = ConfigDict(extra="forbid")


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------

class ErrorInfo(_Resource):
    object: Optional[str] = None
    type: Optional[str] = None
    charge_id: Optional[str] = None
    code: Optional[str] = None
    decline_code: Optional[str] = None
    merchant_message: Optional[str] = None
    user_message: Optional[str] = None
    param: Optional[str] = None

    @field_validator("code", "decline_code", "charge_id", "param", "merchant_message", "user_message", mode="before")
    @classmethod
    def _numbers_as_text(cls, value: Any) -> Any:
        # Culqi sometimes sends numeric codes
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        return value

    @classmethod
    def from_transport(cls, message: str) -> "ErrorInfo":
        """Transport failure (DNS/connect/TLS/timeout): only merchant_message is set."""
        return cls(merchant_message=message)

    @classmethod
    def from_raw_body(cls, body: str) -> "ErrorInfo":
        """Non-JSON body, which Culqi only returns when its servers misbehave."""
        return cls(merchant_message=body, user_message=CULQI_SERVER_ERROR)


GatewayResult = Union[Ok[T], Err[ErrorInfo]]


# ---------------------------------------------------------------------------
# Paging
# ---------------------------------------------------------------------------

class Cursors(_Resource):
    before: Optional[str] = None
    after: Optional[str] = None


class Paging(_Resource):
    previous: Optional[str] = None
    next: Optional[str] = None
    cursors: Optional[Cursors] = None
    remaining_items: Optional[Any] = None


class ListRequest(_Payload):
    limit: Optional[str] = None
    before: Optional[str] = None
    after: Optional[str] = None


class ListResponse(_Resource):
    paging: Optional[Paging] = None


# ---------------------------------------------------------------------------
# Shared
# ---------------------------------------------------------------------------

class AntifraudDetails(BaseModel):
    object: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    address: Optional[str] = None
    address_city: Optional[str] = None
    country_code: Optional[str] = None
    phone_number: Optional[str] = None

    model_config = ConfigDict(extra="allow")


# ---------------------------------------------------------------------------
# Tokens / sources
# ---------------------------------------------------------------------------

class Issuer(_Resource):
    name: Optional[str] = None
    country: Optional[str] = None
    country_code: Optional[str] = None
    website: Optional[str] = None
    phone_number: Optional[str] = None


class Iin(_Resource):
    object: Optional[str] = None
    bin: Optional[str] = None
    card_brand: Optional[str] = None
    card_type: Optional[str] = None
    card_category: Optional[str] = None
    issuer: Optional[Issuer] = None
    installments_allowed: list[int] = Field(default_factory=list)


class SourceClient(_Resource):
    ip: Optional[str] = None
    ip_country: Optional[str] = None
    ip_country_code: Optional[str] = None
    browser: Optional[str] = None
    device_fingerprint: Optional[str] = None
    device_type: Optional[str] = None


class Source(_Resource):
    object: Optional[str] = None
    id: Optional[str] = None
    type: Optional[str] = None
    creation_date: Optional[int] = None
    email: Optional[str] = None
    card_number: Optional[str] = None
    last_four: Optional[str] = None
    active: Optional[bool] = None
    iin: Optional[Iin] = None
    client: Optional[SourceClient] = None
    metadata: Optional[dict[str, Any]] = None


# ---------------------------------------------------------------------------
# Cards
# ---------------------------------------------------------------------------

class CardMetadata(BaseModel):
    cardHolderName: Optional[str] = None
    billingAddress1: Optional[str] = None
    billingAddress2: Optional[str] = None
    billingCity: Optional[str] = None
    billingState: Optional[str] = None
    billingCountry: Optional[str] = None
    billingPostalCode: Optional[str] = None

    model_config = ConfigDict(extra="allow")


class Card(_Resource):
    object: Optional[str] = None
    id: Optional[str] = None
    active: Optional[bool] = None
    creation_date: Optional[int] = None
    customer_id: Optional[str] = None
    source: Optional[Source] = None
    metadata: Optional[dict[str, Any]] = None


class CardsListRequest(ListRequest):
    creation_date: Optional[int] = None
    creation_date_from: Optional[int] = None
    creation_date_to: Optional[int] = None
    card_brand: Optional[str] = None
    card_type: Optional[str] = None
    device_type: Optional[str] = None
    bin: Optional[int] = None
    country_code: Optional[str] = None


class CardsListResponse(ListResponse):
    data: list[Card] = Field(default_factory=list)


class CardCreatePayload(_Payload):
    customer_id: str
    token_id: str
    validate_card: Optional[bool] = Field(default=None, alias="validate")
    metadata: Optional[CardMetadata] = None

    model_config = ConfigDict(extra="forbid", populate_by_name=True)


class CardUpdatePayload(_Payload):
    token_id: Optional[str] = None
    metadata: Optional[CardMetadata] = None


# ---------------------------------------------------------------------------
# Customers
# ---------------------------------------------------------------------------

class Customer(_Resource):
    object: Optional[str] = None
    id: Optional[str] = None
    creation_date: Optional[int] = None
    email: Optional[str] = None
    antifraud_details: Optional[AntifraudDetails] = None
    cards: list[Card] = Field(default_factory=list)
    metadata: Optional[dict[str, Any]] = None


class CustomersListRequest(ListRequest):
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: Optional[str] = None
    address: Optional[str] = None
    address_city: Optional[str] = None
    country_code: Optional[str] = None
    phone_number: Optional[str] = None


class CustomersListResponse(ListResponse):
    data: list[Customer] = Field(default_factory=list)


class CustomerCreatePayload(_Payload):
    first_name: str
    last_name: str
    email: str
    address: Optional[str] = None
    address_city: Optional[str] = None
    country_code: Optional[str] = None
    phone_number: Optional[str] = None
    metadata: Optional[dict[str, Any]] = None


class CustomerUpdatePayload(_Payload):
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    address: Optional[str] = None
    address_city: Optional[str] = None
    country_code: Optional[str] = None
    phone_number: Optional[str] = None
    metadata: Optional[dict[str, Any]] = None


class CustomerCreation(BaseModel):
    """Outcome of a create-or-lookup: the customer and whether it already existed."""

    customer: Customer
    already_existed: bool = False


# ---------------------------------------------------------------------------
# Charges
# ---------------------------------------------------------------------------

class Outcome(_Resource):
    type: Optional[str] = None
    code: Optional[str] = None
    merchant_message: Optional[str] = None
    user_message: Optional[str] = None


class FixedFee(_Resource):
    amount: Optional[float] = None
    currency_code: Optional[str] = None
    exchange_rate: Optional[float] = None
    exchange_rate_currency_code: Optional[str] = None
    total: Optional[float] = None


class VariableFee(_Resource):
    currency_code: Optional[str] = None
    commision: Optional[float] = None
    total: Optional[float] = None


class FeeDetails(_Resource):
    fixed_fee: Optional[FixedFee] = None
    variable_fee: Optional[VariableFee] = None


class ChargeOperation(_Resource):
    type: Optional[str] = None
    id: Optional[str] = None
    creation_date: Optional[int] = None
    amount: Optional[int] = None
    operation_id: Optional[int] = None


class Charge(_Resource):
    duplicated: Optional[bool] = None
    object: Optional[str] = None
    id: Optional[str] = None
    creation_date: Optional[int] = None
    amount: Optional[int] = None
    amount_refunded: Optional[int] = None
    current_amount: Optional[int] = None
    installments: Optional[int] = None
    installments_amount: Optional[int] = None
    currency_code: Optional[str] = None
    email: Optional[str] = None
    description: Optional[str] = None
    source: Optional[Source] = None
    outcome: Optional[Outcome] = None
    fraud_score: Optional[float] = None
    antifraud_details: Optional[AntifraudDetails] = None
    dispute: Optional[bool] = None
    capture: Optional[bool] = None
    reference_code: Optional[str] = None
    authorization_code: Optional[str] = None
    metadata: Optional[dict[str, Any]] = None
    total_fee: Optional[float] = None
    fee_details: Optional[FeeDetails] = None
    total_fee_taxes: Optional[float] = None
    transfer_amount: Optional[float] = None
    paid: Optional[bool] = None
    statement_descriptor: Optional[str] = None
    transfer_id: Optional[str] = None
    operations: list[ChargeOperation] = Field(default_factory=list)
    capture_date: Optional[int] = None


class ChargesListRequest(ListRequest):
    amount: Optional[int] = None
    min_amount: Optional[int] = None
    max_amount: Optional[int] = None
    installments: Optional[int] = None
    min_installments: Optional[int] = None
    max_installments: Optional[int] = None
    currency_code: Optional[str] = None
    code: Optional[str] = None
    decline_code: Optional[str] = None
    fraud_score: Optional[int] = None
    min_fraud_score: Optional[int] = None
    max_fraud_score: Optional[int] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: Optional[str] = None
    address: Optional[str] = None
    address_city: Optional[str] = None
    country_code: Optional[str] = None
    phone_number: Optional[str] = None
    dispute: Optional[bool] = None
    captured: Optional[bool] = None
    duplicated: Optional[bool] = None
    paid: Optional[bool] = None
    customer_id: Optional[str] = None
    reference: Optional[str] = None
    creation_date: Optional[int] = None
    creation_date_from: Optional[int] = None
    creation_date_to: Optional[int] = None
    fee: Optional[int] = None
    min_fee: Optional[int] = None
    max_fee: Optional[int] = None
    card_brand: Optional[str] = None
    card_type: Optional[str] = None
    device_type: Optional[str] = None
    bin: Optional[int] = None


class ChargesListResponse(ListResponse):
    data: list[Charge] = Field(default_factory=list)


class ChargeCreatePayload(_Payload):
    amount: int
    currency_code: str
    email: str
    source_id: str
    capture: Optional[bool] = None
    description: Optional[str] = None
    installments: Optional[int] = None
    metadata: Optional[dict[str, Any]] = None
    antifraud_details: Optional[AntifraudDetails] = None


class ChargeUpdatePayload(_Payload):
    metadata: dict[str, Any]


# ---------------------------------------------------------------------------
# Orders
# ---------------------------------------------------------------------------

class ClientDetails(BaseModel):
    first_name: str
    last_name: str
    email: str
    phone_number: str


class Order(_Resource):
    object: Optional[str] = None
    id: Optional[str] = None
    amount: Optional[int] = None
    payment_code: Optional[str] = None
    currency_code: Optional[str] = None
    description: Optional[str] = None
    order_number: Optional[str] = None
    state: Optional[str] = None
    total_fee: Optional[float] = None
    net_amount: Optional[float] = None
    fee_details: Optional[FeeDetails] = None
    creation_date: Optional[int] = None
    expiration_date: Optional[int] = None
    updated_at: Optional[int] = None
    paid_at: Optional[int] = None
    available_on: Optional[int] = None
    metadata: Optional[dict[str, Any]] = None


class OrdersListRequest(ListRequest):
    amount: Optional[int] = None
    min_amount: Optional[int] = None
    max_amount: Optional[int] = None
    creation_date: Optional[int] = None
    creation_date_from: Optional[int] = None
    creation_date_to: Optional[int] = None
    state: Optional[str] = None


class OrdersListResponse(ListResponse):
    data: list[Order] = Field(default_factory=list)


class OrderCreatePayload(_Payload):
    amount: int
    currency_code: str
    description: str
    order_number: str
    expiration_date: int
    client_details: ClientDetails
    confirm: Optional[bool] = None
    metadata: Optional[dict[str, Any]] = None


class OrderUpdatePayload(_Payload):
    expiration_date: int
    metadata: Optional[dict[str, Any]] = None


# ---------------------------------------------------------------------------
# Refunds
# ---------------------------------------------------------------------------

class RefundReason(str, Enum):
    DUPLICATE = "duplicado"
    FRAUDULENT = "fraudulento"
    REQUESTED_BY_CUSTOMER = "solicitud_comprador"


class Refund(_Resource):
    object: Optional[str] = None
    id: Optional[str] = None
    charge_id: Optional[str] = None
    creation_date: Optional[int] = None
    amount: Optional[int] = None
    reason: Optional[str] = None
    metadata: Optional[dict[str, Any]] = None


class RefundsListRequest(ListRequest):
    creation_date: Optional[int] = None
    creation_date_from: Optional[int] = None
    creation_date_to: Optional[int] = None
    reason: Optional[RefundReason] = None


class RefundsListResponse(ListResponse):
    data: list[Refund] = Field(default_factory=list)


class RefundCreatePayload(_Payload):
    amount: int
    charge_id: str
    reason: RefundReason


class RefundUpdatePayload(_Payload):
    metadata: dict[str, Any]
