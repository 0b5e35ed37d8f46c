"""Platform-owned collaborators the payment provider calls back into.

The e-commerce platform supplies concrete implementations; tests use stubs.
"""
from __future__ import annotations

from typing import Any, Optional, Protocol, runtime_checkable

from application.dtos.platform import (
    AuthorizationResult,
    Cart,
    Payment,
    PaymentContext,
    PaymentSession,
    PaymentSessionResponse,
    PaymentSessionStatus,
    PlatformCustomer,
    UpdatePaymentData,
)


@runtime_checkable
class CustomerStore(Protocol):
    async def update(self, customer_id: str, *, metadata: dict[str, Any]) -> PlatformCustomer: ...


@runtime_checkable
class CartStore(Protocol):
    async def retrieve(self, cart_id: str) -> Cart:
        """Return the cart with its line items loaded."""
        ...


@runtime_checkable
class PaymentProcessor(Protocol):
    """Contract a payment provider fulfils towards the platform checkout."""

    identifier: str

    async def create_payment(self, context: PaymentContext) -> PaymentSessionResponse: ...

    async def update_payment_data(
        self, session_data: dict[str, Any], data: UpdatePaymentData
    ) -> dict[str, Any]: ...

    async def update_payment(self, session_data: dict[str, Any], context: PaymentContext) -> dict[str, Any]: ...

    async def authorize_payment(
        self, session: PaymentSession, context: Optional[dict[str, Any]] = None
    ) -> AuthorizationResult: ...

    async def get_payment_data(self, session: PaymentSession) -> dict[str, Any]: ...

    async def capture_payment(self, payment: Payment) -> dict[str, Any]: ...

    async def refund_payment(self, payment: Payment, refund_amount: int) -> dict[str, Any]: ...

    async def cancel_payment(self, payment: Payment) -> dict[str, Any]: ...

    async def retrieve_payment(self, payment_data: dict[str, Any]) -> dict[str, Any]: ...

    async def get_status(self, data: dict[str, Any]) -> PaymentSessionStatus: ...

    async def delete_payment(self, session: PaymentSession) -> None: ...
