"""
Payment gateway port (application/ports) exposing a replaceable protocol.

Application services depend on this Protocol; ``CulqiClient`` in
infrastructure implements it. Every method returns a Result and never raises
for gateway or network failures.
"""
from __future__ import annotations

from typing import Protocol, runtime_checkable

from application.dtos.culqi import (
    Card,
    CardCreatePayload,
    Charge,
    ChargeCreatePayload,
    Customer,
    CustomerCreatePayload,
    CustomerCreation,
    CustomerUpdatePayload,
    GatewayResult,
    Refund,
    RefundCreatePayload,
)


@runtime_checkable
class CulqiGateway(Protocol):
    """Subset of gateway operations the payment flows use."""

    provider: str

    async def create_customer(self, payload: CustomerCreatePayload) -> GatewayResult[CustomerCreation]: ...

    async def update_customer(
        self, customer_id: str, update: CustomerUpdatePayload
    ) -> GatewayResult[Customer]: ...

    async def delete_customer(self, customer_id: str) -> GatewayResult[bool]: ...

    async def create_card(self, payload: CardCreatePayload) -> GatewayResult[Card]: ...

    async def create_charge(self, payload: ChargeCreatePayload) -> GatewayResult[Charge]: ...

    async def capture_charge(self, charge_id: str) -> GatewayResult[Charge]: ...

    async def get_charge(self, charge_id: str) -> GatewayResult[Charge]: ...

    async def create_refund(self, payload: RefundCreatePayload) -> GatewayResult[Refund]: ...

    async def get_cards_by_customer(self, customer_id: str) -> GatewayResult[list[Card]]: ...


__all__ = ["CulqiGateway"]
