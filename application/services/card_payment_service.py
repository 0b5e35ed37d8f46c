"""
Culqi card payment provider (identifier ``culqi_card``).

Implements the platform ``PaymentProcessor`` contract on top of the gateway
client. Gateway results are translated into business exceptions only here,
at the platform boundary.
"""
from __future__ import annotations

import asyncio
from functools import partial
from typing import Any, Optional

from application.dtos.culqi import (
    AntifraudDetails,
    ChargeCreatePayload,
    CustomerUpdatePayload,
    ErrorInfo,
    RefundCreatePayload,
    RefundReason,
)
from application.dtos.platform import (
    Address,
    AuthorizationResult,
    Payment,
    PaymentContext,
    PaymentSession,
    PaymentSessionResponse,
    PaymentSessionStatus,
    PlatformCustomer,
    UpdatePaymentData,
)
from application.ports.payment_gateway import CulqiGateway
from application.ports.platform import CartStore, CustomerStore
from application.services.culqi_customers import (
    CULQI_CUSTOMER_ID_KEY,
    LAST_USED_CARD_ID_KEY,
    create_card,
    get_or_create_culqi_customer,
)
from application.utils.antifraud import derive_antifraud_details
from core.logging_config import get_logger
from domain.common.exceptions import (
    GatewayUnauthorizedException,
    InvalidPaymentDataException,
    PaymentNotFoundException,
    UnexpectedPaymentStateException,
)
from domain.common.result import Err
from shared.codes.payment_codes import (
    ERROR_TYPE_AUTHENTICATION,
    ERROR_TYPE_PARAMETER,
    OUTCOME_ERROR,
    OUTCOME_SUCCESSFUL_SALE,
)


logger = get_logger(__name__, provider="culqi")

CHARGE_DESCRIPTION_TEMPLATE = "Medusa Order for cart {cart_id}"


def _dump(model: Any) -> Any:
    if model is None:
        return None
    return model.model_dump(mode="json", exclude_none=True)


def _load_customer(raw: Any) -> Optional[PlatformCustomer]:
    return PlatformCustomer.model_validate(raw) if raw else None


def _load_address(raw: Any) -> Optional[Address]:
    return Address.model_validate(raw) if raw else None


def _raise_for_charge_error(error: ErrorInfo, charge_id: str, action: str) -> None:
    if error.type == ERROR_TYPE_PARAMETER:
        raise PaymentNotFoundException(charge_id=charge_id)
    if error.type == ERROR_TYPE_AUTHENTICATION:
        raise GatewayUnauthorizedException()
    raise UnexpectedPaymentStateException(
        f"Error {action} charge: {charge_id}",
        gateway_code=error.code,
        details={"charge_id": charge_id},
    )


class CulqiCardPaymentService:
    identifier = "culqi_card"

    def __init__(
        self,
        client: CulqiGateway,
        customer_store: CustomerStore,
        cart_store: CartStore,
        *,
        capture: bool = False,
    ) -> None:
        self._client = client
        self._customers = customer_store
        self._carts = cart_store
        self._capture = capture

    # ------------------------------------------------------------------
    # Session lifecycle
    # ------------------------------------------------------------------

    async def _link_customer(
        self,
        customer: Optional[PlatformCustomer],
        email: str,
        address: Optional[Address],
    ) -> str:
        result = await get_or_create_culqi_customer(self._client, customer, email, address)
        if isinstance(result, Err):
            raise UnexpectedPaymentStateException(
                result.error.merchant_message or "Error linking Culqi customer",
                gateway_code=result.error.code,
            )
        return result.value.culqi_customer_id

    def _session_snapshot(self, context: PaymentContext) -> dict[str, Any]:
        cart = context.cart
        return {
            "currency": context.currency_code,
            "amount": context.amount,
            "email": cart.email,
            "customer": _dump(context.customer),
            "shipping_address": _dump(cart.shipping_address),
            "antifraud_details": _dump(derive_antifraud_details(
                address=cart.shipping_address,
                customer=context.customer,
                customer_takes_priority=True,
            )),
            "is_recurring_order": context.is_recurring_order,
        }

    async def create_payment(self, context: PaymentContext) -> PaymentSessionResponse:
        """Initialize a payment session and make sure a Culqi customer exists."""
        customer = context.customer
        session_data = self._session_snapshot(context)

        culqi_customer_id = await self._link_customer(
            customer, context.cart.email, context.cart.shipping_address
        )
        session_data["customer_id"] = culqi_customer_id

        customer_metadata: dict[str, Any] = {}
        if not (customer and customer.metadata.get(CULQI_CUSTOMER_ID_KEY)):
            customer_metadata[CULQI_CUSTOMER_ID_KEY] = culqi_customer_id

        logger.info(
            "culqi_payment_session_created",
            cart_id=context.cart.id,
            culqi_customer_id=culqi_customer_id,
        )
        return PaymentSessionResponse(
            session_data=session_data,
            update_requests={"customer_metadata": customer_metadata},
        )

    async def update_payment_data(
        self, session_data: dict[str, Any], data: UpdatePaymentData
    ) -> dict[str, Any]:
        """Attach the card and billing address chosen at checkout."""
        if not data.card_id and not data.card_token:
            raise InvalidPaymentDataException("Card id or card token is required", field="card_id")
        if not data.same_as_shipping_address and data.billing_address is None:
            raise InvalidPaymentDataException("Billing address is required", field="billing_address")
        if session_data.get("is_recurring_order") and not data.card_id and not data.save_card:
            raise InvalidPaymentDataException(
                "Saving a card is required for recurring orders", field="save_card"
            )

        culqi_customer_id = session_data.get("customer_id")
        customer = _load_customer(session_data.get("customer"))
        shipping_address = _load_address(session_data.get("shipping_address"))
        billing_address = shipping_address if data.same_as_shipping_address else data.billing_address
        updated = dict(session_data)
        pending: list[tuple[str, Any]] = []  # (name, coroutine factory)

        # Billing address changed, or reverted to shipping after a change
        if not data.same_as_shipping_address or session_data.get("antifraud_details_from_billing_address"):
            updated["antifraud_details"] = _dump(derive_antifraud_details(address=billing_address))
            updated["antifraud_details_from_billing_address"] = not data.same_as_shipping_address

            if not (customer and customer.has_account) and billing_address is not None:
                update = CustomerUpdatePayload(
                    first_name=billing_address.first_name,
                    last_name=billing_address.last_name,
                    address=billing_address.address_1,
                    address_city=billing_address.city,
                    country_code=billing_address.country_code,
                    phone_number=billing_address.phone,
                )
                pending.append((
                    "culqi_customer",
                    partial(self._client.update_customer, culqi_customer_id, update),
                ))

        last_used_card_id: Optional[str] = None
        if data.card_id:
            updated["source_id"] = data.card_id
            last_used_card_id = data.card_id
        elif data.save_card:
            card_id = await create_card(self._client, culqi_customer_id, data.card_token, billing_address)
            updated["source_id"] = card_id
            last_used_card_id = card_id
        else:
            updated["source_id"] = data.card_token

        if last_used_card_id and customer:
            pending.append((
                "last_used_card",
                partial(
                    self._customers.update,
                    customer.id,
                    metadata={**customer.metadata, LAST_USED_CARD_ID_KEY: last_used_card_id},
                ),
            ))

        if pending:
            outcomes = await asyncio.gather(*(factory() for _, factory in pending), return_exceptions=True)
            for (name, _), outcome in zip(pending, outcomes):
                self._log_side_update(name, outcome, customer)

        return updated

    @staticmethod
    def _log_side_update(name: str, outcome: Any, customer: Optional[PlatformCustomer]) -> None:
        customer_id = customer.id if customer else None
        if isinstance(outcome, BaseException):
            logger.error(
                "payment_side_update_failed",
                update=name,
                customer_id=customer_id,
                error=repr(outcome),
            )
        elif isinstance(outcome, Err):
            logger.warning(
                "payment_side_update_failed",
                update=name,
                customer_id=customer_id,
                merchant_message=outcome.error.merchant_message,
            )

    async def update_payment(self, session_data: dict[str, Any], context: PaymentContext) -> dict[str, Any]:
        """Refresh the session after cart changes; relink the customer when it changed."""
        old_email = session_data.get("email")
        old_customer = _load_customer(session_data.get("customer"))
        customer = context.customer
        email = context.cart.email

        updated = {
            **session_data,
            **self._session_snapshot(context),
            "antifraud_details_from_billing_address": False,
        }

        old_customer_id = old_customer.id if old_customer else None
        new_customer_id = customer.id if customer else None
        if old_email == email and old_customer_id == new_customer_id:
            return updated

        culqi_customer_id = await self._link_customer(customer, email, context.cart.shipping_address)
        updated["customer_id"] = culqi_customer_id

        if customer:
            # The platform persists this once the customer is saved
            linked = customer.model_copy(
                update={"metadata": {**customer.metadata, CULQI_CUSTOMER_ID_KEY: culqi_customer_id}}
            )
            updated["customer"] = _dump(linked)

        # Drop the Culqi customer created for the previous guest session
        if old_customer and not old_customer.has_account:
            old_culqi_id = old_customer.metadata.get(CULQI_CUSTOMER_ID_KEY)
            if old_culqi_id:
                deleted = await self._client.delete_customer(old_culqi_id)
                if isinstance(deleted, Err):
                    logger.warning(
                        "culqi_guest_customer_delete_failed",
                        culqi_customer_id=old_culqi_id,
                        merchant_message=deleted.error.merchant_message,
                    )

        return updated

    # ------------------------------------------------------------------
    # Charges
    # ------------------------------------------------------------------

    async def authorize_payment(
        self, session: PaymentSession, context: Optional[dict[str, Any]] = None
    ) -> AuthorizationResult:
        data = session.data
        cart = await self._carts.retrieve(session.cart_id)
        line_items = [
            {
                "id": item.variant.product_id,
                "name": item.title,
                "quantity": item.quantity,
                "price": item.unit_price / 100,
            }
            for item in cart.items
        ]
        antifraud = data.get("antifraud_details")
        request = ChargeCreatePayload(
            amount=session.amount,
            currency_code=str(data.get("currency", "")).upper(),
            capture=self._capture,
            description=CHARGE_DESCRIPTION_TEMPLATE.format(cart_id=session.cart_id),
            email=data.get("email"),
            antifraud_details=AntifraudDetails.model_validate(antifraud) if antifraud else None,
            source_id=data.get("source_id"),
            metadata={"lineItems": line_items},
        )

        result = await self._client.create_charge(request)
        session_data: dict[str, Any] = {}
        status = PaymentSessionStatus.PENDING

        if isinstance(result, Err):
            if data.get("is_recurring_order"):
                session_data["recurring_payment_failed"] = True
            session_data["outcome_type"] = OUTCOME_ERROR
            status = PaymentSessionStatus.ERROR
            logger.warning(
                "culqi_charge_failed",
                cart_id=session.cart_id,
                error_type=result.error.type,
                merchant_message=result.error.merchant_message,
            )
            return AuthorizationResult(data=session_data, status=status)

        charge = result.value
        outcome = charge.outcome
        session_data["charge_id"] = charge.id
        session_data["outcome_type"] = outcome.type if outcome else None
        session_data["reference_code"] = charge.reference_code

        if outcome and outcome.type == OUTCOME_SUCCESSFUL_SALE:
            session_data["authorization_code"] = charge.authorization_code
            session_data["authorization_result"] = outcome.merchant_message
            if charge.capture:
                session_data["capture_result"] = outcome.merchant_message
            status = PaymentSessionStatus.AUTHORIZED

        logger.info(
            "culqi_charge_created",
            cart_id=session.cart_id,
            charge_id=charge.id,
            outcome_type=session_data["outcome_type"],
        )
        return AuthorizationResult(data=session_data, status=status)

    async def get_payment_data(self, session: PaymentSession) -> dict[str, Any]:
        keys = (
            "charge_id",
            "outcome_type",
            "reference_code",
            "authorization_code",
            "authorization_result",
            "capture_result",
        )
        return {key: session.data.get(key) for key in keys}

    async def capture_payment(self, payment: Payment) -> dict[str, Any]:
        charge_id = payment.data.get("charge_id")
        result = await self._client.capture_charge(charge_id)
        if isinstance(result, Err):
            _raise_for_charge_error(result.error, charge_id, "capturing")

        updated = dict(payment.data)
        outcome = result.value.outcome
        if outcome and outcome.type == OUTCOME_SUCCESSFUL_SALE:
            updated["capture_result"] = outcome.merchant_message
        return updated

    async def refund_payment(self, payment: Payment, refund_amount: int) -> dict[str, Any]:
        charge_id = payment.data.get("charge_id")
        result = await self._client.create_refund(RefundCreatePayload(
            amount=refund_amount,
            charge_id=charge_id,
            reason=RefundReason.REQUESTED_BY_CUSTOMER,
        ))
        if isinstance(result, Err):
            error = result.error
            if error.type == ERROR_TYPE_PARAMETER:
                if error.param == "charge_id":
                    raise PaymentNotFoundException(charge_id=charge_id)
                if error.param == "amount":
                    raise InvalidPaymentDataException(
                        "Amount cannot be greater than the remaining amount", field="amount"
                    )
            if error.type == ERROR_TYPE_AUTHENTICATION:
                raise GatewayUnauthorizedException()
            raise UnexpectedPaymentStateException(
                f"Error refunding charge: {charge_id}",
                gateway_code=error.code,
                details={"charge_id": charge_id},
            )

        logger.info("culqi_refund_created", charge_id=charge_id, amount=refund_amount)
        return dict(payment.data)

    async def cancel_payment(self, payment: Payment) -> dict[str, Any]:
        return payment.data

    async def retrieve_payment(self, payment_data: dict[str, Any]) -> dict[str, Any]:
        charge_id = payment_data.get("charge_id")
        result = await self._client.get_charge(charge_id)
        if isinstance(result, Err):
            _raise_for_charge_error(result.error, charge_id, "retrieving")
        return result.value.model_dump(mode="json", exclude_none=True)

    async def get_status(self, data: dict[str, Any]) -> PaymentSessionStatus:
        outcome_type = data.get("outcome_type")
        if outcome_type == OUTCOME_ERROR:
            return PaymentSessionStatus.ERROR
        if outcome_type == OUTCOME_SUCCESSFUL_SALE:
            return PaymentSessionStatus.AUTHORIZED
        return PaymentSessionStatus.PENDING

    async def delete_payment(self, session: PaymentSession) -> None:
        return None
