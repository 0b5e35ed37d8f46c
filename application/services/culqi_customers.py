"""
Helpers linking platform customers to Culqi customers and cards.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from application.dtos.culqi import (
    CardCreatePayload,
    CardMetadata,
    CustomerCreatePayload,
    GatewayResult,
)
from application.dtos.platform import Address, PlatformCustomer
from application.ports.payment_gateway import CulqiGateway
from application.utils.antifraud import (
    DEFAULT_COUNTRY_CODE,
    PLACEHOLDER_FIRST_NAME,
    PLACEHOLDER_LAST_NAME,
    PLACEHOLDER_TEXT,
    RANDOM_PHONE_LENGTH,
    clean_name,
    first_present,
    random_digits,
)
from core.logging_config import get_logger
from domain.common.exceptions import UnexpectedPaymentStateException
from domain.common.result import Err, Ok


logger = get_logger(__name__, provider="culqi")

CULQI_CUSTOMER_ID_KEY = "culqi_customer_id"
LAST_USED_CARD_ID_KEY = "last_used_culqi_card_id"
COMPANY_EMAIL_TEMPLATE = "costos.{ruc}@costosperu.net"


@dataclass(frozen=True)
class LinkedCustomer:
    culqi_customer_id: str
    created: bool


def build_customer_payload(
    customer: Optional[PlatformCustomer],
    email: str,
    address: Optional[Address],
) -> CustomerCreatePayload:
    """Company accounts get a synthetic email and placeholder names."""
    metadata = customer.metadata if customer else {}
    is_company = bool(metadata.get("is_company"))

    culqi_metadata: dict = {}
    if metadata.get("costos_user_id"):
        culqi_metadata["IdentificadorWebId"] = metadata["costos_user_id"]
    if is_company:
        culqi_metadata["Nombre"] = customer.first_name

    if is_company:
        culqi_email = COMPANY_EMAIL_TEMPLATE.format(ruc=metadata.get("ruc"))
        first_name = PLACEHOLDER_FIRST_NAME
        last_name = PLACEHOLDER_LAST_NAME
    else:
        culqi_email = first_present(customer.email if customer else None, email) or ""
        first_name = clean_name(first_present(
            customer.first_name if customer else None,
            address.first_name if address else None,
        ))
        last_name = clean_name(first_present(
            customer.last_name if customer else None,
            address.last_name if address else None,
        ))

    phone = first_present(customer.phone if customer else None, address.phone if address else None)
    country_code = address.country_code if address else None

    return CustomerCreatePayload(
        email=culqi_email.strip(),
        first_name=first_name or PLACEHOLDER_FIRST_NAME,
        last_name=last_name or PLACEHOLDER_LAST_NAME,
        phone_number=phone or random_digits(RANDOM_PHONE_LENGTH),
        address=first_present(address.address_1 if address else None, PLACEHOLDER_TEXT),
        address_city=first_present(address.city if address else None, PLACEHOLDER_TEXT),
        country_code=country_code.upper() if country_code is not None else DEFAULT_COUNTRY_CODE,
        metadata=culqi_metadata,
    )


async def get_or_create_culqi_customer(
    client: CulqiGateway,
    customer: Optional[PlatformCustomer],
    email: str,
    address: Optional[Address] = None,
) -> GatewayResult[LinkedCustomer]:
    """Resolve the Culqi customer id for a platform customer.

    A known ``culqi_customer_id`` in the customer's metadata short-circuits
    the lookup; otherwise a Culqi customer is created (or found by email).
    """
    known_id = customer.metadata.get(CULQI_CUSTOMER_ID_KEY) if customer else None
    if known_id:
        return Ok(LinkedCustomer(culqi_customer_id=known_id, created=False))

    result = await client.create_customer(build_customer_payload(customer, email, address))
    if isinstance(result, Err):
        logger.warning(
            "culqi_customer_link_failed",
            customer_id=customer.id if customer else None,
            merchant_message=result.error.merchant_message,
        )
        return result

    creation = result.value
    logger.info(
        "culqi_customer_linked",
        customer_id=customer.id if customer else None,
        culqi_customer_id=creation.customer.id,
        already_existed=creation.already_existed,
    )
    return Ok(LinkedCustomer(
        culqi_customer_id=creation.customer.id,
        created=not creation.already_existed,
    ))


async def create_card(
    client: CulqiGateway,
    customer_id: str,
    card_token: str,
    billing_address: Address,
) -> str:
    """Save a tokenized card against a Culqi customer and return the card id."""
    metadata = CardMetadata(
        cardHolderName=f"{billing_address.first_name} {billing_address.last_name}",
        billingAddress1=billing_address.address_1,
        billingAddress2=billing_address.address_2,
        billingCity=billing_address.city,
        billingState=billing_address.province,
        billingCountry=billing_address.country_code,
        billingPostalCode=billing_address.postal_code,
    )
    result = await client.create_card(
        CardCreatePayload(customer_id=customer_id, token_id=card_token, metadata=metadata)
    )
    if isinstance(result, Err):
        raise UnexpectedPaymentStateException(
            result.error.merchant_message or "Error creating card",
            gateway_code=result.error.decline_code,
        )
    return result.value.id
