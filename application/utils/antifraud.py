"""
Pure helpers shared by the gateway client and the payment flows:
field normalization, placeholder fallbacks and antifraud derivation.
"""
from __future__ import annotations

import random
import re
from typing import Optional

from application.dtos.culqi import AntifraudDetails
from application.dtos.platform import Address, PlatformCustomer


NAME_MAX_LENGTH = 50
PHONE_MAX_LENGTH = 15
ADDRESS_MAX_LENGTH = 100
CITY_MAX_LENGTH = 30

PLACEHOLDER_FIRST_NAME = "Nombre"
PLACEHOLDER_LAST_NAME = "Apellido"
PLACEHOLDER_TEXT = "Placeholder"
DEFAULT_COUNTRY_CODE = "PE"
RANDOM_PHONE_LENGTH = 9

_NON_DIGITS = re.compile(r"\D")


def random_digits(length: int) -> str:
    return "".join(random.choice("0123456789") for _ in range(length))


def clean_name(name: Optional[str]) -> str:
    """Culqi rejects dots in names."""
    return (name or "").strip().replace(".", "")


def truncate(value: Optional[str], max_length: int) -> Optional[str]:
    if value is not None and len(value) > max_length:
        return value[:max_length]
    return value


def clean_phone(phone: Optional[str]) -> Optional[str]:
    if not phone:
        return phone
    return truncate(_NON_DIGITS.sub("", phone), PHONE_MAX_LENGTH)


def normalize_contact_fields(target) -> None:
    """Apply the gateway's length limits in place.

    ``target`` is any model carrying ``first_name``, ``last_name``,
    ``phone_number``, ``address`` and ``address_city``.
    """
    target.first_name = truncate(target.first_name, NAME_MAX_LENGTH)
    target.last_name = truncate(target.last_name, NAME_MAX_LENGTH)
    target.phone_number = clean_phone(target.phone_number)
    target.address = truncate(target.address, ADDRESS_MAX_LENGTH)
    target.address_city = truncate(target.address_city, CITY_MAX_LENGTH)


def rewrite_sandbox_email(email: str, app_env: str) -> str:
    """``a@b.com`` → ``a_<env>@b.com``"""
    return email.replace("@", f"_{app_env}@", 1)


def first_present(*values: Optional[str]) -> Optional[str]:
    for value in values:
        if value is not None:
            return value
    return None


def derive_antifraud_details(
    address: Optional[Address] = None,
    customer: Optional[PlatformCustomer] = None,
    customer_takes_priority: bool = False,
) -> AntifraudDetails:
    """Pick identity fields from the higher-priority source, then the other,
    then placeholders. Location fields always come from the address."""
    from_customer = (
        customer and customer.first_name,
        customer and customer.last_name,
        customer and customer.phone,
    )
    from_address = (
        address and address.first_name,
        address and address.last_name,
        address and address.phone,
    )
    primary, secondary = (
        (from_customer, from_address) if customer_takes_priority else (from_address, from_customer)
    )
    first_name, last_name, phone = (
        first_present(p, s) for p, s in zip(primary, secondary)
    )
    country_code = address.country_code if address else None

    return AntifraudDetails(
        first_name=first_present(first_name, PLACEHOLDER_FIRST_NAME),
        last_name=first_present(last_name, PLACEHOLDER_LAST_NAME),
        phone_number=phone or random_digits(RANDOM_PHONE_LENGTH),
        address=first_present(address.address_1 if address else None, PLACEHOLDER_TEXT),
        address_city=first_present(address.city if address else None, PLACEHOLDER_TEXT),
        country_code=country_code.upper() if country_code is not None else DEFAULT_COUNTRY_CODE,
    )
