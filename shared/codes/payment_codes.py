"""
Payment specific codes and Culqi outcome mapping.
"""
from __future__ import annotations

from enum import IntEnum


class PaymentCode(IntEnum):
    # Generic success
    SUCCESS = 0

    # Provider/Network errors (6xxxx)
    PROVIDER_ERROR = 60000
    UNEXPECTED_STATE = 60005
    INVALID_DATA = 60006


# Charge outcome type reported by Culqi for an approved sale
OUTCOME_SUCCESSFUL_SALE = "venta_exitosa"

# Local marker stored in session data when the charge request failed
OUTCOME_ERROR = "error"

# Culqi error `type` discriminants
ERROR_TYPE_PARAMETER = "parameter_error"
ERROR_TYPE_AUTHENTICATION = "authentication_error"
