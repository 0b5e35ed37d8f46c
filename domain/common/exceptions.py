"""领域层业务异常定义，供领域、应用与基础设施使用。

网关客户端本身从不抛出这些异常：它总是返回 Result；
只有在平台边界（支付处理器契约）才把错误翻译成异常。
"""
from __future__ import annotations

from typing import Optional
from shared.codes import BusinessCode
from shared.codes.payment_codes import PaymentCode


class BusinessException(Exception):
    """业务异常基类"""

    def __init__(
        self,
        code: int,
        message: str,
        error_type: str = "BusinessError",
        details: Optional[dict] = None,
        field: Optional[str] = None,
    ) -> None:
        self.code = code
        self.message = message
        self.error_type = error_type
        self.details = details
        self.field = field
        super().__init__(self.message)


class InvalidPaymentDataException(BusinessException):
    """请求数据缺失或非法（在任何网络调用之前抛出）"""

    def __init__(self, message: str, *, field: str | None = None, details: dict | None = None):
        super().__init__(
            code=PaymentCode.INVALID_DATA,
            message=message,
            error_type="InvalidData",
            details=details,
            field=field,
        )


class PaymentNotFoundException(BusinessException):
    def __init__(self, message: str = "Charge not found", *, charge_id: Optional[str] = None):
        details = {"charge_id": charge_id} if charge_id else None
        super().__init__(
            code=BusinessCode.NOT_FOUND,
            message=message,
            error_type="NotFound",
            details=details,
        )


class GatewayUnauthorizedException(BusinessException):
    def __init__(self, message: str = "Invalid Culqi API Key"):
        super().__init__(
            code=BusinessCode.UNAUTHORIZED,
            message=message,
            error_type="Unauthorized",
        )


class UnexpectedPaymentStateException(BusinessException):
    """未分类的网关错误，携带操作上下文（例如 charge id）"""

    def __init__(
        self,
        message: str,
        *,
        gateway_code: Optional[str] = None,
        details: Optional[dict] = None,
    ):
        full_details = {"gateway_code": gateway_code} if gateway_code else {}
        if details:
            full_details.update(details)
        super().__init__(
            code=PaymentCode.UNEXPECTED_STATE,
            message=message,
            error_type="UnexpectedState",
            details=full_details or None,
        )
