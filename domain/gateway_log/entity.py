"""
网关调用日志领域实体 - 每一次对 Culqi 的出站调用对应一条记录
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional


class OperationType(str, Enum):
    """网关操作枚举（同时作为日志表 operation 列的取值集合）"""

    CREATE_TOKEN = "create_token"
    LIST_TOKENS = "list_tokens"
    GET_TOKEN = "get_token"
    UPDATE_TOKEN = "update_token"

    CREATE_CHARGE = "create_charge"
    LIST_CHARGES = "list_charges"
    GET_CHARGE = "get_charge"
    UPDATE_CHARGE = "update_charge"
    CAPTURE_CHARGE = "capture_charge"

    CREATE_REFUND = "create_refund"
    LIST_REFUNDS = "list_refunds"
    GET_REFUND = "get_refund"
    UPDATE_REFUND = "update_refund"

    CREATE_CUSTOMER = "create_customer"
    LIST_CUSTOMERS = "list_customers"
    GET_CUSTOMER = "get_customer"
    UPDATE_CUSTOMER = "update_customer"
    DELETE_CUSTOMER = "delete_customer"

    CREATE_CARD = "create_card"
    LIST_CARDS = "list_cards"
    GET_CARD = "get_card"
    UPDATE_CARD = "update_card"
    DELETE_CARD = "delete_card"

    CREATE_PLAN = "create_plan"
    LIST_PLANS = "list_plans"
    GET_PLAN = "get_plan"
    UPDATE_PLAN = "update_plan"
    DELETE_PLAN = "delete_plan"

    CREATE_SUBSCRIPTION = "create_subscription"
    LIST_SUBSCRIPTIONS = "list_subscriptions"
    GET_SUBSCRIPTION = "get_subscription"
    UPDATE_SUBSCRIPTION = "update_subscription"
    DELETE_SUBSCRIPTION = "delete_subscription"

    CREATE_ORDER = "create_order"
    LIST_ORDERS = "list_orders"
    CONFIRM_ORDER = "confirm_order"
    CONFIRM_ORDER_TYPE = "confirm_order_type"
    GET_ORDER = "get_order"
    UPDATE_ORDER = "update_order"
    DELETE_ORDER = "delete_order"


def _ensure_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """确保时间为 UTC 时区"""
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class GatewayLog:
    """
    网关调用审计记录

    生命周期：
    1. 调用开始时创建（operation、url、request）
    2. 调用结束时补全响应、状态码、追踪头与时间戳
    3. 无论调用结果如何都尝试持久化一次
    """

    operation: OperationType
    url: str
    request: Optional[dict[str, Any]] = None
    response: dict[str, Any] = field(default_factory=dict)
    tracking_id: str = ""
    culqi_version: str = ""
    http_code: Optional[int] = None
    start_date_utc: Optional[datetime] = None
    end_date_utc: Optional[datetime] = None
    browser: Optional[str] = None
    ip_address: Optional[str] = None

    # 持久化后由仓储填充
    id: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def __post_init__(self):
        self.operation = OperationType(self.operation)
        if self.response is None:
            self.response = {}
        self._normalize_timestamps()

    def _normalize_timestamps(self) -> None:
        self.start_date_utc = _ensure_utc(self.start_date_utc)
        self.end_date_utc = _ensure_utc(self.end_date_utc)
        self.created_at = _ensure_utc(self.created_at)
        self.updated_at = _ensure_utc(self.updated_at)

    def mark_started(self) -> None:
        self.start_date_utc = utcnow()

    def mark_finished(self) -> None:
        self.end_date_utc = utcnow()

    @property
    def elapsed_ms(self) -> Optional[float]:
        if self.start_date_utc is None or self.end_date_utc is None:
            return None
        return (self.end_date_utc - self.start_date_utc).total_seconds() * 1000
