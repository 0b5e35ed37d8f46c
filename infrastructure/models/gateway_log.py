"""Culqi gateway call log database model."""
import uuid
from datetime import datetime, timezone

from sqlalchemy import JSON, Column, DateTime, Enum as SAEnum, Index, Integer, String
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.sql import func

from domain.gateway_log.entity import OperationType
from .base import Base


ID_PREFIX = "culqilog"

# Postgres 使用 JSONB，其他方言（测试用 SQLite）退化为 JSON
JSONType = JSON().with_variant(JSONB(), "postgresql")


def generate_log_id() -> str:
    return f"{ID_PREFIX}_{uuid.uuid4().hex.upper()}"


class GatewayLogModel(Base):
    """ORM mapping for culqi_log table."""

    __tablename__ = "culqi_log"
    __table_args__ = (
        Index("ix_culqi_log_operation_created", "operation", "created_at"),
        Index("ix_culqi_log_tracking_id", "tracking_id"),
        {
            "comment": "Culqi 网关调用审计表，每次出站调用一条记录",
        },
    )

    id = Column(String, primary_key=True, default=generate_log_id, comment="主键ID（culqilog_ 前缀）")
    tracking_id = Column(String, nullable=False, default="", comment="响应头 x-culqi-tracking-id")
    culqi_version = Column(String, nullable=False, default="", comment="响应头 x-culqi-version")
    operation = Column(
        SAEnum(
            OperationType,
            name="operation_type_enum",
            values_callable=lambda enum: [member.value for member in enum],
        ),
        nullable=False,
        comment="网关操作类型",
    )
    url = Column(String, nullable=False, comment="相对于 API 根路径的请求路径")
    browser = Column(String, nullable=True, comment="调用方浏览器（可选）")
    ip_address = Column(String, nullable=True, comment="调用方IP（可选）")
    http_code = Column(Integer, nullable=True, comment="HTTP状态码，传输失败时为空")
    start_date_utc = Column(DateTime(timezone=True), nullable=True, comment="请求开始时间")
    end_date_utc = Column(DateTime(timezone=True), nullable=True, comment="请求结束时间")
    request = Column(JSONType, nullable=True, comment="请求体或查询参数")
    response = Column(JSONType, nullable=False, default=dict, comment="响应体，无响应时为空对象")
    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        server_default=func.now(),
        comment="创建时间",
    )
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        server_default=func.now(),
        onupdate=func.now(),
        comment="更新时间",
    )

    def __repr__(self) -> str:
        return (
            f"<GatewayLogModel(id='{self.id}', operation='{self.operation}', "
            f"http_code={self.http_code})>"
        )
