"""SQLAlchemy-backed repository for Culqi gateway call logs."""
from __future__ import annotations

from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from domain.gateway_log import GatewayLog, GatewayLogRepository, OperationType
from infrastructure.models.gateway_log import GatewayLogModel


class SQLAlchemyGatewayLogRepository(GatewayLogRepository):
    """Persist gateway call records using SQLAlchemy ORM."""

    def __init__(self, session: AsyncSession):
        self.session = session

    def _to_entity(self, model: GatewayLogModel) -> GatewayLog:
        return GatewayLog(
            id=model.id,
            operation=model.operation,
            url=model.url,
            request=model.request,
            response=dict(model.response or {}),
            tracking_id=model.tracking_id,
            culqi_version=model.culqi_version,
            http_code=model.http_code,
            start_date_utc=model.start_date_utc,
            end_date_utc=model.end_date_utc,
            browser=model.browser,
            ip_address=model.ip_address,
            created_at=model.created_at,
            updated_at=model.updated_at,
        )

    def _to_model(self, entity: GatewayLog) -> GatewayLogModel:
        model = GatewayLogModel(
            operation=entity.operation,
            url=entity.url,
            request=entity.request,
            # 非 dict 的响应（如列表）整体包一层，列约束要求 JSON 对象
            response=entity.response if isinstance(entity.response, dict) else {"data": entity.response},
            tracking_id=entity.tracking_id or "",
            culqi_version=entity.culqi_version or "",
            http_code=entity.http_code,
            start_date_utc=entity.start_date_utc,
            end_date_utc=entity.end_date_utc,
            browser=entity.browser,
            ip_address=entity.ip_address,
        )
        if entity.id:
            model.id = entity.id
        return model

    async def create(self, log: GatewayLog) -> GatewayLog:
        model = self._to_model(log)
        self.session.add(model)
        await self.session.flush()
        await self.session.refresh(model)
        return self._to_entity(model)

    async def get_by_id(self, log_id: str) -> Optional[GatewayLog]:
        model = await self.session.get(GatewayLogModel, log_id)
        return self._to_entity(model) if model else None

    async def list_by_operation(
        self,
        operation: OperationType,
        skip: int = 0,
        limit: int = 100,
    ) -> List[GatewayLog]:
        result = await self.session.execute(
            select(GatewayLogModel)
            .where(GatewayLogModel.operation == OperationType(operation))
            .order_by(GatewayLogModel.created_at.desc())
            .offset(skip)
            .limit(limit)
        )
        return [self._to_entity(model) for model in result.scalars().all()]

    async def get_by_tracking_id(self, tracking_id: str) -> Optional[GatewayLog]:
        result = await self.session.execute(
            select(GatewayLogModel).where(GatewayLogModel.tracking_id == tracking_id).limit(1)
        )
        model = result.scalar_one_or_none()
        return self._to_entity(model) if model else None
