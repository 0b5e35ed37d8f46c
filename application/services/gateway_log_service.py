"""Audit persistence for outbound gateway calls (application/services)."""
from __future__ import annotations

from typing import Callable, List, Optional

from core.logging_config import get_logger
from domain.common.unit_of_work import AbstractUnitOfWork
from domain.gateway_log import GatewayLog, OperationType


logger = get_logger(__name__)


class GatewayLogService:
    """Writes one ``culqi_log`` row per gateway call.

    ``persist`` implements the ``GatewayLogSink`` port and never raises: an
    audit failure is logged and the payment flow continues.
    """

    def __init__(self, uow_factory: Callable[..., AbstractUnitOfWork]):
        self._uow_factory = uow_factory

    async def persist(self, log: GatewayLog) -> None:
        try:
            async with self._uow_factory() as uow:
                saved = await uow.gateway_log_repository.create(log)
            log.id = saved.id
            log.created_at = saved.created_at
            log.updated_at = saved.updated_at
        except Exception:
            logger.exception(
                "culqi_log_persist_failed",
                operation=log.operation.value,
                url=log.url,
                tracking_id=log.tracking_id or None,
            )

    async def list_by_operation(
        self, operation: OperationType, skip: int = 0, limit: int = 100
    ) -> List[GatewayLog]:
        async with self._uow_factory(readonly=True) as uow:
            return await uow.gateway_log_repository.list_by_operation(operation, skip=skip, limit=limit)

    async def get_by_tracking_id(self, tracking_id: str) -> Optional[GatewayLog]:
        async with self._uow_factory(readonly=True) as uow:
            return await uow.gateway_log_repository.get_by_tracking_id(tracking_id)
