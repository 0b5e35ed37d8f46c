"""
Factory for the Culqi gateway client.
"""
from __future__ import annotations

from typing import Optional

from application.ports.gateway_log import GatewayLogSink
from core.settings import CulqiSettings, get_culqi_settings

from .culqi_client import CulqiClient


def get_culqi_client(
    settings: Optional[CulqiSettings] = None,
    gateway_log: Optional[GatewayLogSink] = None,
) -> CulqiClient:
    """Build a client; audit records go to the SQLAlchemy-backed log service by default."""
    if gateway_log is None:
        from application.services.gateway_log_service import GatewayLogService
        from infrastructure.unit_of_work import SQLAlchemyUnitOfWork

        gateway_log = GatewayLogService(SQLAlchemyUnitOfWork)
    return CulqiClient(settings or get_culqi_settings(), gateway_log)


__all__ = ["CulqiClient", "get_culqi_client"]
