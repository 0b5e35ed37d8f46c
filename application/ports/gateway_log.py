"""
Gateway audit-log port.

The gateway client depends on this Protocol; the application service backed by
the SQLAlchemy repository implements it.
"""
from __future__ import annotations

from typing import Protocol, runtime_checkable

from domain.gateway_log.entity import GatewayLog


@runtime_checkable
class GatewayLogSink(Protocol):
    """Persists one record per outbound gateway call.

    Implementations must not raise: a logging outage never reaches the caller.
    """

    async def persist(self, log: GatewayLog) -> None: ...
