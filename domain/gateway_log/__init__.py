from .entity import GatewayLog, OperationType
from .repository import GatewayLogRepository

__all__ = ["GatewayLog", "OperationType", "GatewayLogRepository"]
