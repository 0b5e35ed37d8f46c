"""Infrastructure models package exports."""
from .base import Base, metadata
from .gateway_log import GatewayLogModel

__all__ = [
    "Base",
    "metadata",
    "GatewayLogModel",
]
