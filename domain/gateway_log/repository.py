"""
网关调用日志仓储接口
"""
from abc import ABC, abstractmethod
from typing import List, Optional

from .entity import GatewayLog, OperationType


class GatewayLogRepository(ABC):
    """网关调用日志仓储抽象接口"""

    @abstractmethod
    async def create(self, log: GatewayLog) -> GatewayLog:
        """持久化一条调用记录"""
        pass

    @abstractmethod
    async def get_by_id(self, log_id: str) -> Optional[GatewayLog]:
        """根据ID获取记录"""
        pass

    @abstractmethod
    async def list_by_operation(
        self,
        operation: OperationType,
        skip: int = 0,
        limit: int = 100,
    ) -> List[GatewayLog]:
        """按操作类型获取记录（最新在前）"""
        pass

    @abstractmethod
    async def get_by_tracking_id(self, tracking_id: str) -> Optional[GatewayLog]:
        """根据 Culqi 追踪ID获取记录"""
        pass
