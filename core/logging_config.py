"""
Structlog 日志配置模块

标准库 logging 与 structlog 共用同一处理链：
- 每条日志附带 service / environment
- Culqi 密钥与卡令牌在渲染前脱敏
"""
import logging
import json
import re
import structlog
from structlog.processors import TimeStamper, add_log_level, JSONRenderer
from structlog.dev import ConsoleRenderer
from structlog.contextvars import merge_contextvars
from structlog.stdlib import ProcessorFormatter
from typing import Any, Dict, List

from core.config import settings


SECRET_KEY_PATTERN = re.compile(r"\b(sk|pk)_(live|test)_[A-Za-z0-9]+")
SENSITIVE_FIELDS = frozenset({"authorization", "secret_key", "token_id", "card_number"})
REDACTED = "***"


def _redact(value: Any) -> Any:
    if isinstance(value, str):
        return SECRET_KEY_PATTERN.sub(lambda m: f"{m.group(1)}_{m.group(2)}_{REDACTED}", value)
    if isinstance(value, dict):
        return {
            k: REDACTED if str(k).lower() in SENSITIVE_FIELDS else _redact(v)
            for k, v in value.items()
        }
    if isinstance(value, (list, tuple)):
        return [_redact(item) for item in value]
    return value


def redact_secrets(_: Any, __: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    """Mask API keys and card tokens anywhere in the event."""
    return _redact(event_dict)


def add_service_context(_: Any, __: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    event_dict.setdefault("service", settings.PROJECT_NAME)
    event_dict.setdefault("environment", settings.ENVIRONMENT)
    return event_dict


def get_renderer() -> Any:
    """根据环境选择渲染器 (Console in DEBUG, JSON otherwise)."""
    if settings.DEBUG:
        return ConsoleRenderer(colors=True)

    # structlog 会向 serializer 传入 default/sort_keys 等参数
    def _dumps(obj, default=None, **kwargs):
        return json.dumps(obj, ensure_ascii=False, default=default, **kwargs)
    return JSONRenderer(serializer=_dumps)


def _resolve_level() -> int:
    if settings.LOG_LEVEL:
        return logging.getLevelName(settings.LOG_LEVEL.upper())
    return logging.DEBUG if settings.DEBUG else logging.INFO


def configure_logging() -> None:
    """配置 structlog 并桥接标准库 logging 到同一处理链。"""
    shared_pre_chain: List[Any] = [
        merge_contextvars,
        add_log_level,
        TimeStamper(fmt="iso", utc=True),
        add_service_context,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        redact_secrets,
    ]

    structlog.configure(
        processors=[
            *shared_pre_chain,
            ProcessorFormatter.wrap_for_formatter,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    formatter = ProcessorFormatter(
        foreign_pre_chain=shared_pre_chain,
        processors=[
            ProcessorFormatter.remove_processors_meta,
            get_renderer(),
        ],
    )

    handler = logging.StreamHandler()
    handler.setFormatter(formatter)

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(_resolve_level())

    # httpx 在 INFO 级别记录每个请求，审计日志已覆盖这些信息
    logging.getLogger("httpx").setLevel(logging.WARNING)


def get_logger(name: str = __name__, **context: Any) -> structlog.stdlib.BoundLogger:
    """获取 structlog logger，可预先绑定上下文（如 provider="culqi"）。"""
    logger = structlog.get_logger(name)
    return logger.bind(**context) if context else logger


configure_logging()
