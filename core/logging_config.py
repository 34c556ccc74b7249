"""
Structlog 日志配置模块

stdlib logging 与 structlog 共用一条处理链；支付请求参数中的敏感字段在渲染前脱敏。
"""
import json
import logging
from typing import Any, List, Mapping

import structlog
from structlog.contextvars import merge_contextvars
from structlog.dev import ConsoleRenderer
from structlog.processors import JSONRenderer, TimeStamper, add_log_level
from structlog.stdlib import ProcessorFormatter

from core.config import settings


# 付款码、openid、实名与签名等字段不落日志
SENSITIVE_FIELDS = {
    "auth_code",
    "openid",
    "re_user_name",
    "key",
    "sign",
    "pay_sign",
    "private_key",
    "signing_secret",
}
MASK = "***MASKED***"


def _mask(value: Any) -> Any:
    if isinstance(value, Mapping):
        return {k: (MASK if k in SENSITIVE_FIELDS else _mask(v)) for k, v in value.items()}
    return value


def mask_sensitive_fields(logger: Any, method_name: str, event_dict: dict) -> dict:
    """Processor: 脱敏顶层及嵌套 dict（如 params=req）中的敏感字段。"""
    for k, v in event_dict.items():
        if k in SENSITIVE_FIELDS:
            event_dict[k] = MASK
        elif isinstance(v, Mapping):
            event_dict[k] = _mask(v)
    return event_dict


def get_renderer() -> Any:
    """DEBUG 下彩色控制台输出，否则输出 JSON（中文不转义）。"""
    if settings.DEBUG:
        return ConsoleRenderer(colors=True)

    # structlog 会向 serializer 传入 default/sort_keys 等参数
    def _dumps(obj, default=None, **kwargs):
        return json.dumps(obj, ensure_ascii=False, default=default, **kwargs)

    return JSONRenderer(serializer=_dumps)


def _resolve_level() -> int:
    if settings.DEBUG:
        return logging.DEBUG
    level = logging.getLevelName(settings.LOG_LEVEL.upper())
    return level if isinstance(level, int) else logging.INFO


def configure_logging() -> None:
    """配置 structlog，并把标准库 logging（含 httpx 等三方库）桥接到同一处理链。"""
    shared_pre_chain: List[Any] = [
        merge_contextvars,
        add_log_level,
        TimeStamper(fmt="iso"),
        structlog.stdlib.PositionalArgumentsFormatter(),
        mask_sensitive_fields,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    structlog.configure(
        processors=[*shared_pre_chain, ProcessorFormatter.wrap_for_formatter],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    formatter = ProcessorFormatter(
        foreign_pre_chain=shared_pre_chain,
        processors=[ProcessorFormatter.remove_processors_meta, get_renderer()],
    )
    handler = logging.StreamHandler()
    handler.setFormatter(formatter)

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(_resolve_level())
    # httpx 每个请求都打 INFO，降为 WARNING
    logging.getLogger("httpx").setLevel(logging.WARNING)


def get_logger(name: str = __name__) -> structlog.stdlib.BoundLogger:
    """获取 structlog logger 实例。"""
    return structlog.get_logger(name)


configure_logging()
