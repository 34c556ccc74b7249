"""
Payment providers and their registry.
"""
from __future__ import annotations

from .config import (
    AlipayConfig,
    PayConfig,
    WxPayConfig,
    get_pay_config,
    has_pay_config,
    register_pay_config,
)
from .exceptions import (
    ConfigurationError,
    InvalidInputError,
    PayException,
    ProviderError,
)
from .registry import create_pay, register_pay

__all__ = [
    "AlipayConfig",
    "PayConfig",
    "WxPayConfig",
    "get_pay_config",
    "has_pay_config",
    "register_pay_config",
    "ConfigurationError",
    "InvalidInputError",
    "PayException",
    "ProviderError",
    "create_pay",
    "register_pay",
]
