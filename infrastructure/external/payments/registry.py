"""Payment provider factory with registry pattern.

Resolves a platform id to a provider instance. Built-in providers are
registered lazily on first use; each platform gets one cached instance since
providers hold no per-call state.
"""
from __future__ import annotations

import importlib
import threading
from typing import Callable

from application.ports.payment_gateway import Pay
from core.logging_config import get_logger
from domain.payment.platform import PayPlatform, platform_name
from .config import has_pay_config
from .exceptions import ConfigurationError

logger = get_logger(__name__)

# Provider builder type
PayBuilder = Callable[[], Pay]

# Global registry for payment providers
_provider_registry: dict[int, PayBuilder] = {}
_instances: dict[int, Pay] = {}
_lock = threading.Lock()

_BUILTIN_PROVIDERS = [
    (PayPlatform.WX_PAY, "infrastructure.external.payments.wxpay.client", "WxPay"),
    (PayPlatform.ALI_PAY, "infrastructure.external.payments.alipay_client", "AliPay"),
]


def register_pay(platform: int, builder: PayBuilder) -> None:
    """Register a provider builder, replacing any cached instance.

    Args:
        platform: Platform id the builder serves
        builder: Zero-argument callable returning the provider
    """
    with _lock:
        _provider_registry[int(platform)] = builder
        _instances.pop(int(platform), None)
    logger.info("pay_provider_registered", platform=platform_name(platform))


def create_pay(platform: int) -> Pay:
    """Return the provider for `platform`.

    Raises:
        ConfigurationError: If no provider or no configuration is registered
    """
    key = int(platform)
    cached = _instances.get(key)
    if cached is not None:
        return cached

    if key not in _provider_registry:
        _auto_register_providers()
        if key not in _provider_registry:
            raise ConfigurationError(
                f"Payment provider for platform {platform_name(platform)} not registered. "
                f"Available: {sorted(_provider_registry)}",
                platform=platform,
            )
    if not has_pay_config(key):
        raise ConfigurationError(
            f"No payment configuration registered for platform {platform_name(platform)}",
            platform=platform,
        )

    with _lock:
        instance = _instances.get(key)
        if instance is None:
            try:
                instance = _provider_registry[key]()
            except ConfigurationError:
                raise
            except Exception as e:
                logger.error("pay_provider_create_failed", platform=platform_name(platform), error=str(e))
                raise ConfigurationError(
                    f"Failed to create payment provider for platform {platform_name(platform)}: {e}",
                    platform=platform,
                ) from e
            _instances[key] = instance
    return instance


def _auto_register_providers() -> None:
    """Auto-register built-in payment providers."""
    for platform, module_path, class_name in _BUILTIN_PROVIDERS:
        if int(platform) in _provider_registry:
            continue
        try:
            module = importlib.import_module(module_path)
            register_pay(platform, getattr(module, class_name))
        except (ImportError, AttributeError) as e:
            logger.debug("pay_provider_unavailable", platform=platform_name(platform), error=str(e))
