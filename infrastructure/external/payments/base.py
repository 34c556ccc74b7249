"""
Helpers shared by the provider implementations: the error boundary, extension
lookup, time and amount conversion.

Providers compose these functions instead of inheriting from a common base.
"""
from __future__ import annotations

import functools
from datetime import datetime
from decimal import Decimal
from typing import Any, Callable, Optional, TypeVar
from zoneinfo import ZoneInfo

from core.logging_config import get_logger
from domain.payment.platform import platform_name
from .exceptions import InvalidInputError, PayException, ProviderError


logger = get_logger(__name__)

F = TypeVar("F", bound=Callable[..., Any])

# both providers read and write wall-clock times in Beijing time
PROVIDER_TZ = ZoneInfo("Asia/Shanghai")

_MERCHANT_ID_ATTRS = ("out_refund_no", "out_transfer_no", "out_trade_no")


def merchant_id_of(*views: Any) -> Optional[str]:
    """Most specific merchant-side id among the call arguments."""
    for attr in _MERCHANT_ID_ATTRS:
        for view in views:
            value = getattr(view, attr, None)
            if value:
                return str(value)
    return None


def provider_operation(event: str, message: str) -> Callable[[F], F]:
    """Boundary for a public provider operation.

    Failures are logged once as `event` with the merchant-side id; payment
    errors propagate unchanged, anything else is re-raised as ProviderError
    chained to the original exception.
    """

    def decorator(fn: F) -> F:
        @functools.wraps(fn)
        def wrapper(self, *args, **kwargs):
            try:
                return fn(self, *args, **kwargs)
            except PayException as exc:
                logger.error(
                    event,
                    platform=platform_name(self.platform),
                    merchant_id=merchant_id_of(*args),
                    error=exc.message,
                    error_type=exc.error_type,
                )
                raise
            except Exception as exc:
                logger.error(
                    event,
                    platform=platform_name(self.platform),
                    merchant_id=merchant_id_of(*args),
                    error=str(exc),
                    exc_info=True,
                )
                raise ProviderError(message, platform=self.platform) from exc

        return wrapper  # type: ignore[return-value]

    return decorator


def unsupported(platform: int, operation: str) -> InvalidInputError:
    return InvalidInputError(
        f"{operation} is not supported by {platform_name(platform)}",
        platform=platform,
    )


def require_ext(order: Any, key: str, given: Optional[str], platform: int) -> str:
    """Explicit value first, then the order's extension map."""
    value = given if given else order.get_ext(key)
    if value is None or str(value).strip() == "":
        raise InvalidInputError(f"Missing required extension value '{key}'", platform=platform, field=key)
    return str(value)


def format_time(value: Optional[datetime], fmt: str) -> Optional[str]:
    """Naive values are taken as Beijing time; aware ones are converted to it."""
    if value is None:
        return None
    if value.tzinfo is not None:
        value = value.astimezone(PROVIDER_TZ)
    return value.strftime(fmt)


def parse_time(value: Optional[str], fmt: str) -> Optional[datetime]:
    if not value:
        return None
    return datetime.strptime(value, fmt)


def fen_to_yuan(amount: int) -> str:
    # providers quoting amounts in yuan expect two decimals
    return f"{(Decimal(int(amount)) / Decimal(100)):.2f}"
