"""
Exceptions for payment providers mapped to unified BusinessException variants.

Every provider-facing operation surfaces exactly one of these; transport and
vendor-SDK exceptions are chained as `__cause__`, never raised directly.
"""
from __future__ import annotations

from typing import Any, Optional
from domain.common.exceptions import BusinessException
from shared.codes.payment_codes import PaymentCode


class PayException(BusinessException):
    """Root of all payment errors."""


class InvalidInputError(PayException):
    def __init__(self, message: str, *, platform: Optional[int] = None, field: Optional[str] = None):
        super().__init__(
            code=PaymentCode.INVALID_INPUT,
            message=message,
            error_type="InvalidInputError",
            details={"platform": platform} if platform is not None else None,
            field=field,
        )
        self.platform = platform


class ConfigurationError(PayException):
    def __init__(self, message: str, *, platform: Optional[int] = None):
        super().__init__(
            code=PaymentCode.CONFIGURATION_ERROR,
            message=message,
            error_type="ConfigurationError",
            details={"platform": platform} if platform is not None else None,
        )
        self.platform = platform


class ProviderError(PayException):
    def __init__(
        self,
        message: str,
        *,
        platform: Optional[int] = None,
        provider_code: Optional[str] = None,
        raw: Optional[dict[str, Any]] = None,
    ):
        super().__init__(
            code=PaymentCode.PROVIDER_ERROR,
            message=message,
            error_type="ProviderError",
            details={"platform": platform, "provider_code": provider_code},
        )
        self.platform = platform
        self.provider_code = provider_code
        # full vendor reply, for diagnostics
        self.raw = raw or {}


class WxPaySdkError(Exception):
    """Raised by the WeChat v2 client for transport, XML or signature problems."""
