"""Per-platform payment configuration models and the process-wide store.

The store is populated once at startup (see `bootstrap.configure_from_settings`
or call `register_pay_config` directly) and only read afterwards.
"""
from __future__ import annotations

from typing import Any, Callable, Optional

from pydantic import BaseModel, ConfigDict, Field

from core.logging_config import get_logger
from domain.payment.platform import platform_name
from .exceptions import ConfigurationError

logger = get_logger(__name__)


OrderUrlGenerator = Callable[[Any], str]
RefundUrlGenerator = Callable[[Any, Any], str]
ContentUrlGenerator = Callable[[Any, str], str]


class PayConfig(BaseModel):
    """Settings shared by every platform."""

    # debug selects the provider's sandbox / weaker signing where applicable
    debug: bool = False
    qr_code_width: int = 300
    qr_code_height: int = 300

    pay_notify_url_generator: Optional[OrderUrlGenerator] = None
    refund_notify_url_generator: Optional[RefundUrlGenerator] = None
    pay_qr_code_access_url_generator: Optional[ContentUrlGenerator] = None
    pc_pay_form_html_access_url_generator: Optional[ContentUrlGenerator] = None
    wap_pay_form_html_access_url_generator: Optional[ContentUrlGenerator] = None
    pc_return_url_generator: Optional[OrderUrlGenerator] = None
    wap_return_url_generator: Optional[OrderUrlGenerator] = None

    # business error codes that mean "no such refund" on refund query
    refund_not_found_codes: list[str] = Field(default_factory=list)

    model_config = ConfigDict(arbitrary_types_allowed=True, frozen=True)


class WxPayConfig(PayConfig):
    app_id: str
    mch_id: str
    key: str
    applet_app_id: Optional[str] = None
    # merchant API certificate, needed for refund and transfer
    cert_path: Optional[str] = None
    key_path: Optional[str] = None
    spbill_create_ip: str = "127.0.0.1"
    body_prefix: str = "商品_"
    refund_not_found_codes: list[str] = Field(default_factory=lambda: ["REFUNDNOTEXIST"])


class AlipayConfig(PayConfig):
    app_id: str
    private_key: str
    alipay_public_key: str
    server_url: str = "https://openapi.alipay.com/gateway.do"
    sign_type: str = "RSA2"
    subject_prefix: str = "商品_"
    refund_not_found_codes: list[str] = Field(default_factory=lambda: ["ACQ.TRADE_NOT_EXIST"])


_pay_configs: dict[int, PayConfig] = {}


def register_pay_config(platform: int, config: PayConfig) -> None:
    _pay_configs[int(platform)] = config
    logger.info("pay_config_registered", platform=platform_name(platform), debug=config.debug)


def get_pay_config(platform: int) -> PayConfig:
    try:
        return _pay_configs[int(platform)]
    except KeyError:
        raise ConfigurationError(
            f"No payment configuration registered for platform {platform_name(platform)}",
            platform=platform,
        ) from None


def has_pay_config(platform: int) -> bool:
    return int(platform) in _pay_configs


def require_generator(config: PayConfig, name: str, platform: int) -> Callable[..., str]:
    generator = getattr(config, name)
    if generator is None:
        raise ConfigurationError(
            f"{name} is not configured for platform {platform_name(platform)}",
            platform=platform,
        )
    return generator
