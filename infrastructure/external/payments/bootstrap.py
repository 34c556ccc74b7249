"""
Startup wiring: turn `PaymentSettings` into registered platform configs and a
ready `PayService`.

URL settings are templates formatted with the order (`{out_trade_no}`) or
refund (`{out_refund_no}`) fields, e.g.
`https://shop.example.com/pay/notify/{out_trade_no}`. Access-URL templates may
also use `{content}`.
"""
from __future__ import annotations

from pathlib import Path
from typing import Any, Callable, Optional
from urllib.parse import quote

from application.services.payment_service import PayService
from core.logging_config import get_logger
from core.settings import PaymentSettings, payment_settings
from domain.payment.platform import PayPlatform
from .broadcasters import HttpBroadcaster
from .config import AlipayConfig, WxPayConfig, register_pay_config
from .exceptions import ConfigurationError
from .qr_image import render_png
from .registry import create_pay

logger = get_logger(__name__)


def order_url(template: Optional[str]) -> Optional[Callable[[Any], str]]:
    if not template:
        return None
    return lambda order: template.format(out_trade_no=order.out_trade_no)


def refund_url(template: Optional[str]) -> Optional[Callable[[Any, Any], str]]:
    if not template:
        return None
    return lambda order, refund: template.format(
        out_trade_no=order.out_trade_no, out_refund_no=refund.out_refund_no
    )


def content_url(template: Optional[str]) -> Optional[Callable[[Any, str], str]]:
    """Access-URL generator for a QR code or form.

    `{content}` is replaced by the URL-quoted content. A template without it
    only carries `{out_trade_no}`, and the application must then store the
    content under that key itself.
    """
    if not template:
        return None
    return lambda order, content: template.format(
        out_trade_no=order.out_trade_no, content=quote(content, safe="")
    )


def _read_key(path: str, platform: int) -> str:
    try:
        return Path(path).read_text(encoding="utf-8").strip()
    except OSError as e:
        raise ConfigurationError(f"Cannot read key file {path}: {e}", platform=platform) from e


def configure_from_settings(settings: PaymentSettings = payment_settings) -> list[PayPlatform]:
    """Register a config for every platform whose credentials are present."""
    configured: list[PayPlatform] = []
    common = {"qr_code_width": settings.qr_code.width, "qr_code_height": settings.qr_code.height}

    wx = settings.wechat
    if wx.app_id and wx.mch_id and wx.key:
        register_pay_config(
            PayPlatform.WX_PAY,
            WxPayConfig(
                app_id=wx.app_id,
                mch_id=wx.mch_id,
                key=wx.key,
                applet_app_id=wx.applet_app_id,
                cert_path=wx.cert_path,
                key_path=wx.key_path,
                spbill_create_ip=wx.spbill_create_ip,
                debug=wx.debug,
                pay_notify_url_generator=order_url(wx.notify_url),
                refund_notify_url_generator=refund_url(wx.refund_notify_url),
                wap_return_url_generator=order_url(wx.wap_return_url),
                pay_qr_code_access_url_generator=content_url(wx.qr_code_access_url),
                **common,
            ),
        )
        configured.append(PayPlatform.WX_PAY)

    ali = settings.alipay
    if ali.app_id and ali.private_key_path and ali.alipay_public_key_path:
        register_pay_config(
            PayPlatform.ALI_PAY,
            AlipayConfig(
                app_id=ali.app_id,
                private_key=_read_key(ali.private_key_path, PayPlatform.ALI_PAY),
                alipay_public_key=_read_key(ali.alipay_public_key_path, PayPlatform.ALI_PAY),
                server_url=ali.gateway,
                sign_type=ali.sign_type,
                debug=ali.debug,
                pay_notify_url_generator=order_url(ali.notify_url),
                pc_return_url_generator=order_url(ali.return_url),
                wap_return_url_generator=order_url(ali.return_url),
                pay_qr_code_access_url_generator=content_url(ali.qr_code_access_url),
                pc_pay_form_html_access_url_generator=content_url(ali.pc_form_access_url),
                wap_pay_form_html_access_url_generator=content_url(ali.wap_form_access_url),
                **common,
            ),
        )
        configured.append(PayPlatform.ALI_PAY)

    if not configured:
        logger.warning("pay_no_platform_configured")
    return configured


def _broadcaster(url: Optional[str], settings: PaymentSettings) -> Optional[HttpBroadcaster]:
    if not url:
        return None
    return HttpBroadcaster(
        url,
        signing_secret=settings.broadcast.signing_secret,
        timeout=settings.broadcast.timeout,
    )


def build_pay_service(settings: PaymentSettings = payment_settings) -> PayService:
    """Facade over the registry, with broadcasters for the configured URLs."""
    return PayService(
        create_pay,
        qr_renderer=render_png,
        pay_broadcaster=_broadcaster(settings.broadcast.pay_url, settings),
        refund_broadcaster=_broadcaster(settings.broadcast.refund_url, settings),
        transfer_broadcaster=_broadcaster(settings.broadcast.transfer_url, settings),
    )
