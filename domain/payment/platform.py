"""
Platform identifiers and well-known extension keys.
"""
from __future__ import annotations

from enum import IntEnum


class PayPlatform(IntEnum):
    ALI_PAY = 1
    WX_PAY = 2


class ExtKeys:
    """Keys of the order extension map read by provider implementations."""

    # 付款码 (barcode shown by the payer's app)
    PAY_SCAN_AUTH_CODE = "pay_scan_auth_code"
    # 公众号 openid for in-browser JS pay
    PAY_WXJS_OPENID = "pay_wxjs_openid"
    # 小程序 openid; falls back to PAY_WXJS_OPENID
    PAY_APPLETS_OPENID = "pay_applets_openid"


def platform_name(platform: int) -> str:
    try:
        return PayPlatform(platform).name.lower()
    except ValueError:
        return f"platform_{platform}"
