"""
Payment-related settings using pydantic-settings v2 with nested env keys.

Only plain values live here (credentials, URL templates, sizes). The
per-platform `PayConfig` objects, which also carry URL-generator callables, are
built from these by `infrastructure.external.payments.bootstrap`.
"""
from __future__ import annotations

from typing import Optional
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import BaseModel, Field


class PaymentTimeouts(BaseModel):
    connect: float = 3.0
    read: float = 10.0
    write: float = 10.0
    total: float = 15.0


class QrCodeSettings(BaseModel):
    width: int = 300
    height: int = 300


class BroadcastSettings(BaseModel):
    # Outcome broadcast endpoint; broadcasting is disabled when unset
    pay_url: Optional[str] = None
    refund_url: Optional[str] = None
    transfer_url: Optional[str] = None
    signing_secret: Optional[str] = None
    timeout: float = 5.0


class AlipaySettings(BaseModel):
    app_id: Optional[str] = None
    private_key_path: Optional[str] = None
    alipay_public_key_path: Optional[str] = None
    gateway: str = "https://openapi.alipay.com/gateway.do"
    sign_type: str = "RSA2"
    debug: bool = False
    # Templates accept {out_trade_no} / {out_refund_no}
    notify_url: Optional[str] = None
    return_url: Optional[str] = None
    qr_code_access_url: Optional[str] = None
    pc_form_access_url: Optional[str] = None
    wap_form_access_url: Optional[str] = None


class WechatSettings(BaseModel):
    app_id: Optional[str] = None
    applet_app_id: Optional[str] = None
    mch_id: Optional[str] = None
    key: Optional[str] = None
    cert_path: Optional[str] = None
    key_path: Optional[str] = None
    spbill_create_ip: str = "127.0.0.1"
    # debug switches to the sandbox endpoints and MD5 signatures
    debug: bool = False
    notify_url: Optional[str] = None
    refund_notify_url: Optional[str] = None
    wap_return_url: Optional[str] = None
    qr_code_access_url: Optional[str] = None


class PaymentSettings(BaseSettings):
    timeouts: PaymentTimeouts = Field(default_factory=PaymentTimeouts)
    qr_code: QrCodeSettings = Field(default_factory=QrCodeSettings)
    broadcast: BroadcastSettings = Field(default_factory=BroadcastSettings)

    alipay: AlipaySettings = Field(default_factory=AlipaySettings)
    wechat: WechatSettings = Field(default_factory=WechatSettings)

    model_config = SettingsConfigDict(
        env_prefix="PAYMENT__",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
        env_nested_delimiter="__",
    )


payment_settings = PaymentSettings()
