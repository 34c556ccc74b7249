"""
Minimal WeChat Pay v2 client.

Takes and returns flat `dict[str, str]` maps; fills the merchant identity,
nonce and signature, exchanges XML over httpx and verifies the reply
signature. Business interpretation of the reply is left to the caller.
"""
from __future__ import annotations

import ssl
from typing import Optional
from xml.etree.ElementTree import ParseError

import httpx

from core.logging_config import get_logger
from core.settings import PaymentTimeouts
from ..config import WxPayConfig
from ..exceptions import ConfigurationError, WxPaySdkError
from .signing import (
    FIELD_SIGN,
    FIELD_SIGN_TYPE,
    SignType,
    dict_to_xml,
    generate_nonce_str,
    generate_signature,
    is_signature_valid,
    xml_to_dict,
)

logger = get_logger(__name__)

DOMAIN = "https://api.mch.weixin.qq.com"
SANDBOX_PREFIX = "/sandboxnew"

UNIFIED_ORDER_PATH = "/pay/unifiedorder"
MICRO_PAY_PATH = "/pay/micropay"
ORDER_QUERY_PATH = "/pay/orderquery"
REFUND_PATH = "/secapi/pay/refund"
REFUND_QUERY_PATH = "/pay/refundquery"
TRANSFER_PATH = "/mmpaymkttransfers/promotion/transfers"
TRANSFER_QUERY_PATH = "/mmpaymkttransfers/gettransferinfo"


class WXPay:
    def __init__(
        self,
        config: WxPayConfig,
        *,
        timeouts: Optional[PaymentTimeouts] = None,
        use_sandbox: Optional[bool] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self.config = config
        self.use_sandbox = config.debug if use_sandbox is None else use_sandbox
        # the sandbox only accepts MD5
        self.sign_type = SignType.MD5 if self.use_sandbox else SignType.HMACSHA256
        self._timeouts = timeouts or PaymentTimeouts()
        self._transport = transport

    @property
    def timeouts(self) -> httpx.Timeout:
        return httpx.Timeout(
            connect=self._timeouts.connect,
            read=self._timeouts.read,
            write=self._timeouts.write,
            timeout=self._timeouts.total,
        )

    def unified_order(self, data: dict[str, str]) -> dict[str, str]:
        return self._request(UNIFIED_ORDER_PATH, data)

    def micro_pay(self, data: dict[str, str]) -> dict[str, str]:
        return self._request(MICRO_PAY_PATH, data)

    def order_query(self, data: dict[str, str]) -> dict[str, str]:
        return self._request(ORDER_QUERY_PATH, data)

    def refund(self, data: dict[str, str]) -> dict[str, str]:
        return self._request(REFUND_PATH, data, with_cert=True)

    def refund_query(self, data: dict[str, str]) -> dict[str, str]:
        return self._request(REFUND_QUERY_PATH, data)

    def transfer(self, data: dict[str, str]) -> dict[str, str]:
        # 企业付款 names the merchant fields mch_appid / mchid
        req = {"mch_appid": self.config.app_id, "mchid": self.config.mch_id, **data}
        return self._request(TRANSFER_PATH, req, with_cert=True, legacy=True)

    def transfer_query(self, data: dict[str, str]) -> dict[str, str]:
        req = {"appid": self.config.app_id, "mch_id": self.config.mch_id, **data}
        return self._request(TRANSFER_QUERY_PATH, req, with_cert=True, legacy=True)

    def fill_request_data(self, data: dict[str, str], *, legacy: bool = False) -> dict[str, str]:
        """Add identity, nonce and signature.

        `legacy` APIs (企业付款) carry their own identity fields, accept MD5
        only and reject a `sign_type` field.
        """
        req = {k: str(v) for k, v in data.items() if v is not None}
        if legacy:
            sign_type = SignType.MD5
        else:
            sign_type = self.sign_type
            req.setdefault("appid", self.config.app_id)
            req.setdefault("mch_id", self.config.mch_id)
            req[FIELD_SIGN_TYPE] = sign_type.value
        req["nonce_str"] = generate_nonce_str()
        req[FIELD_SIGN] = generate_signature(req, self.config.key, sign_type)
        return req

    def _url(self, path: str, legacy: bool) -> str:
        # 企业付款 has no sandbox
        if self.use_sandbox and not legacy:
            return f"{DOMAIN}{SANDBOX_PREFIX}{path}"
        return f"{DOMAIN}{path}"

    def _ssl_context(self) -> ssl.SSLContext:
        cfg = self.config
        if not cfg.cert_path:
            raise ConfigurationError("WeChat merchant certificate (cert_path) is required for this API")
        ctx = ssl.create_default_context()
        ctx.load_cert_chain(certfile=cfg.cert_path, keyfile=cfg.key_path)
        return ctx

    def _request(
        self,
        path: str,
        data: dict[str, str],
        *,
        with_cert: bool = False,
        legacy: bool = False,
    ) -> dict[str, str]:
        req = self.fill_request_data(data, legacy=legacy)
        body = dict_to_xml(req).encode("utf-8")
        client_kwargs = {"timeout": self.timeouts}
        if self._transport is not None:
            client_kwargs["transport"] = self._transport
        elif with_cert:
            client_kwargs["verify"] = self._ssl_context()

        try:
            with httpx.Client(**client_kwargs) as client:
                resp = client.post(
                    self._url(path, legacy),
                    content=body,
                    headers={"Content-Type": "text/xml; charset=utf-8"},
                )
                resp.raise_for_status()
        except httpx.HTTPError as exc:
            raise WxPaySdkError(f"WeChat Pay request {path} failed: {exc}") from exc

        try:
            reply = xml_to_dict(resp.text)
        except ParseError as exc:
            raise WxPaySdkError(f"Invalid XML reply from WeChat Pay {path}") from exc

        sign_type = SignType.MD5 if legacy else self.sign_type
        if reply.get(FIELD_SIGN) and not is_signature_valid(reply, self.config.key, sign_type):
            logger.warning("wxpay_reply_signature_invalid", path=path)
            raise WxPaySdkError(f"Invalid signature in WeChat Pay reply {path}")
        return reply
