"""
WeChat Pay provider on the v2 field-map API.

Features used:
- 统一下单 (NATIVE / APP / JSAPI / MWEB) plus the second, client-side signature
  for APP and JSAPI
- 付款码支付 (micropay), order query
- refund / refund query (indexed `*_<n>` reply fields)
- 企业付款 to an openid and its query
"""
from __future__ import annotations

import time
from typing import Callable, Optional
from urllib.parse import quote

from application.dtos.payments import (
    PayAppResult,
    PayJsResult,
    PayResponse,
    RefundResponse,
    TradeStatus,
    TransferResponse,
)
from core.logging_config import get_logger
from core.settings import payment_settings
from domain.payment.contracts import PayOrder, RefundOrder, TransferOrder
from domain.payment.platform import ExtKeys, PayPlatform
from shared.codes.payment_codes import (
    PROVIDER_TRANSFER_STATUS_TO_INTERNAL,
    WX_PROCESSING,
    WX_SUCCESS,
)
from ..base import format_time, parse_time, provider_operation, require_ext, unsupported
from ..config import WxPayConfig, get_pay_config, require_generator
from ..exceptions import ConfigurationError, InvalidInputError, ProviderError
from .sdk import WXPay
from .signing import SignType, generate_nonce_str, generate_signature


logger = get_logger(__name__)

COMPACT_TIME_FORMAT = "%Y%m%d%H%M%S"
DASHED_TIME_FORMAT = "%Y-%m-%d %H:%M:%S"

APP_PACKAGE = "Sign=WXPay"


def _build_sdk(config: WxPayConfig) -> WXPay:
    return WXPay(config, timeouts=payment_settings.timeouts)


class WxPay:
    platform = PayPlatform.WX_PAY
    # H5 pay hands back an mweb_url, there is no HTML form
    wap_form_is_redirect_url = True

    def __init__(self, *, sdk_factory: Optional[Callable[[WxPayConfig], WXPay]] = None) -> None:
        self._sdk_factory = sdk_factory or _build_sdk

    @property
    def config(self) -> WxPayConfig:
        config = get_pay_config(self.platform)
        if not isinstance(config, WxPayConfig):
            raise ConfigurationError("WeChat Pay requires a WxPayConfig", platform=self.platform)
        return config

    @staticmethod
    def sign_type(config: WxPayConfig) -> SignType:
        return SignType.MD5 if config.debug else SignType.HMACSHA256

    # Request maps

    def convert_to_pay_req_map(self, order: PayOrder, config: WxPayConfig) -> dict[str, str]:
        req = {
            "body": f"{config.body_prefix}{order.out_trade_no}",
            "out_trade_no": order.out_trade_no,
            "total_fee": str(order.total_fee),
            "spbill_create_ip": config.spbill_create_ip,
        }
        if order.time_start is not None:
            req["time_start"] = format_time(order.time_start, COMPACT_TIME_FORMAT)
        # time_expire is only accepted on the first submission; a trade_no
        # means the order was already placed once
        if order.time_expire is not None and not order.trade_no:
            req["time_expire"] = format_time(order.time_expire, COMPACT_TIME_FORMAT)
        return req

    def convert_to_refund_req_map(self, order: PayOrder, refund: RefundOrder) -> dict[str, str]:
        return {
            "out_trade_no": order.out_trade_no,
            "out_refund_no": refund.out_refund_no,
            "total_fee": str(order.total_fee),
            "refund_fee": str(refund.refund_fee),
        }

    def convert_to_transfer_req_map(self, transfer: TransferOrder, config: WxPayConfig) -> dict[str, str]:
        if transfer.need_check_name and not transfer.re_user_name:
            raise InvalidInputError(
                "re_user_name is required when need_check_name is set",
                platform=self.platform,
                field="re_user_name",
            )
        req = {
            "partner_trade_no": transfer.out_transfer_no,
            "openid": transfer.account,
            "check_name": "FORCE_CHECK" if transfer.need_check_name else "NO_CHECK",
            "desc": transfer.description,
            "amount": str(transfer.amount),
            "spbill_create_ip": config.spbill_create_ip,
        }
        if transfer.re_user_name:
            req["re_user_name"] = transfer.re_user_name
        return req

    # Reply checks

    def _check_reply(self, reply: dict[str, str]) -> None:
        self._check_return(reply)
        if reply.get("result_code") != WX_SUCCESS:
            raise ProviderError(
                reply.get("err_code_des") or reply.get("err_code") or "WeChat Pay business failure",
                platform=self.platform,
                provider_code=reply.get("err_code"),
                raw=reply,
            )

    def _check_return(self, reply: dict[str, str]) -> None:
        if reply.get("return_code") != WX_SUCCESS:
            raise ProviderError(
                reply.get("return_msg") or "WeChat Pay communication failure",
                platform=self.platform,
                provider_code=reply.get("return_code"),
                raw=reply,
            )

    def _sdk(self, config: WxPayConfig) -> WXPay:
        return self._sdk_factory(config)

    def _unified_order(
        self,
        order: PayOrder,
        config: WxPayConfig,
        trade_type: str,
        open_id: Optional[str] = None,
    ) -> dict[str, str]:
        req = self.convert_to_pay_req_map(order, config)
        req["trade_type"] = trade_type
        if open_id:
            # required when trade_type=JSAPI
            req["openid"] = open_id
        req["notify_url"] = require_generator(config, "pay_notify_url_generator", self.platform)(order)

        logger.debug("wxpay_unified_order_request", out_trade_no=order.out_trade_no, params=req)
        reply = self._sdk(config).unified_order(req)
        self._check_reply(reply)
        return reply

    def _prepay_id(self, reply: dict[str, str]) -> str:
        prepay_id = reply.get("prepay_id")
        if not prepay_id:
            raise ProviderError("WeChat Pay reply carries no prepay_id", platform=self.platform, raw=reply)
        return prepay_id

    # Pay

    @provider_operation("wxpay_scan_failed", "WeChat scan pay failed")
    def pay_scan(self, order: PayOrder, auth_code: Optional[str] = None) -> PayResponse:
        config = self.config
        req = self.convert_to_pay_req_map(order, config)
        req["auth_code"] = require_ext(order, ExtKeys.PAY_SCAN_AUTH_CODE, auth_code, self.platform)
        reply = self._sdk(config).micro_pay(req)
        self._check_return(reply)

        return PayResponse(
            pay_platform=self.platform,
            success=reply.get("result_code") == WX_SUCCESS,
            err_code=reply.get("err_code"),
            err_code_des=reply.get("err_code_des"),
            trade_no=reply.get("transaction_id"),
            out_trade_no=reply.get("out_trade_no") or order.out_trade_no,
            pay_time=parse_time(reply.get("time_end"), COMPACT_TIME_FORMAT),
            raw=dict(reply),
        )

    @provider_operation("wxpay_app_failed", "WeChat app pay failed")
    def pay_app(self, order: PayOrder) -> PayAppResult:
        config = self.config
        prepay_id = self._prepay_id(self._unified_order(order, config, "APP"))

        # second signature, over the field names the mobile SDK uses
        sign_type = self.sign_type(config)
        params = {
            "appid": config.app_id,
            "partnerid": config.mch_id,
            "prepayid": prepay_id,
            "package": APP_PACKAGE,
            "noncestr": generate_nonce_str(),
            "timestamp": str(int(time.time())),
        }
        return PayAppResult(
            app_id=params["appid"],
            partner_id=params["partnerid"],
            time_stamp=params["timestamp"],
            nonce_str=params["noncestr"],
            package=params["package"],
            prepay_id=prepay_id,
            sign_type=sign_type.value,
            pay_sign=generate_signature(params, config.key, sign_type),
        )

    @provider_operation("wxpay_qr_code_failed", "WeChat native pay failed")
    def pay_qr_code(self, order: PayOrder) -> str:
        reply = self._unified_order(order, self.config, "NATIVE")
        code_url = reply.get("code_url")
        if not code_url:
            raise ProviderError("WeChat Pay reply carries no code_url", platform=self.platform, raw=reply)
        logger.debug("wxpay_code_url", out_trade_no=order.out_trade_no, code_url=code_url)
        return code_url

    def pay_pc_form(self, order: PayOrder) -> str:
        raise unsupported(self.platform, "PC form pay")

    @provider_operation("wxpay_wap_failed", "WeChat WAP pay failed")
    def pay_wap_form(self, order: PayOrder) -> str:
        config = self.config
        reply = self._unified_order(order, config, "MWEB")
        mweb_url = reply.get("mweb_url")
        if not mweb_url:
            raise ProviderError("WeChat Pay reply carries no mweb_url", platform=self.platform, raw=reply)
        if config.wap_return_url_generator is not None:
            mweb_url = f"{mweb_url}&redirect_url={quote(config.wap_return_url_generator(order), safe='')}"
        logger.debug("wxpay_mweb_url", out_trade_no=order.out_trade_no, mweb_url=mweb_url)
        return mweb_url

    @provider_operation("wxpay_js_failed", "WeChat JS pay failed")
    def pay_js(self, order: PayOrder, open_id: Optional[str] = None) -> PayJsResult:
        open_id = require_ext(order, ExtKeys.PAY_WXJS_OPENID, open_id, self.platform)
        return self._js_bundle(order, self.config, open_id)

    @provider_operation("wxpay_applets_js_failed", "WeChat mini program pay failed")
    def pay_applets_js(self, order: PayOrder, open_id: Optional[str] = None) -> PayJsResult:
        config = self.config
        if not config.applet_app_id:
            raise ConfigurationError("applet_app_id is not configured for WeChat Pay", platform=self.platform)
        open_id = open_id or order.get_ext(ExtKeys.PAY_APPLETS_OPENID)
        open_id = require_ext(order, ExtKeys.PAY_WXJS_OPENID, open_id, self.platform)
        return self._js_bundle(order, config.model_copy(update={"app_id": config.applet_app_id}), open_id)

    def _js_bundle(self, order: PayOrder, config: WxPayConfig, open_id: str) -> PayJsResult:
        prepay_id = self._prepay_id(self._unified_order(order, config, "JSAPI", open_id))

        # The JSAPI call is signed a second time with camelCase names
        # (appId with a capital I), unlike the snake_case 统一下单 fields
        sign_type = self.sign_type(config)
        params = {
            "appId": config.app_id,
            "timeStamp": str(int(time.time())),
            "nonceStr": generate_nonce_str(),
            "package": f"prepay_id={prepay_id}",
            "signType": sign_type.value,
        }
        return PayJsResult(
            app_id=params["appId"],
            time_stamp=params["timeStamp"],
            nonce_str=params["nonceStr"],
            package=params["package"],
            sign_type=params["signType"],
            pay_sign=generate_signature(params, config.key, sign_type),
            prepay_id=prepay_id,
        )

    def pay_sync(self, order: PayOrder) -> PayResponse:
        raise unsupported(self.platform, "Synchronous pay")

    def pay_query(self, order: PayOrder) -> Optional[PayResponse]:
        """Query the order; any failure is logged and yields None."""
        try:
            config = self.config
            reply = self._sdk(config).order_query({"out_trade_no": order.out_trade_no})
            self._check_reply(reply)
            return PayResponse(
                pay_platform=self.platform,
                success=reply.get("trade_state") == WX_SUCCESS,
                trade_no=reply.get("transaction_id"),
                out_trade_no=reply.get("out_trade_no") or order.out_trade_no,
                pay_time=parse_time(reply.get("time_end"), COMPACT_TIME_FORMAT),
                raw=dict(reply),
            )
        except Exception as exc:
            logger.error("wxpay_order_query_failed", out_trade_no=order.out_trade_no, error=str(exc), exc_info=True)
            return None

    # Refund

    @provider_operation("wxpay_refund_failed", "WeChat refund failed")
    def refund_sync(self, order: PayOrder, refund: RefundOrder) -> RefundResponse:
        config = self.config
        req = self.convert_to_refund_req_map(order, refund)
        # an explicit notify_url overrides the one set on the merchant platform
        if config.refund_notify_url_generator is not None:
            req["notify_url"] = config.refund_notify_url_generator(order, refund)

        logger.debug("wxpay_refund_request", out_refund_no=refund.out_refund_no, params=req)
        reply = self._sdk(config).refund(req)
        self._check_reply(reply)

        # refunds settle asynchronously; the final state comes from refund_query
        return RefundResponse(
            pay_platform=self.platform,
            status=TradeStatus.PROCESSING,
            refund_no=reply.get("refund_id"),
            out_refund_no=reply.get("out_refund_no") or refund.out_refund_no,
            raw=dict(reply),
        )

    @provider_operation("wxpay_refund_query_failed", "WeChat refund query failed")
    def refund_query(self, refund: RefundOrder) -> RefundResponse:
        config = self.config
        params = {}
        if refund.out_refund_no:
            params["out_refund_no"] = refund.out_refund_no
        if refund.refund_no:
            params["refund_id"] = refund.refund_no
        if not params:
            raise InvalidInputError("out_refund_no or refund_no is required", platform=self.platform)

        reply = self._sdk(config).refund_query(params)
        if reply.get("return_code") != WX_SUCCESS:
            raise ProviderError(
                f"WeChat refund query call failed: {reply.get('return_msg')}",
                platform=self.platform,
                provider_code=reply.get("return_code"),
                raw=reply,
            )
        if reply.get("err_code") in config.refund_not_found_codes:
            return RefundResponse(pay_platform=self.platform, out_refund_no=refund.out_refund_no, raw=dict(reply))
        self._check_reply(reply)

        raw = dict(reply)
        idx = self._find_refund_index(reply, refund)
        if idx is None:
            return RefundResponse(pay_platform=self.platform, raw=raw)
        raw["refundIndex"] = str(idx)

        refund_status = reply.get(f"refund_status_{idx}")
        if refund_status == WX_SUCCESS:
            status = TradeStatus.SUCCESS
        elif refund_status == WX_PROCESSING:
            status = TradeStatus.PROCESSING
        else:
            status = TradeStatus.FAIL

        return RefundResponse(
            pay_platform=self.platform,
            status=status,
            refund_no=reply.get(f"refund_id_{idx}"),
            out_refund_no=reply.get(f"out_refund_no_{idx}"),
            refund_time=(
                parse_time(reply.get(f"refund_success_time_{idx}"), DASHED_TIME_FORMAT)
                if status is TradeStatus.SUCCESS
                else None
            ),
            raw=raw,
        )

    @staticmethod
    def _find_refund_index(reply: dict[str, str], refund: RefundOrder) -> Optional[int]:
        count = int(reply.get("refund_count") or 0)
        for idx in range(count):
            if refund.out_refund_no:
                if reply.get(f"out_refund_no_{idx}") == refund.out_refund_no:
                    return idx
            elif refund.refund_no and reply.get(f"refund_id_{idx}") == refund.refund_no:
                return idx
        return None

    # Transfer

    @provider_operation("wxpay_transfer_failed", "WeChat transfer failed")
    def transfer_sync(self, transfer: TransferOrder) -> TransferResponse:
        config = self.config
        req = self.convert_to_transfer_req_map(transfer, config)
        logger.debug("wxpay_transfer_request", out_transfer_no=transfer.out_transfer_no, params=req)
        reply = self._sdk(config).transfer(req)
        self._check_return(reply)

        if reply.get("result_code") != WX_SUCCESS:
            # not necessarily final (e.g. SYSTEMERROR); confirm with transfer_query
            return TransferResponse(
                pay_platform=self.platform,
                status=TradeStatus.PROCESSING,
                out_transfer_no=transfer.out_transfer_no,
                error_code=reply.get("err_code"),
                error_desc=reply.get("err_code_des"),
                raw=dict(reply),
            )
        return TransferResponse(
            pay_platform=self.platform,
            status=TradeStatus.SUCCESS,
            transfer_no=reply.get("payment_no"),
            out_transfer_no=reply.get("partner_trade_no") or transfer.out_transfer_no,
            payment_time=parse_time(reply.get("payment_time"), DASHED_TIME_FORMAT),
            raw=dict(reply),
        )

    @provider_operation("wxpay_transfer_query_failed", "WeChat transfer query failed")
    def transfer_query(self, transfer: TransferOrder) -> TransferResponse:
        config = self.config
        reply = self._sdk(config).transfer_query({"partner_trade_no": transfer.out_transfer_no})
        if reply.get("return_code") != WX_SUCCESS:
            raise ProviderError(
                f"WeChat transfer query failed: {reply.get('return_msg')}",
                platform=self.platform,
                provider_code=reply.get("return_code"),
                raw=reply,
            )

        if reply.get("result_code") != WX_SUCCESS:
            return TransferResponse(
                pay_platform=self.platform,
                status=TradeStatus.PROCESSING,
                out_transfer_no=transfer.out_transfer_no,
                error_code=reply.get("err_code"),
                error_desc=reply.get("err_code_des"),
                raw=dict(reply),
            )

        status = TradeStatus(
            PROVIDER_TRANSFER_STATUS_TO_INTERNAL["wechat"].get(reply.get("status", ""), TradeStatus.FAIL.value)
        )
        return TransferResponse(
            pay_platform=self.platform,
            status=status,
            transfer_no=reply.get("detail_id"),
            out_transfer_no=reply.get("partner_trade_no") or transfer.out_transfer_no,
            payment_time=parse_time(reply.get("payment_time"), DASHED_TIME_FORMAT),
            error_desc=reply.get("reason") if status is TradeStatus.FAIL else None,
            raw=dict(reply),
        )
