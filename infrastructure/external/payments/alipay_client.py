"""
Alipay provider using the official alipay-sdk-python.

Implements bar-code (scan) pay, app pay, precreate (QR), page pay (PC), WAP,
query, refund, refund query, transfer and transfer query.
"""
from __future__ import annotations

import json
from typing import Any, Callable, Optional

from application.dtos.payments import (
    PayAppResult,
    PayJsResult,
    PayResponse,
    RefundResponse,
    TradeStatus,
    TransferResponse,
)
from core.logging_config import get_logger
from domain.payment.contracts import PayOrder, RefundOrder, TransferOrder
from domain.payment.platform import ExtKeys, PayPlatform
from shared.codes.payment_codes import (
    ALIPAY_BUSINESS_FAILED,
    ALIPAY_SUCCESS,
    ALIPAY_TRADE_PAID,
    ALIPAY_WAITING,
    PROVIDER_TRANSFER_STATUS_TO_INTERNAL,
)
from .base import fen_to_yuan, format_time, parse_time, provider_operation, require_ext, unsupported
from .config import AlipayConfig, get_pay_config
from .exceptions import ConfigurationError, InvalidInputError, ProviderError


try:  # optional import
    from alipay.aop.api.AlipayClientConfig import AlipayClientConfig  # type: ignore
    from alipay.aop.api.DefaultAlipayClient import DefaultAlipayClient  # type: ignore
    from alipay.aop.api.request.AlipayTradePayRequest import AlipayTradePayRequest  # type: ignore
    from alipay.aop.api.request.AlipayTradeAppPayRequest import AlipayTradeAppPayRequest  # type: ignore
    from alipay.aop.api.request.AlipayTradePrecreateRequest import AlipayTradePrecreateRequest  # type: ignore
    from alipay.aop.api.request.AlipayTradePagePayRequest import AlipayTradePagePayRequest  # type: ignore
    from alipay.aop.api.request.AlipayTradeWapPayRequest import AlipayTradeWapPayRequest  # type: ignore
    from alipay.aop.api.request.AlipayTradeQueryRequest import AlipayTradeQueryRequest  # type: ignore
    from alipay.aop.api.request.AlipayTradeRefundRequest import AlipayTradeRefundRequest  # type: ignore
    from alipay.aop.api.request.AlipayTradeFastpayRefundQueryRequest import AlipayTradeFastpayRefundQueryRequest  # type: ignore
    from alipay.aop.api.request.AlipayFundTransUniTransferRequest import AlipayFundTransUniTransferRequest  # type: ignore
    from alipay.aop.api.request.AlipayFundTransCommonQueryRequest import AlipayFundTransCommonQueryRequest  # type: ignore
except ImportError:  # pragma: no cover
    AlipayClientConfig = None  # type: ignore
    DefaultAlipayClient = None  # type: ignore
    AlipayTradePayRequest = None  # type: ignore
    AlipayTradeAppPayRequest = None  # type: ignore
    AlipayTradePrecreateRequest = None  # type: ignore
    AlipayTradePagePayRequest = None  # type: ignore
    AlipayTradeWapPayRequest = None  # type: ignore
    AlipayTradeQueryRequest = None  # type: ignore
    AlipayTradeRefundRequest = None  # type: ignore
    AlipayTradeFastpayRefundQueryRequest = None  # type: ignore
    AlipayFundTransUniTransferRequest = None  # type: ignore
    AlipayFundTransCommonQueryRequest = None  # type: ignore


logger = get_logger(__name__)

TIME_FORMAT = "%Y-%m-%d %H:%M:%S"

TRANSFER_PRODUCT_CODE = "TRANS_ACCOUNT_NO_PWD"
TRANSFER_BIZ_SCENE = "DIRECT_TRANSFER"


def _build_client(config: AlipayConfig):
    if DefaultAlipayClient is None:
        raise ConfigurationError("alipay-sdk-python not installed. Add it to requirements.", platform=PayPlatform.ALI_PAY)
    # sandbox_debug points the client at the sandbox gateway
    alipay_client_config = AlipayClientConfig(sandbox_debug=config.debug)
    if not config.debug:
        alipay_client_config.server_url = config.server_url
    alipay_client_config.app_id = config.app_id
    alipay_client_config.app_private_key = config.private_key
    alipay_client_config.alipay_public_key = config.alipay_public_key
    alipay_client_config.sign_type = config.sign_type
    return DefaultAlipayClient(alipay_client_config=alipay_client_config)


class AliPay:
    platform = PayPlatform.ALI_PAY
    wap_form_is_redirect_url = False

    def __init__(self, *, client_factory: Optional[Callable[[AlipayConfig], Any]] = None) -> None:
        self._client_factory = client_factory or _build_client

    @property
    def config(self) -> AlipayConfig:
        config = get_pay_config(self.platform)
        if not isinstance(config, AlipayConfig):
            raise ConfigurationError("Alipay requires an AlipayConfig", platform=self.platform)
        return config

    # Helpers

    def _new_request(self, request_cls: Any) -> Any:
        if request_cls is None:
            raise ConfigurationError("alipay-sdk-python not installed. Add it to requirements.", platform=self.platform)
        return request_cls()

    def _trade_biz(self, order: PayOrder, config: AlipayConfig, **extra: Any) -> dict[str, Any]:
        biz: dict[str, Any] = {
            "out_trade_no": order.out_trade_no,
            "total_amount": fen_to_yuan(order.total_fee),
            "subject": f"{config.subject_prefix}{order.out_trade_no}",
        }
        if order.time_expire is not None:
            biz["time_expire"] = format_time(order.time_expire, TIME_FORMAT)
        biz.update(extra)
        return biz

    def _trade_request(self, request_cls: Any, order: PayOrder, config: AlipayConfig, **extra: Any) -> Any:
        request = self._new_request(request_cls)
        request.biz_content = self._trade_biz(order, config, **extra)
        if config.pay_notify_url_generator is not None:
            request.notify_url = config.pay_notify_url_generator(order)
        return request

    def _execute(self, request: Any, config: AlipayConfig) -> dict[str, Any]:
        # execute() returns the verified JSON body of the `*_response` node
        content = self._client_factory(config).execute(request)
        if isinstance(content, (str, bytes)):
            return json.loads(content)
        return dict(content)

    def _check(self, data: dict[str, Any], *accepted: str) -> None:
        if data.get("code") not in (accepted or (ALIPAY_SUCCESS,)):
            raise ProviderError(
                data.get("sub_msg") or data.get("msg") or "Alipay gateway failure",
                platform=self.platform,
                provider_code=data.get("sub_code") or data.get("code"),
                raw=data,
            )

    # Pay

    @provider_operation("alipay_scan_failed", "Alipay bar code pay failed")
    def pay_scan(self, order: PayOrder, auth_code: Optional[str] = None) -> PayResponse:
        config = self.config
        request = self._trade_request(
            AlipayTradePayRequest,
            order,
            config,
            scene="bar_code",
            auth_code=require_ext(order, ExtKeys.PAY_SCAN_AUTH_CODE, auth_code, self.platform),
        )
        data = self._execute(request, config)
        self._check(data, ALIPAY_SUCCESS, ALIPAY_WAITING, ALIPAY_BUSINESS_FAILED)

        success = data.get("code") == ALIPAY_SUCCESS
        return PayResponse(
            pay_platform=self.platform,
            success=success,
            trade_no=data.get("trade_no"),
            out_trade_no=data.get("out_trade_no") or order.out_trade_no,
            pay_time=parse_time(data.get("gmt_payment"), TIME_FORMAT),
            err_code=None if success else (data.get("sub_code") or data.get("code")),
            err_code_des=None if success else (data.get("sub_msg") or data.get("msg")),
            raw=data,
        )

    def pay_sync(self, order: PayOrder) -> PayResponse:
        # alipay.trade.pay settles in the call itself
        return self.pay_scan(order)

    @provider_operation("alipay_app_failed", "Alipay app pay failed")
    def pay_app(self, order: PayOrder) -> PayAppResult:
        config = self.config
        request = self._trade_request(AlipayTradeAppPayRequest, order, config, product_code="QUICK_MSECURITY_PAY")
        order_string = self._client_factory(config).sdk_execute(request)
        return PayAppResult(app_id=config.app_id, order_string=order_string)

    @provider_operation("alipay_qr_code_failed", "Alipay precreate failed")
    def pay_qr_code(self, order: PayOrder) -> str:
        config = self.config
        data = self._execute(self._trade_request(AlipayTradePrecreateRequest, order, config), config)
        self._check(data)
        qr_code = data.get("qr_code")
        if not qr_code:
            raise ProviderError("Alipay reply carries no qr_code", platform=self.platform, raw=data)
        return qr_code

    @provider_operation("alipay_pc_form_failed", "Alipay page pay failed")
    def pay_pc_form(self, order: PayOrder) -> str:
        config = self.config
        request = self._trade_request(AlipayTradePagePayRequest, order, config, product_code="FAST_INSTANT_TRADE_PAY")
        if config.pc_return_url_generator is not None:
            request.return_url = config.pc_return_url_generator(order)
        return self._client_factory(config).page_execute(request, http_method="POST")

    @provider_operation("alipay_wap_form_failed", "Alipay WAP pay failed")
    def pay_wap_form(self, order: PayOrder) -> str:
        config = self.config
        request = self._trade_request(AlipayTradeWapPayRequest, order, config, product_code="QUICK_WAP_WAY")
        if config.wap_return_url_generator is not None:
            request.return_url = config.wap_return_url_generator(order)
        return self._client_factory(config).page_execute(request, http_method="POST")

    def pay_js(self, order: PayOrder, open_id: Optional[str] = None) -> PayJsResult:
        raise unsupported(self.platform, "JS pay")

    def pay_applets_js(self, order: PayOrder, open_id: Optional[str] = None) -> PayJsResult:
        raise unsupported(self.platform, "Mini program JS pay")

    def pay_query(self, order: PayOrder) -> Optional[PayResponse]:
        """Query the order; any failure is logged and yields None."""
        try:
            config = self.config
            request = self._new_request(AlipayTradeQueryRequest)
            request.biz_content = {"out_trade_no": order.out_trade_no}
            data = self._execute(request, config)
            self._check(data)
            return PayResponse(
                pay_platform=self.platform,
                success=data.get("trade_status") in ALIPAY_TRADE_PAID,
                trade_no=data.get("trade_no"),
                out_trade_no=data.get("out_trade_no") or order.out_trade_no,
                pay_time=parse_time(data.get("send_pay_date"), TIME_FORMAT),
                raw=data,
            )
        except Exception as exc:
            logger.error("alipay_order_query_failed", out_trade_no=order.out_trade_no, error=str(exc), exc_info=True)
            return None

    # Refund

    @provider_operation("alipay_refund_failed", "Alipay refund failed")
    def refund_sync(self, order: PayOrder, refund: RefundOrder) -> RefundResponse:
        config = self.config
        request = self._new_request(AlipayTradeRefundRequest)
        request.biz_content = {
            "out_trade_no": order.out_trade_no,
            "refund_amount": fen_to_yuan(refund.refund_fee),
            "out_request_no": refund.out_refund_no,
        }
        data = self._execute(request, config)
        self._check(data)

        # fund_change=Y means the money already moved
        settled = data.get("fund_change") == "Y"
        return RefundResponse(
            pay_platform=self.platform,
            status=TradeStatus.SUCCESS if settled else TradeStatus.PROCESSING,
            refund_no=data.get("trade_no"),
            out_refund_no=refund.out_refund_no,
            refund_time=parse_time(data.get("gmt_refund_pay"), TIME_FORMAT) if settled else None,
            raw=data,
        )

    @provider_operation("alipay_refund_query_failed", "Alipay refund query failed")
    def refund_query(self, refund: RefundOrder) -> RefundResponse:
        config = self.config
        if not refund.refund_no:
            # refund_no holds the Alipay trade_no returned by refund_sync
            raise InvalidInputError("refund_no (Alipay trade_no) is required", platform=self.platform, field="refund_no")
        request = self._new_request(AlipayTradeFastpayRefundQueryRequest)
        request.biz_content = {"trade_no": refund.refund_no, "out_request_no": refund.out_refund_no}
        data = self._execute(request, config)

        not_found = RefundResponse(pay_platform=self.platform, out_refund_no=refund.out_refund_no, raw=data)
        if data.get("code") != ALIPAY_SUCCESS and data.get("sub_code") in config.refund_not_found_codes:
            return not_found
        self._check(data)
        # an empty success reply means no refund with that out_request_no
        if not data.get("out_request_no"):
            return not_found

        refund_status = data.get("refund_status")
        settled = refund_status == "REFUND_SUCCESS" or (not refund_status and bool(data.get("refund_amount")))
        return RefundResponse(
            pay_platform=self.platform,
            status=TradeStatus.SUCCESS if settled else TradeStatus.PROCESSING,
            refund_no=data.get("trade_no") or refund.refund_no,
            out_refund_no=data.get("out_request_no"),
            refund_time=parse_time(data.get("gmt_refund_pay"), TIME_FORMAT) if settled else None,
            raw=data,
        )

    # Transfer

    def _transfer_status(self, value: Optional[str]) -> TradeStatus:
        return TradeStatus(PROVIDER_TRANSFER_STATUS_TO_INTERNAL["alipay"].get(value or "", TradeStatus.PROCESSING.value))

    @provider_operation("alipay_transfer_failed", "Alipay transfer failed")
    def transfer_sync(self, transfer: TransferOrder) -> TransferResponse:
        config = self.config
        if transfer.need_check_name and not transfer.re_user_name:
            raise InvalidInputError(
                "re_user_name is required when need_check_name is set",
                platform=self.platform,
                field="re_user_name",
            )
        payee: dict[str, Any] = {"identity": transfer.account, "identity_type": "ALIPAY_LOGON_ID"}
        if transfer.re_user_name:
            payee["name"] = transfer.re_user_name

        request = self._new_request(AlipayFundTransUniTransferRequest)
        request.biz_content = {
            "out_biz_no": transfer.out_transfer_no,
            "trans_amount": fen_to_yuan(transfer.amount),
            "product_code": TRANSFER_PRODUCT_CODE,
            "biz_scene": TRANSFER_BIZ_SCENE,
            "order_title": transfer.description,
            "payee_info": payee,
        }
        data = self._execute(request, config)
        self._check(data, ALIPAY_SUCCESS, ALIPAY_BUSINESS_FAILED)

        if data.get("code") == ALIPAY_BUSINESS_FAILED:
            return TransferResponse(
                pay_platform=self.platform,
                status=TradeStatus.FAIL,
                out_transfer_no=transfer.out_transfer_no,
                error_code=data.get("sub_code"),
                error_desc=data.get("sub_msg"),
                raw=data,
            )
        return TransferResponse(
            pay_platform=self.platform,
            status=self._transfer_status(data.get("status")),
            transfer_no=data.get("order_id"),
            out_transfer_no=data.get("out_biz_no") or transfer.out_transfer_no,
            payment_time=parse_time(data.get("trans_date"), TIME_FORMAT),
            raw=data,
        )

    @provider_operation("alipay_transfer_query_failed", "Alipay transfer query failed")
    def transfer_query(self, transfer: TransferOrder) -> TransferResponse:
        config = self.config
        request = self._new_request(AlipayFundTransCommonQueryRequest)
        request.biz_content = {
            "out_biz_no": transfer.out_transfer_no,
            "product_code": TRANSFER_PRODUCT_CODE,
            "biz_scene": TRANSFER_BIZ_SCENE,
        }
        data = self._execute(request, config)
        self._check(data)

        status = self._transfer_status(data.get("status"))
        return TransferResponse(
            pay_platform=self.platform,
            status=status,
            transfer_no=data.get("order_id"),
            out_transfer_no=data.get("out_biz_no") or transfer.out_transfer_no,
            payment_time=parse_time(data.get("pay_date"), TIME_FORMAT),
            error_code=data.get("error_code") if status is TradeStatus.FAIL else None,
            error_desc=data.get("fail_reason") if status is TradeStatus.FAIL else None,
            raw=data,
        )
