"""Provider-agnostic payment workflows (application/services).

Every operation resolves exactly one provider from the order's platform (or
the `platform=` override), delegates to it and returns its result unchanged.
Synchronous settlement operations then hand the result to a broadcaster.
"""
from __future__ import annotations

import base64
from typing import Any, Callable, Optional

from application.dtos.payments import (
    PayAppResult,
    PayJsResult,
    PayResponse,
    RefundResponse,
    TransferResponse,
)
from application.ports.payment_gateway import Broadcaster, Pay
from core.logging_config import get_logger
from domain.payment.contracts import PayOrder, RefundOrder, TransferOrder
from domain.payment.override import with_platform
from domain.payment.platform import platform_name
from infrastructure.external.payments.config import require_generator
from infrastructure.external.payments.exceptions import ConfigurationError, InvalidInputError

logger = get_logger(__name__)

QrRenderer = Callable[[str, int, int], bytes]


class PayService:
    """Dispatch facade over the registered payment providers."""

    def __init__(
        self,
        pay_factory: Callable[[int], Pay],
        *,
        qr_renderer: QrRenderer,
        pay_broadcaster: Optional[Broadcaster] = None,
        refund_broadcaster: Optional[Broadcaster] = None,
        transfer_broadcaster: Optional[Broadcaster] = None,
    ) -> None:
        self._pay_factory = pay_factory
        self._qr_renderer = qr_renderer
        self._pay_broadcaster = pay_broadcaster
        self._refund_broadcaster = refund_broadcaster
        self._transfer_broadcaster = transfer_broadcaster

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def _resolve(self, view: Any, platform: Optional[int]) -> tuple[Pay, Any]:
        view = with_platform(view, platform)
        return self._pay_factory(view.pay_platform), view

    def _broadcast(self, broadcaster: Optional[Broadcaster], result: Any, merchant_id: str, kind: str) -> None:
        if broadcaster is None:
            return
        try:
            delivered = broadcaster.broadcast(result)
        except Exception as exc:
            logger.error("pay_broadcast_failed", kind=kind, merchant_id=merchant_id, error=str(exc), exc_info=True)
            return
        if not delivered:
            logger.error("pay_broadcast_failed", kind=kind, merchant_id=merchant_id)

    # ------------------------------------------------------------------
    # Pay
    # ------------------------------------------------------------------
    def pay_scan(
        self, order: PayOrder, auth_code: Optional[str] = None, *, platform: Optional[int] = None
    ) -> PayResponse:
        pay, order = self._resolve(order, platform)
        logger.info("pay_scan_request", platform=platform_name(pay.platform), out_trade_no=order.out_trade_no)
        result = pay.pay_scan(order, auth_code)
        logger.info("pay_scan_response", out_trade_no=order.out_trade_no, success=result.success)
        return result

    def pay_app(self, order: PayOrder, *, platform: Optional[int] = None) -> PayAppResult:
        pay, order = self._resolve(order, platform)
        logger.info("pay_app_request", platform=platform_name(pay.platform), out_trade_no=order.out_trade_no)
        return pay.pay_app(order)

    def pay_qr_code(self, order: PayOrder, *, platform: Optional[int] = None) -> str:
        pay, order = self._resolve(order, platform)
        logger.info("pay_qr_code_request", platform=platform_name(pay.platform), out_trade_no=order.out_trade_no)
        return pay.pay_qr_code(order)

    def pay_qr_code_image(self, order: PayOrder, *, platform: Optional[int] = None) -> bytes:
        """QR code for the order rendered as PNG at the platform's configured size."""
        pay, order = self._resolve(order, platform)
        logger.info("pay_qr_code_image_request", platform=platform_name(pay.platform), out_trade_no=order.out_trade_no)
        code = pay.pay_qr_code(order)
        config = pay.config
        return self._qr_renderer(code, config.qr_code_width, config.qr_code_height)

    def pay_qr_code_base64(self, order: PayOrder, *, platform: Optional[int] = None) -> str:
        return base64.b64encode(self.pay_qr_code_image(order, platform=platform)).decode("ascii")

    def pay_qr_code_access_url(self, order: PayOrder, *, platform: Optional[int] = None) -> str:
        pay, order = self._resolve(order, platform)
        generator = require_generator(pay.config, "pay_qr_code_access_url_generator", pay.platform)
        logger.info("pay_qr_code_access_url_request", platform=platform_name(pay.platform), out_trade_no=order.out_trade_no)
        return generator(order, pay.pay_qr_code(order))

    def pay_pc_form(self, order: PayOrder, *, platform: Optional[int] = None) -> str:
        pay, order = self._resolve(order, platform)
        logger.info("pay_pc_form_request", platform=platform_name(pay.platform), out_trade_no=order.out_trade_no)
        return pay.pay_pc_form(order)

    def pay_pc_form_access_url(self, order: PayOrder, *, platform: Optional[int] = None) -> str:
        pay, order = self._resolve(order, platform)
        generator = require_generator(pay.config, "pc_pay_form_html_access_url_generator", pay.platform)
        logger.info("pay_pc_form_access_url_request", platform=platform_name(pay.platform), out_trade_no=order.out_trade_no)
        return generator(order, pay.pay_pc_form(order))

    def pay_wap_form(self, order: PayOrder, *, platform: Optional[int] = None) -> str:
        pay, order = self._resolve(order, platform)
        if pay.wap_form_is_redirect_url:
            raise InvalidInputError(
                f"{platform_name(pay.platform)} WAP pay yields a redirect URL, use pay_wap_form_access_url",
                platform=pay.platform,
            )
        logger.info("pay_wap_form_request", platform=platform_name(pay.platform), out_trade_no=order.out_trade_no)
        return pay.pay_wap_form(order)

    def pay_wap_form_access_url(self, order: PayOrder, *, platform: Optional[int] = None) -> str:
        pay, order = self._resolve(order, platform)
        logger.info("pay_wap_form_access_url_request", platform=platform_name(pay.platform), out_trade_no=order.out_trade_no)
        if pay.wap_form_is_redirect_url:
            return pay.pay_wap_form(order)
        generator = require_generator(pay.config, "wap_pay_form_html_access_url_generator", pay.platform)
        return generator(order, pay.pay_wap_form(order))

    def pay_js(
        self, order: PayOrder, open_id: Optional[str] = None, *, platform: Optional[int] = None
    ) -> PayJsResult:
        pay, order = self._resolve(order, platform)
        logger.info("pay_js_request", platform=platform_name(pay.platform), out_trade_no=order.out_trade_no)
        return pay.pay_js(order, open_id)

    def pay_applets_js(
        self, order: PayOrder, open_id: Optional[str] = None, *, platform: Optional[int] = None
    ) -> PayJsResult:
        pay, order = self._resolve(order, platform)
        logger.info("pay_applets_js_request", platform=platform_name(pay.platform), out_trade_no=order.out_trade_no)
        return pay.pay_applets_js(order, open_id)

    def pay_sync(self, order: PayOrder, *, platform: Optional[int] = None) -> PayResponse:
        """Settle the order in-call and broadcast the outcome."""
        pay, order = self._resolve(order, platform)
        if self._pay_broadcaster is None:
            raise ConfigurationError("pay_sync requires a pay broadcaster", platform=pay.platform)
        logger.info("pay_sync_request", platform=platform_name(pay.platform), out_trade_no=order.out_trade_no)
        result = pay.pay_sync(order)
        logger.info("pay_sync_response", out_trade_no=order.out_trade_no, success=result.success)
        self._broadcast(self._pay_broadcaster, result, order.out_trade_no, "pay")
        return result

    def pay_query(self, order: PayOrder, *, platform: Optional[int] = None) -> Optional[PayResponse]:
        """Order status from the provider, or None when the query fails."""
        pay, order = self._resolve(order, platform)
        try:
            return pay.pay_query(order)
        except Exception as exc:
            logger.error("pay_query_failed", out_trade_no=order.out_trade_no, error=str(exc), exc_info=True)
            return None

    # ------------------------------------------------------------------
    # Refund
    # ------------------------------------------------------------------
    def refund_sync(
        self, order: PayOrder, refund: RefundOrder, *, platform: Optional[int] = None
    ) -> RefundResponse:
        # the refund's platform picks the provider
        pay, refund = self._resolve(refund, platform)
        order = with_platform(order, platform)
        logger.info(
            "refund_sync_request",
            platform=platform_name(pay.platform),
            out_trade_no=order.out_trade_no,
            out_refund_no=refund.out_refund_no,
        )
        result = pay.refund_sync(order, refund)
        logger.info("refund_sync_response", out_refund_no=refund.out_refund_no, status=result.status)
        self._broadcast(self._refund_broadcaster, result, refund.out_refund_no, "refund")
        return result

    def refund_query(self, refund: RefundOrder, *, platform: Optional[int] = None) -> RefundResponse:
        pay, refund = self._resolve(refund, platform)
        logger.info("refund_query_request", platform=platform_name(pay.platform), out_refund_no=refund.out_refund_no)
        return pay.refund_query(refund)

    # ------------------------------------------------------------------
    # Transfer
    # ------------------------------------------------------------------
    def transfer_sync(self, transfer: TransferOrder, *, platform: Optional[int] = None) -> TransferResponse:
        pay, transfer = self._resolve(transfer, platform)
        logger.info(
            "transfer_sync_request",
            platform=platform_name(pay.platform),
            out_transfer_no=transfer.out_transfer_no,
        )
        result = pay.transfer_sync(transfer)
        logger.info("transfer_sync_response", out_transfer_no=transfer.out_transfer_no, status=result.status)
        self._broadcast(self._transfer_broadcaster, result, transfer.out_transfer_no, "transfer")
        return result

    def transfer_query(self, transfer: TransferOrder, *, platform: Optional[int] = None) -> TransferResponse:
        pay, transfer = self._resolve(transfer, platform)
        logger.info(
            "transfer_query_request",
            platform=platform_name(pay.platform),
            out_transfer_no=transfer.out_transfer_no,
        )
        return pay.transfer_query(transfer)
