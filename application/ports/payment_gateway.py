"""
Payment provider port (application/ports) exposing a replaceable protocol.

Application depends on this Protocol; infrastructure implements one provider
per platform and resolves them through its registry.
"""
from __future__ import annotations

from typing import Any, Optional, Protocol, runtime_checkable

from application.dtos.payments import (
    PayAppResult,
    PayJsResult,
    PayResponse,
    RefundResponse,
    TransferResponse,
)
from domain.payment.contracts import PayOrder, RefundOrder, TransferOrder


@runtime_checkable
class Pay(Protocol):
    """Capability set every payment provider satisfies.

    Operations a provider cannot offer raise `InvalidInputError` instead of
    returning something the caller could mistake for a result.
    """

    platform: int
    # True when the WAP flow yields a redirect URL instead of an HTML form
    wap_form_is_redirect_url: bool

    @property
    def config(self) -> Any: ...

    def pay_scan(self, order: PayOrder, auth_code: Optional[str] = None) -> PayResponse: ...

    def pay_app(self, order: PayOrder) -> PayAppResult: ...

    def pay_qr_code(self, order: PayOrder) -> str: ...

    def pay_pc_form(self, order: PayOrder) -> str: ...

    def pay_wap_form(self, order: PayOrder) -> str: ...

    def pay_js(self, order: PayOrder, open_id: Optional[str] = None) -> PayJsResult: ...

    def pay_applets_js(self, order: PayOrder, open_id: Optional[str] = None) -> PayJsResult: ...

    def pay_sync(self, order: PayOrder) -> PayResponse: ...

    def pay_query(self, order: PayOrder) -> Optional[PayResponse]: ...

    def refund_sync(self, order: PayOrder, refund: RefundOrder) -> RefundResponse: ...

    def refund_query(self, refund: RefundOrder) -> RefundResponse: ...

    def transfer_sync(self, transfer: TransferOrder) -> TransferResponse: ...

    def transfer_query(self, transfer: TransferOrder) -> TransferResponse: ...


@runtime_checkable
class Broadcaster(Protocol):
    """Best-effort sink for settlement outcomes; returns False on failure."""

    def broadcast(self, result: Any) -> bool: ...
