"""
Read-only request contracts consumed by payment providers.

Providers depend on these capability protocols rather than on a concrete
storage shape; `application.dtos.payments` ships pydantic implementations and
`domain.payment.override` wraps any of them.
"""
from __future__ import annotations

from datetime import datetime
from typing import Any, Optional, Protocol, runtime_checkable


@runtime_checkable
class PayOrder(Protocol):
    """Order view: what any pay or query operation needs."""

    @property
    def out_trade_no(self) -> str: ...

    @property
    def total_fee(self) -> int: ...

    @property
    def time_start(self) -> Optional[datetime]: ...

    @property
    def time_expire(self) -> Optional[datetime]: ...

    @property
    def trade_no(self) -> Optional[str]: ...

    @property
    def pay_platform(self) -> int: ...

    def get_ext(self, key: str) -> Any: ...


@runtime_checkable
class RefundOrder(Protocol):
    @property
    def out_refund_no(self) -> str: ...

    @property
    def refund_fee(self) -> int: ...

    @property
    def refund_no(self) -> Optional[str]: ...

    @property
    def pay_platform(self) -> int: ...


@runtime_checkable
class TransferOrder(Protocol):
    @property
    def out_transfer_no(self) -> str: ...

    @property
    def account(self) -> str: ...

    @property
    def amount(self) -> int: ...

    @property
    def description(self) -> str: ...

    @property
    def need_check_name(self) -> bool: ...

    @property
    def re_user_name(self) -> Optional[str]: ...

    @property
    def pay_platform(self) -> int: ...
