"""
Platform override decorators.

Wrap an order/refund/transfer view so that only `pay_platform` changes; every
other attribute is read from the wrapped view at access time, so the override
can never drift from its source.
"""
from __future__ import annotations

from typing import Any, TypeVar

from domain.payment.contracts import PayOrder, RefundOrder, TransferOrder


V = TypeVar("V")


class _RePlatformView:
    __slots__ = ("_platform", "_origin")

    def __init__(self, platform: int, origin: Any) -> None:
        object.__setattr__(self, "_platform", int(platform))
        object.__setattr__(self, "_origin", origin)

    @property
    def pay_platform(self) -> int:
        return self._platform

    @property
    def origin(self) -> Any:
        return self._origin

    def __getattr__(self, name: str) -> Any:
        # Only reached for attributes not defined on the wrapper itself
        return getattr(self._origin, name)

    def __setattr__(self, name: str, value: Any) -> None:
        raise AttributeError(f"{type(self).__name__} is read-only")

    def __delattr__(self, name: str) -> None:
        raise AttributeError(f"{type(self).__name__} is read-only")

    def __repr__(self) -> str:
        return f"{type(self).__name__}(platform={self._platform!r}, origin={self._origin!r})"


def _delegated(name: str) -> property:
    return property(lambda self: getattr(self._origin, name))


# Contract fields are real properties so the wrappers pass isinstance checks
# against the runtime-checkable contracts.


class RePlatformPayOrder(_RePlatformView):
    __slots__ = ()

    out_trade_no = _delegated("out_trade_no")
    total_fee = _delegated("total_fee")
    time_start = _delegated("time_start")
    time_expire = _delegated("time_expire")
    trade_no = _delegated("trade_no")

    def get_ext(self, key: str) -> Any:
        return self._origin.get_ext(key)


class RePlatformRefundOrder(_RePlatformView):
    __slots__ = ()

    out_refund_no = _delegated("out_refund_no")
    refund_fee = _delegated("refund_fee")
    refund_no = _delegated("refund_no")


class RePlatformTransferOrder(_RePlatformView):
    __slots__ = ()

    out_transfer_no = _delegated("out_transfer_no")
    account = _delegated("account")
    amount = _delegated("amount")
    description = _delegated("description")
    need_check_name = _delegated("need_check_name")
    re_user_name = _delegated("re_user_name")


def with_platform(view: V, platform: int | None) -> V:
    """Return `view` itself when no platform is given, otherwise an override."""
    if platform is None:
        return view
    if isinstance(view, _RePlatformView):
        # Re-wrap the original rather than stacking decorators
        return type(view)(platform, view.origin)  # type: ignore[return-value]
    if isinstance(view, PayOrder):
        return RePlatformPayOrder(platform, view)  # type: ignore[return-value]
    if isinstance(view, RefundOrder):
        return RePlatformRefundOrder(platform, view)  # type: ignore[return-value]
    if isinstance(view, TransferOrder):
        return RePlatformTransferOrder(platform, view)  # type: ignore[return-value]
    raise TypeError(f"Cannot override platform of {type(view).__name__}")
