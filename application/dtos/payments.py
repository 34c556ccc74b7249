"""
Payment DTOs (Pydantic v2) used at application boundaries.

`Order`, `Refund` and `Transfer` are ready-made implementations of the
request contracts in `domain.payment.contracts`; any object exposing the same
attributes works just as well. The remaining models are the normalized results
every provider returns.
"""
from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field, PositiveInt, model_validator


class Order(BaseModel):
    out_trade_no: str = Field(min_length=1)
    total_fee: PositiveInt  # minor currency units (分)
    pay_platform: int
    time_start: Optional[datetime] = None
    time_expire: Optional[datetime] = None
    trade_no: Optional[str] = None
    ext: dict[str, Any] = Field(default_factory=dict)

    def get_ext(self, key: str) -> Any:
        return self.ext.get(key)


class Refund(BaseModel):
    out_refund_no: str = Field(min_length=1)
    refund_fee: PositiveInt
    pay_platform: int
    refund_no: Optional[str] = None


class Transfer(BaseModel):
    out_transfer_no: str = Field(min_length=1)
    account: str
    amount: PositiveInt
    description: str
    pay_platform: int
    need_check_name: bool = False
    re_user_name: Optional[str] = None

    @model_validator(mode="after")
    def _real_name_required_when_checked(self) -> "Transfer":
        if self.need_check_name and not self.re_user_name:
            raise ValueError("re_user_name is required when need_check_name is set")
        return self


class TradeStatus(str, Enum):
    SUCCESS = "SUCCESS"
    PROCESSING = "PROCESSING"
    FAIL = "FAIL"


class _RawResult(BaseModel):
    # raw provider payload kept for audit/debugging
    raw: dict[str, Any] = Field(default_factory=dict)


class PayResponse(_RawResult):
    pay_platform: int
    success: bool
    trade_no: Optional[str] = None
    out_trade_no: Optional[str] = None
    pay_time: Optional[datetime] = None
    err_code: Optional[str] = None
    err_code_des: Optional[str] = None


class PayAppResult(BaseModel):
    """Bundle handed to the mobile SDK; returned verbatim, never stored."""

    app_id: Optional[str] = None
    partner_id: Optional[str] = None
    time_stamp: Optional[str] = None
    nonce_str: Optional[str] = None
    package: Optional[str] = None
    sign_type: Optional[str] = None
    pay_sign: Optional[str] = None
    prepay_id: Optional[str] = None
    # Alipay app pay hands a signed order string to the client instead
    order_string: Optional[str] = None


class PayJsResult(BaseModel):
    """Parameters for WeixinJSBridge `getBrandWCPayRequest` / `wx.requestPayment`."""

    app_id: str
    time_stamp: str
    nonce_str: str
    package: str
    sign_type: str
    pay_sign: str
    prepay_id: str


class RefundResponse(_RawResult):
    pay_platform: int
    # None means the provider has no record of the refund
    status: Optional[TradeStatus] = None
    refund_no: Optional[str] = None
    out_refund_no: Optional[str] = None
    refund_time: Optional[datetime] = None


class TransferResponse(_RawResult):
    pay_platform: int
    status: TradeStatus
    transfer_no: Optional[str] = None
    out_transfer_no: Optional[str] = None
    payment_time: Optional[datetime] = None
    error_code: Optional[str] = None
    error_desc: Optional[str] = None
