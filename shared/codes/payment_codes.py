"""
Payment specific codes and provider status vocabularies.
"""
from __future__ import annotations

from enum import IntEnum


class PaymentCode(IntEnum):
    # Caller / configuration errors (6xxxx)
    INVALID_INPUT = 60010
    CONFIGURATION_ERROR = 60011

    # Provider errors (6xxxx)
    PROVIDER_ERROR = 60000


# WeChat Pay v2 reply vocabulary
WX_SUCCESS = "SUCCESS"
WX_PROCESSING = "PROCESSING"

# Alipay gateway codes
ALIPAY_SUCCESS = "10000"
ALIPAY_WAITING = "10003"
ALIPAY_BUSINESS_FAILED = "40004"

ALIPAY_TRADE_PAID = {"TRADE_SUCCESS", "TRADE_FINISHED"}

# Provider→internal status mapping for transfers (trade states are boolean)
PROVIDER_TRANSFER_STATUS_TO_INTERNAL = {
    "wechat": {
        "SUCCESS": "SUCCESS",
        "PROCESSING": "PROCESSING",
        "FAILED": "FAIL",
    },
    "alipay": {
        "SUCCESS": "SUCCESS",
        "DEALING": "PROCESSING",
        "WAIT_PAY": "PROCESSING",
        "INIT": "PROCESSING",
        "FAIL": "FAIL",
        "REFUND": "FAIL",
        "CLOSED": "FAIL",
    },
}
