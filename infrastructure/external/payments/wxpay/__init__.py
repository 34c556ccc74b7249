"""WeChat Pay (v2 field-map API) provider."""
from .client import WxPay
from .sdk import WXPay
from .signing import SignType, generate_nonce_str, generate_signature, is_signature_valid

__all__ = [
    "WxPay",
    "WXPay",
    "SignType",
    "generate_nonce_str",
    "generate_signature",
    "is_signature_valid",
]
