import hashlib
import hmac

import httpx
import pytest

from infrastructure.external.payments.config import WxPayConfig
from infrastructure.external.payments.exceptions import ConfigurationError, WxPaySdkError
from infrastructure.external.payments.wxpay import (
    WXPay,
    SignType,
    generate_signature,
    is_signature_valid,
)
from infrastructure.external.payments.wxpay.signing import dict_to_xml, xml_to_dict


KEY = "192006250b4c09247ec02edce69f6a2d"


def _config(debug=False):
    return WxPayConfig(app_id="wx2421b1c4370ec43b", mch_id="10000100", key=KEY, debug=debug)


def _signed_reply(fields, sign_type):
    reply = dict(fields)
    reply["sign"] = generate_signature(reply, KEY, sign_type)
    return dict_to_xml(reply)


class _Recorder:
    def __init__(self, reply_xml, status_code=200):
        self.reply_xml = reply_xml
        self.status_code = status_code
        self.requests = []

    def __call__(self, request):
        self.requests.append(request)
        return httpx.Response(self.status_code, text=self.reply_xml)

    @property
    def sent(self):
        return xml_to_dict(self.requests[-1].content.decode("utf-8"))


# Signing


def test_md5_signature_format():
    data = {"b": "2", "a": "1", "empty": "", "sign": "IGNORED"}
    expected = hashlib.md5(f"a=1&b=2&key={KEY}".encode("utf-8")).hexdigest().upper()
    assert generate_signature(data, KEY, SignType.MD5) == expected


def test_hmac_sha256_signature_format():
    data = {"appid": "wx1", "nonce_str": " abc "}
    payload = f"appid=wx1&nonce_str=abc&key={KEY}".encode("utf-8")
    expected = hmac.new(KEY.encode("utf-8"), payload, hashlib.sha256).hexdigest().upper()
    assert generate_signature(data, KEY, SignType.HMACSHA256) == expected


def test_signature_validation_detects_tampering():
    data = {"return_code": "SUCCESS", "total_fee": "1"}
    data["sign"] = generate_signature(data, KEY, SignType.HMACSHA256)
    assert is_signature_valid(data, KEY, SignType.HMACSHA256)

    data["total_fee"] = "100"
    assert not is_signature_valid(data, KEY, SignType.HMACSHA256)
    assert not is_signature_valid({"return_code": "SUCCESS"}, KEY)


# Client


def test_unified_order_fills_identity_and_signs():
    recorder = _Recorder(_signed_reply({"return_code": "SUCCESS", "result_code": "SUCCESS", "prepay_id": "wx1"}, SignType.HMACSHA256))
    sdk = WXPay(_config(), transport=httpx.MockTransport(recorder))

    reply = sdk.unified_order({"out_trade_no": "T1", "total_fee": "1"})

    assert reply["prepay_id"] == "wx1"
    assert recorder.requests[-1].url == "https://api.mch.weixin.qq.com/pay/unifiedorder"
    sent = recorder.sent
    assert sent["appid"] == "wx2421b1c4370ec43b"
    assert sent["mch_id"] == "10000100"
    assert sent["sign_type"] == "HMAC-SHA256"
    assert sent["nonce_str"]
    assert is_signature_valid(sent, KEY, SignType.HMACSHA256)


def test_debug_uses_sandbox_and_md5():
    recorder = _Recorder(_signed_reply({"return_code": "SUCCESS"}, SignType.MD5))
    sdk = WXPay(_config(debug=True), transport=httpx.MockTransport(recorder))

    sdk.order_query({"out_trade_no": "T1"})

    assert recorder.requests[-1].url.path == "/sandboxnew/pay/orderquery"
    assert recorder.sent["sign_type"] == "MD5"
    assert is_signature_valid(recorder.sent, KEY, SignType.MD5)


def test_transfer_uses_merchant_fields_and_md5_without_sign_type():
    recorder = _Recorder(dict_to_xml({"return_code": "SUCCESS", "result_code": "SUCCESS"}))
    sdk = WXPay(_config(debug=True), transport=httpx.MockTransport(recorder))

    sdk.transfer({"partner_trade_no": "P1", "amount": "100"})

    sent = recorder.sent
    assert recorder.requests[-1].url.path == "/mmpaymkttransfers/promotion/transfers"
    assert sent["mch_appid"] == "wx2421b1c4370ec43b"
    assert sent["mchid"] == "10000100"
    assert "appid" not in sent
    assert "sign_type" not in sent
    assert is_signature_valid(sent, KEY, SignType.MD5)


def test_reply_with_bad_signature_is_rejected():
    reply = {"return_code": "SUCCESS", "result_code": "SUCCESS", "sign": "0" * 64}
    sdk = WXPay(_config(), transport=httpx.MockTransport(_Recorder(dict_to_xml(reply))))

    with pytest.raises(WxPaySdkError):
        sdk.order_query({"out_trade_no": "T1"})


def test_http_error_is_sdk_error():
    sdk = WXPay(_config(), transport=httpx.MockTransport(_Recorder("", status_code=502)))

    with pytest.raises(WxPaySdkError):
        sdk.order_query({"out_trade_no": "T1"})


def test_malformed_xml_is_sdk_error():
    sdk = WXPay(_config(), transport=httpx.MockTransport(_Recorder("<html>not xml")))

    with pytest.raises(WxPaySdkError):
        sdk.order_query({"out_trade_no": "T1"})


def test_refund_requires_merchant_certificate():
    sdk = WXPay(_config())

    with pytest.raises(ConfigurationError):
        sdk.refund({"out_refund_no": "R1"})
