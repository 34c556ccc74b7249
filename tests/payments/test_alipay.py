import json
from datetime import datetime

import pytest

from application.dtos.payments import Order, Refund, TradeStatus, Transfer
from domain.payment.platform import ExtKeys, PayPlatform
from infrastructure.external.payments import alipay_client
from infrastructure.external.payments.alipay_client import AliPay
from infrastructure.external.payments.config import AlipayConfig, register_pay_config
from infrastructure.external.payments.exceptions import InvalidInputError, ProviderError


REQUEST_CLASSES = [
    "AlipayTradePayRequest",
    "AlipayTradeAppPayRequest",
    "AlipayTradePrecreateRequest",
    "AlipayTradePagePayRequest",
    "AlipayTradeWapPayRequest",
    "AlipayTradeQueryRequest",
    "AlipayTradeRefundRequest",
    "AlipayTradeFastpayRefundQueryRequest",
    "AlipayFundTransUniTransferRequest",
    "AlipayFundTransCommonQueryRequest",
]


class _FakeRequest:
    def __init__(self):
        self.biz_content = None
        self.notify_url = None
        self.return_url = None


class FakeAlipayClient:
    def __init__(self):
        self.replies = {}
        self.requests = []
        self.http_method = None

    def execute(self, request):
        self.requests.append(request)
        reply = self.replies[type(request).__name__]
        if isinstance(reply, Exception):
            raise reply
        return json.dumps(reply)

    def sdk_execute(self, request):
        self.requests.append(request)
        return "app_id=2021000000000000&biz_content=%7B%7D&sign=abc"

    def page_execute(self, request, http_method="GET"):
        self.requests.append(request)
        self.http_method = http_method
        return '<form name="punchout_form" method="post"></form>'


@pytest.fixture
def fake_client(monkeypatch):
    for name in REQUEST_CLASSES:
        monkeypatch.setattr(alipay_client, name, type(name, (_FakeRequest,), {}))
    return FakeAlipayClient()


@pytest.fixture
def ali_config():
    config = AlipayConfig(
        app_id="2021000000000000",
        private_key="app-private-key",
        alipay_public_key="alipay-public-key",
        pay_notify_url_generator=lambda order: f"https://shop.example.com/alipay/notify/{order.out_trade_no}",
        pc_return_url_generator=lambda order: f"https://shop.example.com/alipay/return/{order.out_trade_no}",
    )
    register_pay_config(PayPlatform.ALI_PAY, config)
    return config


@pytest.fixture
def alipay(ali_config, fake_client):
    return AliPay(client_factory=lambda config: fake_client)


def _order(**kw):
    values = dict(out_trade_no="A1", total_fee=1, pay_platform=PayPlatform.ALI_PAY)
    values.update(kw)
    return Order(**values)


def _refund(**kw):
    values = dict(out_refund_no="AR1", refund_fee=1, pay_platform=PayPlatform.ALI_PAY)
    values.update(kw)
    return Refund(**values)


def _transfer():
    return Transfer(
        out_transfer_no="AT1",
        account="payee@example.com",
        amount=150,
        description="reward",
        pay_platform=PayPlatform.ALI_PAY,
    )


def test_capabilities(alipay):
    assert alipay.platform == PayPlatform.ALI_PAY
    assert alipay.wap_form_is_redirect_url is False


def test_qr_code_precreate(alipay, fake_client):
    fake_client.replies["AlipayTradePrecreateRequest"] = {"code": "10000", "msg": "Success", "qr_code": "https://qr.alipay.com/bax01"}

    assert alipay.pay_qr_code(_order(time_expire=datetime(2024, 1, 1, 13, 0, 0))) == "https://qr.alipay.com/bax01"

    request = fake_client.requests[-1]
    assert request.biz_content == {
        "out_trade_no": "A1",
        "total_amount": "0.01",
        "subject": "商品_A1",
        "time_expire": "2024-01-01 13:00:00",
    }
    assert request.notify_url == "https://shop.example.com/alipay/notify/A1"


def test_gateway_error_raises_provider_error(alipay, fake_client):
    fake_client.replies["AlipayTradePrecreateRequest"] = {"code": "40002", "msg": "Invalid Arguments", "sub_code": "isv.invalid-signature", "sub_msg": "验签出错"}

    with pytest.raises(ProviderError) as exc:
        alipay.pay_qr_code(_order())
    assert exc.value.provider_code == "isv.invalid-signature"
    assert exc.value.raw["code"] == "40002"


def test_client_exception_is_wrapped(alipay, fake_client):
    fake_client.replies["AlipayTradePrecreateRequest"] = RuntimeError("connection reset")

    with pytest.raises(ProviderError) as exc:
        alipay.pay_qr_code(_order())
    assert isinstance(exc.value.__cause__, RuntimeError)


def test_scan_pay_success(alipay, fake_client):
    fake_client.replies["AlipayTradePayRequest"] = {
        "code": "10000",
        "msg": "Success",
        "trade_no": "2024010122001",
        "out_trade_no": "A1",
        "gmt_payment": "2024-01-01 12:00:05",
    }

    result = alipay.pay_scan(_order(), "287951669891795468")

    biz = fake_client.requests[-1].biz_content
    assert biz["scene"] == "bar_code"
    assert biz["auth_code"] == "287951669891795468"
    assert result.success is True
    assert result.trade_no == "2024010122001"
    assert result.pay_time == datetime(2024, 1, 1, 12, 0, 5)


def test_scan_pay_waiting_for_payer(alipay, fake_client):
    fake_client.replies["AlipayTradePayRequest"] = {"code": "10003", "msg": "order success pay inprocess"}

    result = alipay.pay_scan(_order(ext={ExtKeys.PAY_SCAN_AUTH_CODE: "287951669891795468"}))

    assert result.success is False
    assert result.err_code == "10003"
    assert result.out_trade_no == "A1"


def test_pay_sync_reads_auth_code_from_ext(alipay, fake_client):
    fake_client.replies["AlipayTradePayRequest"] = {"code": "40004", "msg": "Business Failed", "sub_code": "ACQ.PAYMENT_AUTH_CODE_INVALID", "sub_msg": "支付失败"}

    result = alipay.pay_sync(_order(ext={ExtKeys.PAY_SCAN_AUTH_CODE: "2879"}))

    assert result.success is False
    assert result.err_code == "ACQ.PAYMENT_AUTH_CODE_INVALID"
    assert fake_client.requests[-1].biz_content["auth_code"] == "2879"


def test_app_pay_returns_order_string(alipay, fake_client):
    result = alipay.pay_app(_order())

    assert result.order_string.startswith("app_id=2021000000000000")
    assert fake_client.requests[-1].biz_content["product_code"] == "QUICK_MSECURITY_PAY"


def test_pc_form_posts_with_return_url(alipay, fake_client):
    html = alipay.pay_pc_form(_order())

    request = fake_client.requests[-1]
    assert html.startswith("<form")
    assert fake_client.http_method == "POST"
    assert request.return_url == "https://shop.example.com/alipay/return/A1"
    assert request.biz_content["product_code"] == "FAST_INSTANT_TRADE_PAY"


def test_wap_form(alipay, fake_client):
    alipay.pay_wap_form(_order())

    assert fake_client.requests[-1].biz_content["product_code"] == "QUICK_WAP_WAY"


def test_js_pay_is_unsupported(alipay, fake_client):
    with pytest.raises(InvalidInputError):
        alipay.pay_js(_order(), "openid")
    with pytest.raises(InvalidInputError):
        alipay.pay_applets_js(_order(), "openid")
    assert fake_client.requests == []


def test_pay_query(alipay, fake_client):
    fake_client.replies["AlipayTradeQueryRequest"] = {"code": "10000", "trade_status": "TRADE_SUCCESS", "trade_no": "2024010122001", "send_pay_date": "2024-01-01 12:00:05"}

    result = alipay.pay_query(_order())

    assert result.success is True
    assert result.pay_time == datetime(2024, 1, 1, 12, 0, 5)


def test_pay_query_failure_returns_none(alipay, fake_client, caplog):
    fake_client.replies["AlipayTradeQueryRequest"] = {"code": "40004", "sub_code": "ACQ.TRADE_NOT_EXIST"}

    assert alipay.pay_query(_order()) is None
    assert "alipay_order_query_failed" in caplog.text


def test_refund_with_fund_change_is_success(alipay, fake_client):
    fake_client.replies["AlipayTradeRefundRequest"] = {
        "code": "10000",
        "trade_no": "2024010122001",
        "fund_change": "Y",
        "gmt_refund_pay": "2024-01-02 09:00:00",
    }

    result = alipay.refund_sync(_order(), _refund())

    assert fake_client.requests[-1].biz_content == {"out_trade_no": "A1", "refund_amount": "0.01", "out_request_no": "AR1"}
    assert result.status is TradeStatus.SUCCESS
    assert result.refund_no == "2024010122001"
    assert result.refund_time == datetime(2024, 1, 2, 9, 0, 0)


def test_refund_without_fund_change_is_processing(alipay, fake_client):
    fake_client.replies["AlipayTradeRefundRequest"] = {"code": "10000", "trade_no": "2024010122001", "fund_change": "N"}

    result = alipay.refund_sync(_order(), _refund())

    assert result.status is TradeStatus.PROCESSING
    assert result.refund_time is None


def test_refund_query_success(alipay, fake_client):
    fake_client.replies["AlipayTradeFastpayRefundQueryRequest"] = {
        "code": "10000",
        "trade_no": "2024010122001",
        "out_request_no": "AR1",
        "refund_amount": "0.01",
        "refund_status": "REFUND_SUCCESS",
        "gmt_refund_pay": "2024-01-02 09:00:00",
    }

    result = alipay.refund_query(_refund(refund_no="2024010122001"))

    assert fake_client.requests[-1].biz_content == {"trade_no": "2024010122001", "out_request_no": "AR1"}
    assert result.status is TradeStatus.SUCCESS
    assert result.out_refund_no == "AR1"


def test_refund_query_not_found(alipay, fake_client):
    fake_client.replies["AlipayTradeFastpayRefundQueryRequest"] = {"code": "40004", "sub_code": "ACQ.TRADE_NOT_EXIST"}

    result = alipay.refund_query(_refund(refund_no="2024010122001"))

    assert result.status is None
    assert result.out_refund_no == "AR1"


def test_refund_query_empty_success_is_not_found(alipay, fake_client):
    fake_client.replies["AlipayTradeFastpayRefundQueryRequest"] = {"code": "10000", "msg": "Success"}

    assert alipay.refund_query(_refund(refund_no="2024010122001")).status is None


def test_refund_query_requires_trade_no(alipay, fake_client):
    with pytest.raises(InvalidInputError):
        alipay.refund_query(_refund())
    assert fake_client.requests == []


def test_transfer_success(alipay, fake_client):
    fake_client.replies["AlipayFundTransUniTransferRequest"] = {
        "code": "10000",
        "out_biz_no": "AT1",
        "order_id": "20240101110070000006",
        "status": "SUCCESS",
        "trans_date": "2024-01-01 12:00:00",
    }

    result = alipay.transfer_sync(_transfer())

    biz = fake_client.requests[-1].biz_content
    assert biz["trans_amount"] == "1.50"
    assert biz["payee_info"] == {"identity": "payee@example.com", "identity_type": "ALIPAY_LOGON_ID"}
    assert result.status is TradeStatus.SUCCESS
    assert result.transfer_no == "20240101110070000006"


def test_transfer_business_failure_is_fail(alipay, fake_client):
    fake_client.replies["AlipayFundTransUniTransferRequest"] = {"code": "40004", "sub_code": "PAYEE_NOT_EXIST", "sub_msg": "收款账号不存在"}

    result = alipay.transfer_sync(_transfer())

    assert result.status is TradeStatus.FAIL
    assert result.error_code == "PAYEE_NOT_EXIST"


def test_transfer_query_failure_reason(alipay, fake_client):
    fake_client.replies["AlipayFundTransCommonQueryRequest"] = {
        "code": "10000",
        "order_id": "20240101110070000006",
        "status": "FAIL",
        "error_code": "PAYEE_ACCOUNT_STATUS_ERROR",
        "fail_reason": "收款方账户状态异常",
    }

    result = alipay.transfer_query(_transfer())

    assert result.status is TradeStatus.FAIL
    assert result.error_desc == "收款方账户状态异常"
