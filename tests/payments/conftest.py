import pytest

from domain.payment.platform import PayPlatform
from infrastructure.external.payments.config import WxPayConfig, register_pay_config
from infrastructure.external.payments.wxpay.client import WxPay


WX_KEY = "192006250b4c09247ec02edce69f6a2d"


class FakeWXPay:
    """Stands in for the v2 SDK: records every call, answers with canned replies."""

    def __init__(self, **replies):
        self.replies = replies
        self.calls = []
        self.configs = []

    def _reply(self, name, data):
        self.calls.append((name, dict(data)))
        reply = self.replies.get(name)
        if isinstance(reply, Exception):
            raise reply
        return dict(reply or {})

    def last(self, name):
        return [data for call, data in self.calls if call == name][-1]

    def unified_order(self, data):
        return self._reply("unified_order", data)

    def micro_pay(self, data):
        return self._reply("micro_pay", data)

    def order_query(self, data):
        return self._reply("order_query", data)

    def refund(self, data):
        return self._reply("refund", data)

    def refund_query(self, data):
        return self._reply("refund_query", data)

    def transfer(self, data):
        return self._reply("transfer", data)

    def transfer_query(self, data):
        return self._reply("transfer_query", data)


def make_wx_config(**overrides):
    values = dict(
        app_id="wx2421b1c4370ec43b",
        mch_id="10000100",
        key=WX_KEY,
        applet_app_id="wxd678efh567hg6787",
        pay_notify_url_generator=lambda order: f"https://shop.example.com/pay/notify/{order.out_trade_no}",
    )
    values.update(overrides)
    return WxPayConfig(**values)


@pytest.fixture
def wx_config():
    config = make_wx_config()
    register_pay_config(PayPlatform.WX_PAY, config)
    return config


@pytest.fixture
def fake_wx():
    return FakeWXPay()


@pytest.fixture
def wxpay(wx_config, fake_wx):
    def factory(config):
        fake_wx.configs.append(config)
        return fake_wx

    return WxPay(sdk_factory=factory)
