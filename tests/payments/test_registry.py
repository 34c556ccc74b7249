import pytest

from domain.payment.platform import PayPlatform
from infrastructure.external.payments import create_pay, get_pay_config, register_pay, register_pay_config
from infrastructure.external.payments.config import PayConfig
from infrastructure.external.payments.exceptions import ConfigurationError
from infrastructure.external.payments.wxpay.client import WxPay


def test_unknown_platform_is_configuration_error():
    with pytest.raises(ConfigurationError) as exc:
        create_pay(99)
    assert "platform_99" in exc.value.message


def test_missing_config_is_configuration_error():
    built = []
    register_pay(7, lambda: built.append(1))

    with pytest.raises(ConfigurationError):
        create_pay(7)
    assert built == []


def test_get_pay_config_missing():
    with pytest.raises(ConfigurationError):
        get_pay_config(PayPlatform.ALI_PAY)


def test_builtin_provider_is_auto_registered_and_cached(wx_config):
    first = create_pay(PayPlatform.WX_PAY)
    second = create_pay(int(PayPlatform.WX_PAY))

    assert isinstance(first, WxPay)
    assert first is second
    assert first.config is wx_config


def test_register_pay_replaces_cached_instance():
    register_pay_config(7, PayConfig())
    register_pay(7, lambda: "old")
    assert create_pay(7) == "old"

    register_pay(7, lambda: "new")

    assert create_pay(7) == "new"


def test_builder_failure_is_configuration_error():
    register_pay_config(7, PayConfig())

    def broken():
        raise RuntimeError("missing dependency")

    register_pay(7, broken)

    with pytest.raises(ConfigurationError) as exc:
        create_pay(7)
    assert isinstance(exc.value.__cause__, RuntimeError)
