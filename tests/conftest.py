"""Pytest bootstrap configuration.

Logging is configured at import time and replaces the root handlers, so it
must happen before pytest attaches its capture handler to a test.
"""
import pytest

import core.logging_config  # noqa: F401
from infrastructure.external.payments import config as pay_config
from infrastructure.external.payments import registry


@pytest.fixture(autouse=True)
def _isolated_payment_state(monkeypatch):
    """Each test starts with an empty config store and provider registry."""
    monkeypatch.setattr(pay_config, "_pay_configs", {})
    monkeypatch.setattr(registry, "_provider_registry", {})
    monkeypatch.setattr(registry, "_instances", {})
