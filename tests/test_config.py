"""
Tests for environment-based configuration
"""

import pytest
from pydantic import ValidationError

from billing_engine import config as config_module
from billing_engine.config import BillingConfig, get_config, reload_config
from billing_engine.currency import Currency


class TestBillingConfig:
    """Test configuration defaults and environment overrides"""

    def test_defaults(self, monkeypatch):
        for name in ("BILLING_LOG_LEVEL", "BILLING_LOG_FORMAT", "BILLING_DEFAULT_CURRENCY",
                     "BILLING_ENABLE_EVENTS", "BILLING_DEMO_PRINCIPAL", "BILLING_LOG_FILE"):
            monkeypatch.delenv(name, raising=False)

        cfg = BillingConfig(_env_file=None)

        assert cfg.log_level == "INFO"
        assert cfg.log_format == "json"
        assert cfg.log_file is None
        assert cfg.currency is Currency.IDR
        assert cfg.demo_principal == "5000000"
        assert cfg.enable_events is True

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("BILLING_LOG_LEVEL", "DEBUG")
        monkeypatch.setenv("BILLING_LOG_FORMAT", "TEXT")
        monkeypatch.setenv("BILLING_DEFAULT_CURRENCY", "usd")
        monkeypatch.setenv("BILLING_ENABLE_EVENTS", "false")

        cfg = BillingConfig(_env_file=None)

        assert cfg.log_level == "DEBUG"
        assert cfg.log_format == "text"
        assert cfg.default_currency == "USD"
        assert cfg.currency is Currency.USD
        assert cfg.enable_events is False

    def test_invalid_log_format(self):
        with pytest.raises(ValidationError):
            BillingConfig(_env_file=None, log_format="xml")

    def test_invalid_currency(self):
        with pytest.raises(ValidationError):
            BillingConfig(_env_file=None, default_currency="XYZ")

    def test_reload(self, monkeypatch):
        original = get_config()
        try:
            monkeypatch.setenv("BILLING_LOG_LEVEL", "ERROR")
            reloaded = reload_config()
            assert reloaded.log_level == "ERROR"
            assert get_config() is reloaded
        finally:
            config_module.config = original
