"""Settings defaults and startup warnings."""

import pytest

from paidmail.common.config import CommonSettings
from paidmail.common.startup import log_startup_config, warn_incomplete_config


@pytest.mark.parametrize("raw", ["abc", "0", "-5", ""])
def test_bad_prices_fall_back_to_default(raw):
    settings = CommonSettings(_env_file=None, price_minor_unit_custom=raw, price_minor_unit_template=raw)

    assert settings.price_minor_unit_custom == 99
    assert settings.price_minor_unit_template == 99


def test_price_from_environment(monkeypatch):
    monkeypatch.setenv("PRICE_MINOR_UNIT_CUSTOM", "150")

    assert CommonSettings(_env_file=None).price_minor_unit_custom == 150


def test_missing_credentials_only_warn():
    settings = CommonSettings(_env_file=None, stripe_secret_key="", stripe_webhook_secret="", emailjs_public_key="")

    warnings = warn_incomplete_config(settings)

    assert len(warnings) == 3
    assert not settings.stripe_configured
    assert not settings.emailjs_configured


def test_complete_credentials_do_not_warn():
    settings = CommonSettings(
        _env_file=None,
        stripe_secret_key="sk",
        stripe_webhook_secret="whsec",
        emailjs_public_key="pub",
        emailjs_private_key="priv",
        emailjs_service_id="svc",
        emailjs_template_id="tpl",
    )

    assert warn_incomplete_config(settings) == []


def test_startup_config_redacts_secrets():
    settings = CommonSettings(
        _env_file=None,
        stripe_secret_key="sk_live_secret",
        stripe_webhook_secret="whsec_secret",
        emailjs_private_key="priv",
        redis_url="redis://:hunter2@cache:6379/0",
    )

    config = log_startup_config(settings)

    assert config["stripe_secret_key"] == "<redacted>"
    assert config["stripe_webhook_secret"] == "<redacted>"
    assert config["emailjs_private_key"] == "<redacted>"
    assert config["emailjs_public_key"] == "<unset>"
    assert config["redis_url"] == "redis://<redacted>@cache:6379/0"
    assert config["order_storage"] == "metadata"
    assert config["port"] == 3000


def test_webhook_secret_alone_is_reported():
    settings = CommonSettings(
        _env_file=None,
        stripe_secret_key="sk",
        stripe_webhook_secret="",
        emailjs_public_key="pub",
        emailjs_private_key="priv",
        emailjs_service_id="svc",
        emailjs_template_id="tpl",
    )

    assert not settings.stripe_configured
    assert warn_incomplete_config(settings) == ["STRIPE_WEBHOOK_SECRET is not set"]
