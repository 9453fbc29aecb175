from __future__ import annotations

from types import SimpleNamespace

import pytest
from pydantic import ValidationError

import app.core.security as security_module
from app.core.config import Settings
from app.shared.exceptions import AuthenticationException


def test_default_secret_key_allowed_in_development() -> None:
    settings = Settings(_env_file=None, app_env="development", secret_key="change-me")
    assert settings.secret_key == "change-me"
    assert settings.platform_fee_percent == 15
    assert settings.trust_threshold == 5


def test_default_secret_key_rejected_in_production() -> None:
    with pytest.raises(ValidationError):
        Settings(
            _env_file=None,
            app_env="production",
            secret_key="change-me",
            cron_secret="cron",
            stripe_secret_key="sk_live_x",
        )


def test_placeholder_secret_key_prefix_rejected_in_production() -> None:
    with pytest.raises(ValidationError):
        Settings(
            _env_file=None,
            app_env="production",
            secret_key="change-me-in-production",
            cron_secret="cron",
            stripe_secret_key="sk_live_x",
        )


def test_cron_secret_required_in_production() -> None:
    with pytest.raises(ValidationError):
        Settings(
            _env_file=None,
            app_env="production",
            secret_key="super-secure-value",
            stripe_secret_key="sk_live_x",
        )


def test_payment_key_required_in_production() -> None:
    with pytest.raises(ValidationError):
        Settings(
            _env_file=None,
            app_env="production",
            secret_key="super-secure-value",
            cron_secret="cron",
        )


def test_fully_configured_production_settings_are_accepted() -> None:
    settings = Settings(
        _env_file=None,
        app_env="production",
        secret_key="super-secure-value",
        cron_secret="cron",
        stripe_secret_key="sk_live_x",
    )
    assert settings.secret_key == "super-secure-value"


@pytest.mark.parametrize("percent", [-1, 101])
def test_platform_fee_percent_must_be_a_percentage(percent: int) -> None:
    with pytest.raises(ValidationError):
        Settings(_env_file=None, platform_fee_percent=percent)


def test_trusted_proxy_ips_parse_from_comma_separated_value() -> None:
    settings = Settings(_env_file=None, rate_limit_trusted_proxy_ips="10.0.0.1, 10.0.0.2,")
    assert settings.rate_limit_trusted_proxy_ips == ("10.0.0.1", "10.0.0.2")


@pytest.mark.asyncio
async def test_cron_endpoints_require_matching_bearer_secret(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(security_module, "get_settings", lambda: SimpleNamespace(cron_secret="s3cret"))

    await security_module.verify_cron_secret(authorization="Bearer s3cret")
    with pytest.raises(AuthenticationException):
        await security_module.verify_cron_secret(authorization="Bearer wrong")
    with pytest.raises(AuthenticationException):
        await security_module.verify_cron_secret(authorization=None)


@pytest.mark.asyncio
async def test_cron_endpoints_refuse_when_secret_unset(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(security_module, "get_settings", lambda: SimpleNamespace(cron_secret=None))

    with pytest.raises(AuthenticationException):
        await security_module.verify_cron_secret(authorization="Bearer anything")
