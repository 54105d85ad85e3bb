import pytest
from pydantic import ValidationError

from tumi.settings import Settings


def test_prod_requires_non_default_auth_secret():
    with pytest.raises(ValidationError):
        Settings(app_env="prod", auth_secret_key="dev-auth-secret")


def test_prod_metrics_require_token():
    with pytest.raises(ValidationError):
        Settings(app_env="prod", auth_secret_key="prod-secret", metrics_enabled=True)


def test_prod_settings_accept_explicit_secrets():
    prod = Settings(app_env="prod", auth_secret_key="prod-secret", metrics_enabled=True, metrics_token="t")

    assert prod.app_env == "prod"


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("https://a.example, https://b.example", ["https://a.example", "https://b.example"]),
        ('["https://a.example"]', ["https://a.example"]),
        ("", []),
    ],
)
def test_cors_origins_parsing(raw, expected):
    assert Settings(cors_origins=raw).cors_origins == expected


def test_page_limit_must_be_positive():
    with pytest.raises(ValidationError):
        Settings(activity_log_page_limit=0)


def test_stripe_secret_aliases(monkeypatch):
    monkeypatch.delenv("STRIPE_SECRET_KEY", raising=False)
    monkeypatch.delenv("STRIPE_WEBHOOK_SECRET", raising=False)
    monkeypatch.setenv("STRIPE_KEY", "sk_test_alias")
    monkeypatch.setenv("STRIPE_WH_SECRET", "whsec_alias")

    configured = Settings()

    assert configured.stripe_secret_key == "sk_test_alias"
    assert configured.stripe_webhook_secret == "whsec_alias"
