"""Tests for application and per-API configuration."""

import time

import pytest
from pydantic import ValidationError

import config
from features_api.config import FeaturesConfig
from responses_api.config import ResponsesConfig


@pytest.fixture
def postgis_env(monkeypatch):
    monkeypatch.setenv("POSTGIS_HOST", "survey-db.postgres.database.azure.com")
    monkeypatch.setenv("POSTGIS_DATABASE", "surveys")
    monkeypatch.setenv("POSTGIS_USER", "survey@admin")
    monkeypatch.setenv("POSTGIS_PASSWORD", "p@ss word")
    monkeypatch.delenv("USE_MANAGED_IDENTITY", raising=False)
    monkeypatch.delenv("POSTGIS_PORT", raising=False)
    monkeypatch.delenv("POSTGIS_SSLMODE", raising=False)
    config.get_app_config.cache_clear()
    config.reset_token_cache()
    yield monkeypatch
    config.get_app_config.cache_clear()
    config.reset_token_cache()


def test_password_connection_string(postgis_env):
    assert config.get_postgres_connection_string() == (
        "postgresql://survey%40admin:p%40ss+word"
        "@survey-db.postgres.database.azure.com:5432/surveys"
        "?sslmode=require&connect_timeout=10"
    )


def test_password_required_without_managed_identity(postgis_env):
    postgis_env.delenv("POSTGIS_PASSWORD")
    with pytest.raises(ValidationError):
        config.AppConfig(_env_file=None)


class FakeToken:
    def __init__(self, token, expires_on):
        self.token = token
        self.expires_on = expires_on


class FakeCredential:
    """Hands out numbered tokens that expire `lifetime` seconds from now."""

    created = 0

    def __init__(self, lifetime=3600):
        FakeCredential.created += 1
        self.lifetime = lifetime
        self.issued = 0

    def get_token(self, scope):
        assert scope == config.POSTGRES_AAD_SCOPE
        self.issued += 1
        return FakeToken(f"aad-token-{self.issued}", time.time() + self.lifetime)


@pytest.fixture
def managed_identity(postgis_env):
    postgis_env.delenv("POSTGIS_PASSWORD")
    postgis_env.setenv("USE_MANAGED_IDENTITY", "true")
    FakeCredential.created = 0
    postgis_env.setattr(config, "DefaultAzureCredential", FakeCredential)
    return postgis_env


def test_managed_identity_token(managed_identity):
    assert ":aad-token-1@" in config.get_postgres_connection_string()


def test_managed_identity_token_reused_while_fresh(managed_identity):
    config.get_postgres_connection_string()
    assert ":aad-token-1@" in config.get_postgres_connection_string()
    assert FakeCredential.created == 1


def test_managed_identity_token_refreshed_near_expiry(managed_identity):
    managed_identity.setattr(
        config, "DefaultAzureCredential",
        lambda: FakeCredential(lifetime=config.TOKEN_REFRESH_MARGIN_SECONDS - 1)
    )

    assert ":aad-token-1@" in config.get_postgres_connection_string()
    assert ":aad-token-2@" in config.get_postgres_connection_string()
    assert FakeCredential.created == 1


def test_managed_identity_failure(postgis_env):
    postgis_env.setenv("USE_MANAGED_IDENTITY", "true")

    class BrokenCredential:
        def get_token(self, scope):
            raise Exception("no identity endpoint")

    postgis_env.setattr(config, "DefaultAzureCredential", BrokenCredential)

    with pytest.raises(RuntimeError):
        config.get_postgres_connection_string()


def test_validate_configuration(postgis_env):
    assert config.validate_configuration() is True


def test_api_config_from_env(monkeypatch):
    monkeypatch.setenv("FEATURES_SCHEMA", "reference")
    monkeypatch.setenv("FEATURES_PRECISION", "4")
    monkeypatch.setenv("RESPONSES_INSERT_WORKERS", "16")

    assert FeaturesConfig().features_schema == "reference"
    assert FeaturesConfig().precision == 4
    assert ResponsesConfig().insert_workers == 16


def test_api_config_bounds(monkeypatch):
    monkeypatch.setenv("RESPONSES_INSERT_WORKERS", "0")
    with pytest.raises(ValidationError):
        ResponsesConfig()
