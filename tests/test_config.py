import pytest

from logvault_service.config import (  # type: ignore[import]
  DEFAULT_DATABASE_URL,
  DEFAULT_PORT,
  load_settings,
)
from logvault_service.errors import ConfigError  # type: ignore[import]

ENV_VARS = (
  "LOGVAULT_DATABASE_URL",
  "LOGVAULT_HOST",
  "LOGVAULT_PORT",
  "LOGVAULT_LOG_LEVEL",
  "LOGVAULT_TENANT_SECRETS",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
  for name in ENV_VARS:
    monkeypatch.delenv(name, raising=False)


def test_defaults_when_unset():
  settings = load_settings()
  assert settings.database_url == DEFAULT_DATABASE_URL
  assert settings.host == "0.0.0.0"
  assert settings.port == DEFAULT_PORT
  assert settings.log_level == "INFO"
  assert settings.tenant_secrets is None


def test_reads_environment(monkeypatch):
  monkeypatch.setenv("LOGVAULT_DATABASE_URL", "sqlite:///tmp/logs.db")
  monkeypatch.setenv("LOGVAULT_PORT", "9000")
  monkeypatch.setenv("LOGVAULT_LOG_LEVEL", "debug")
  settings = load_settings()
  assert settings.database_url == "sqlite:///tmp/logs.db"
  assert settings.port == 9000
  assert settings.log_level == "DEBUG"


@pytest.mark.parametrize("raw", ["not-a-port", "0", "70000"])
def test_invalid_port_falls_back(monkeypatch, raw):
  monkeypatch.setenv("LOGVAULT_PORT", raw)
  assert load_settings().port == DEFAULT_PORT


def test_tenant_registry_from_environment(monkeypatch):
  monkeypatch.setenv("LOGVAULT_TENANT_SECRETS", '{"cont123":"secret123","cont456":"secret456"}')
  registry = load_settings().tenant_registry()
  assert registry.lookup("cont456") == "secret456"


@pytest.mark.parametrize("raw", [None, "", "{}", "not json"])
def test_tenant_registry_requires_valid_secrets(monkeypatch, raw):
  if raw is not None:
    monkeypatch.setenv("LOGVAULT_TENANT_SECRETS", raw)
  with pytest.raises(ConfigError):
    load_settings().tenant_registry()
