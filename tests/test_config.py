"""Tests for settings and logging configuration."""

import json
import logging

import pytest

import config
from config import Settings, load_settings
from logging_config import JSONFormatter, setup_logging


def test_defaults():
    settings = Settings()

    assert settings.port == 8000
    assert settings.issuer == "http://localhost:8000"
    assert settings.code_ttl == 600
    assert settings.access_token_ttl == 20 * 60
    assert settings.refresh_token_ttl == 30 * 24 * 60 * 60
    assert settings.clients_file is None
    assert settings.allow_insecure_http is False
    assert settings.secure_cookies is False
    assert settings.scopes_supported == []
    assert settings.log_format == "plain"


def test_values_are_parsed():
    settings = Settings({
        "ISSUER": "https://auth.example/",
        "CODE_TTL_SECONDS": "120",
        "ALLOW_INSECURE_HTTP": "yes",
        "SCOPES_SUPPORTED": "read  write",
        "LOG_LEVEL": "debug",
    })

    assert settings.issuer == "https://auth.example"
    assert settings.secure_cookies is True
    assert settings.code_ttl == 120
    assert settings.allow_insecure_http is True
    assert settings.scopes_supported == ["read", "write"]
    assert settings.log_level == "DEBUG"


def test_bad_integer_is_reported():
    with pytest.raises(ValueError, match="CODE_TTL_SECONDS"):
        Settings({"CODE_TTL_SECONDS": "ten"}).code_ttl


def test_secret_key_prefers_environment(tmp_path, monkeypatch):
    monkeypatch.setattr(config, "SECRET_FILE", tmp_path / "ticket_secret")

    assert Settings({"SECRET_KEY": "from-env"}).secret_key == "from-env"
    assert not (tmp_path / "ticket_secret").exists()


def test_secret_key_falls_back_to_file(tmp_path, monkeypatch):
    secret_file = tmp_path / "ticket_secret"
    monkeypatch.setattr(config, "SECRET_FILE", secret_file)

    first = Settings().secret_key
    second = Settings().secret_key

    assert first == second == secret_file.read_text()


def test_load_settings_reads_env_file(tmp_path, monkeypatch):
    for key in config.ENV_KEYS:
        # setenv first so monkeypatch restores the original state afterwards
        monkeypatch.setenv(key, "unset")
        monkeypatch.delenv(key)
    env_file = tmp_path / ".env"
    env_file.write_text("ISSUER=https://auth.example\nACCESS_TOKEN_TTL_SECONDS=60\n")

    settings = load_settings(env_file)

    assert settings.issuer == "https://auth.example"
    assert settings.access_token_ttl == 60


def test_json_formatter_extracts_tag():
    record = logging.LogRecord("oauth.grant", logging.INFO, __file__, 1, "[TOKEN] Tokens issued", None, None)

    entry = json.loads(JSONFormatter("test-service").format(record))

    assert entry["tag"] == "TOKEN"
    assert entry["message"] == "Tokens issued"
    assert entry["service"] == "test-service"
    assert entry["level"] == "INFO"


def test_setup_logging_installs_single_handler():
    root = setup_logging(level="WARNING", log_format="json")
    try:
        assert len(root.handlers) == 1
        assert isinstance(root.handlers[0].formatter, JSONFormatter)
        assert root.level == logging.WARNING
    finally:
        root.handlers.clear()
        root.setLevel(logging.WARNING)
