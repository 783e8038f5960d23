"""
Test configuration loading and validation
"""

import logging

import pytest
from pydantic import ValidationError

from chameleon_proxy.config_loader import get_config, get_config_from_env_vars, set_config
from chameleon_proxy.models import Config, ProxyMode, normalize_backend_url

logger = logging.getLogger("tests")

ENV_VARS = ["MODE", "BACKEND_URL", "PORT", "STORAGE_PATH", "RECORDING_FORMAT", "BACKEND_TIMEOUT", "LOG_LEVEL"]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


def test_defaults():
    config = Config()
    assert config.mode == ProxyMode.RECORD
    assert config.backend_url == "http://localhost:8080"
    assert config.port == 3000
    assert config.storage_path == "./recordings"
    assert config.recording_format == "json"


def test_values_from_environment(monkeypatch):
    monkeypatch.setenv("MODE", "Replay")
    monkeypatch.setenv("BACKEND_URL", "api.internal:9000")
    monkeypatch.setenv("PORT", "4000")
    monkeypatch.setenv("STORAGE_PATH", "/tmp/recordings")
    monkeypatch.setenv("RECORDING_FORMAT", "yaml")

    config = Config()
    assert config.mode == ProxyMode.REPLAY
    assert config.backend_url == "http://api.internal:9000"
    assert config.port == 4000
    assert config.storage_path == "/tmp/recordings"
    assert config.recording_format == "yaml"


@pytest.mark.parametrize(
    "env_var, value",
    [
        ("MODE", "generate"),
        ("PORT", "0"),
        ("PORT", "65536"),
        ("PORT", "not-a-number"),
        ("BACKEND_URL", "   "),
        ("STORAGE_PATH", ""),
        ("RECORDING_FORMAT", "xml"),
    ],
)
def test_invalid_values_fail_at_startup(monkeypatch, env_var: str, value: str):
    monkeypatch.setenv(env_var, value)
    with pytest.raises(ValidationError):
        Config()


def test_command_line_takes_precedence(monkeypatch):
    monkeypatch.setenv("PORT", "4000")
    monkeypatch.setenv("BACKEND_URL", "http://from-env:8080")

    config = get_config_from_env_vars(logger, port=5000, backend="from-cli:9090")
    assert config.port == 5000
    assert config.backend_url == "http://from-cli:9090"


def test_environment_used_without_command_line(monkeypatch):
    monkeypatch.setenv("PORT", "4000")

    config = get_config_from_env_vars(logger)
    assert config.port == 4000


@pytest.mark.parametrize(
    "backend, expected",
    [
        ("localhost:8080", "http://localhost:8080"),
        ("http://localhost:8080", "http://localhost:8080"),
        ("https://example.com", "https://example.com"),
        ("  example.com  ", "http://example.com"),
        ("", ""),
    ],
)
def test_normalize_backend_url(backend: str, expected: str):
    assert normalize_backend_url(backend) == expected


def test_set_config():
    config = Config(MODE="passthrough")
    set_config(config)
    assert get_config() is config
