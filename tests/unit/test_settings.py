"""Tests for configuration management."""

import pytest
import yaml
from pydantic import ValidationError

from binance_trade_tail.clients.binance_ws import BINANCE_STREAM_URL
from binance_trade_tail.config.settings import (
    StreamConfig,
    TailerSettings,
    load_settings,
    expand_env_vars,
)

pytestmark = pytest.mark.unit


class TestTailerSettings:
    """Test TailerSettings defaults and validation."""

    def test_default_settings(self):
        settings = TailerSettings()

        assert settings.stream.url == BINANCE_STREAM_URL
        assert settings.stream.channels == []
        assert settings.stream.normalize_timestamps is False
        assert settings.stream.batch_size == 32
        assert settings.stream.request_id == 1
        assert settings.stream.keepalive_interval_seconds == 60.0
        assert settings.stream.on_decode_error == "skip"
        assert settings.rate_limit.max_permits == 5
        assert settings.rate_limit.window_seconds == 1.0
        assert settings.logging.output == "stderr"

    @pytest.mark.parametrize("field,value", [
        ("batch_size", 0),
        ("keepalive_interval_seconds", 0),
        ("open_timeout_seconds", -1),
        ("on_decode_error", "ignore"),
    ])
    def test_stream_validation(self, field, value):
        with pytest.raises(ValidationError):
            StreamConfig(**{field: value})

    def test_rate_limit_validation(self):
        with pytest.raises(ValidationError):
            TailerSettings(rate_limit={'max_permits': 0})
        with pytest.raises(ValidationError):
            TailerSettings(rate_limit={'window_seconds': 0})

    def test_logging_validation(self):
        settings = TailerSettings(logging={'level': 'debug', 'format': 'JSON'})

        assert settings.logging.level == "DEBUG"
        assert settings.logging.format == "json"

        with pytest.raises(ValidationError):
            TailerSettings(logging={'level': 'loud'})

    def test_environment_override(self, monkeypatch):
        monkeypatch.setenv("BINANCE_TAIL_STREAM__NORMALIZE_TIMESTAMPS", "true")

        settings = TailerSettings()

        assert settings.stream.normalize_timestamps is True
        assert settings.stream.batch_size == 32


class TestExpandEnvVars:

    def test_required_and_default(self, monkeypatch):
        monkeypatch.setenv("TAIL_HOST", "example.test")
        monkeypatch.delenv("TAIL_PORT", raising=False)

        result = expand_env_vars({'url': ['wss://${TAIL_HOST}:${TAIL_PORT:-9443}/ws']})

        assert result == {'url': ['wss://example.test:9443/ws']}

    def test_missing_required(self, monkeypatch):
        monkeypatch.delenv("TAIL_MISSING", raising=False)

        with pytest.raises(ValueError, match="TAIL_MISSING"):
            expand_env_vars("${TAIL_MISSING}")

    def test_non_strings_untouched(self):
        assert expand_env_vars({'n': 5, 'flag': True}) == {'n': 5, 'flag': True}

    def test_empty_value_takes_fallback(self, monkeypatch):
        monkeypatch.setenv("TAIL_LEVEL", "")

        assert expand_env_vars("${TAIL_LEVEL:-INFO}") == "INFO"
        assert expand_env_vars("${TAIL_LEVEL}") == ""

    def test_escaped_reference_kept_literal(self, monkeypatch):
        monkeypatch.setenv("TAIL_HOST", "example.test")

        assert expand_env_vars("$${TAIL_HOST} ${TAIL_HOST}") == "${TAIL_HOST} example.test"


class TestLoadSettings:

    def test_load_from_yaml(self, tmp_path, monkeypatch):
        monkeypatch.setenv("TAIL_LEVEL", "WARNING")
        config_file = tmp_path / "tail.yaml"
        config_file.write_text(yaml.safe_dump({
            'stream': {
                'channels': ['btcusdt@trade', 'ethusdt@aggTrade'],
                'normalize_timestamps': True,
            },
            'rate_limit': {'max_permits': 3},
            'logging': {'level': '${TAIL_LEVEL}'},
        }))

        settings = load_settings(str(config_file))

        assert settings.stream.channels == ['btcusdt@trade', 'ethusdt@aggTrade']
        assert settings.stream.normalize_timestamps is True
        assert settings.rate_limit.max_permits == 3
        assert settings.rate_limit.window_seconds == 1.0
        assert settings.logging.level == "WARNING"

    def test_empty_yaml(self, tmp_path):
        config_file = tmp_path / "empty.yaml"
        config_file.write_text("")

        assert load_settings(str(config_file)).stream.channels == []

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_settings(str(tmp_path / "absent.yaml"))

    def test_no_file(self):
        assert isinstance(load_settings(None), TailerSettings)
