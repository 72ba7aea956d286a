"""Unit tests for configuration."""
import pytest
from pydantic import ValidationError as PydanticValidationError
from conftest import make_config
from mindbridge.core.config import get_config


class TestConfig:
    """Test Config validation."""

    def test_api_url_follows_environment(self):
        assert make_config().airwallex_api_url == "https://api-demo.airwallex.com"
        assert make_config(airwallex_env="prod").airwallex_api_url == "https://api.airwallex.com"

    def test_explicit_api_url_wins(self):
        config = make_config(airwallex_api_url="http://localhost:8080")

        assert config.airwallex_api_url == "http://localhost:8080"

    def test_unknown_environment_rejected(self):
        with pytest.raises(PydanticValidationError):
            make_config(airwallex_env="live")

    def test_sandbox_mode_forbidden_against_prod(self):
        with pytest.raises(PydanticValidationError):
            make_config(airwallex_env="prod", sandbox_mode=True)

    def test_comma_separated_lists(self):
        config = make_config(api_keys="key-1, key-2,", cors_origins="https://a.example,https://b.example")

        assert config.api_keys == ["key-1", "key-2"]
        assert config.cors_origins == ["https://a.example", "https://b.example"]

    def test_currency_uppercased(self):
        assert make_config(default_currency="hkd").default_currency == "HKD"

    def test_credentials_are_required(self):
        with pytest.raises(PydanticValidationError):
            make_config(airwallex_api_key="short")

    def test_get_config_reads_environment(self, monkeypatch):
        monkeypatch.setenv("POLL_MAX_ATTEMPTS", "4")
        monkeypatch.setenv("SANDBOX_MODE", "true")
        get_config.cache_clear()

        config = get_config()

        assert config.poll_max_attempts == 4
        assert config.sandbox_mode is True
        assert config.testing is True
