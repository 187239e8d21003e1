# src/leadforge/tests/test_config.py
"""
Unit tests for LeadForge configuration module.

Tests cover:
- Defaults when nothing is set in the environment
- Overrides from environment variables
- Boolean and numeric parsing
- Log level resolution
- Validation helpers for generation and backend calls
"""
import logging
import os
import pytest
from unittest.mock import patch

from leadforge.config import ConfigError, LeadForgeConfig


MOCK_ENV_VARS = {
    "APP_ENV": "prod",
    "OPENROUTER_API_KEY": "sk-or-mock-key",
    "OPENROUTER_BASE_URL": "https://gateway.example.com/api/v1",
    "BACKEND_API_URL": "https://backend.example.com/api/v1",
    "REQUEST_TIMEOUT_SECONDS": "12",
    "GENERATION_TIMEOUT_SECONDS": "90",
    "RETRY_MAX_ATTEMPTS": "5",
    "RETRY_DELAY_SECONDS": "0.5",
    "STORAGE_DIR": "/tmp/leadforge-test",
    "USER_ID": "user-42",
    "DEPLOY_DELAY_SECONDS": "0",
}


class TestConfigDefaults:
    """Tests for default configuration values."""

    @pytest.mark.unit
    def test_defaults_without_environment(self):
        """Test that every setting has a usable default."""
        with patch.dict(os.environ, {}, clear=True):
            config = LeadForgeConfig()

            assert config.APP_ENV == "dev"
            assert config.DEBUG is False
            assert config.OPENROUTER_API_KEY == ""
            assert config.OPENROUTER_BASE_URL == "https://openrouter.ai/api/v1"
            assert config.OPENROUTER_FALLBACK_MODEL == "google/gemini-2.5-flash"
            assert config.BACKEND_API_URL == "http://localhost:8000/api/v1"
            assert config.REQUEST_TIMEOUT_SECONDS == 30
            assert config.GENERATION_TIMEOUT_SECONDS == 120
            assert config.RETRY_MAX_ATTEMPTS == 3
            assert config.RETRY_DELAY_SECONDS == 1.0
            assert config.STORAGE_DIR == ".leadforge"
            assert config.USER_ID == "guest"
            assert config.DEPLOY_DELAY_SECONDS == 2.0
            assert config.DEPLOY_OUTPUT_DIR == "deployments"


class TestConfigOverrides:
    """Tests for values loaded from the environment."""

    @pytest.mark.unit
    def test_values_loaded_from_env(self):
        """Test that environment variables override defaults."""
        with patch.dict(os.environ, MOCK_ENV_VARS, clear=True):
            config = LeadForgeConfig()

            assert config.APP_ENV == "prod"
            assert config.OPENROUTER_API_KEY == "sk-or-mock-key"
            assert config.OPENROUTER_BASE_URL == MOCK_ENV_VARS["OPENROUTER_BASE_URL"]
            assert config.BACKEND_API_URL == MOCK_ENV_VARS["BACKEND_API_URL"]
            assert config.STORAGE_DIR == "/tmp/leadforge-test"
            assert config.USER_ID == "user-42"

    @pytest.mark.unit
    def test_numeric_values_parsed(self):
        """Test that numeric settings are converted to int/float."""
        with patch.dict(os.environ, MOCK_ENV_VARS, clear=True):
            config = LeadForgeConfig()

            assert config.REQUEST_TIMEOUT_SECONDS == 12
            assert config.GENERATION_TIMEOUT_SECONDS == 90
            assert config.RETRY_MAX_ATTEMPTS == 5
            assert config.RETRY_DELAY_SECONDS == 0.5
            assert config.DEPLOY_DELAY_SECONDS == 0.0

    @pytest.mark.unit
    @pytest.mark.parametrize("value,expected", [
        ("true", True),
        ("TRUE", True),
        ("1", True),
        ("false", False),
        ("0", False),
        ("yes", False),
    ])
    def test_debug_flag_parsing(self, value, expected):
        """Test that DEBUG accepts only 'true' and '1'."""
        with patch.dict(os.environ, {"DEBUG": value}, clear=True):
            config = LeadForgeConfig()
            assert config.DEBUG is expected


class TestLogLevel:
    """Tests for log level resolution."""

    @pytest.mark.unit
    def test_log_level_from_env(self):
        """Test that LOG_LEVEL maps to a logging constant."""
        with patch.dict(os.environ, {"LOG_LEVEL": "warning"}, clear=True):
            assert LeadForgeConfig().get_log_level() == logging.WARNING

    @pytest.mark.unit
    def test_debug_overrides_log_level(self):
        """Test that DEBUG forces the DEBUG level."""
        with patch.dict(os.environ, {"LOG_LEVEL": "ERROR", "DEBUG": "1"}, clear=True):
            assert LeadForgeConfig().get_log_level() == logging.DEBUG

    @pytest.mark.unit
    def test_unknown_log_level_falls_back_to_info(self):
        """Test that an unknown level name resolves to INFO."""
        with patch.dict(os.environ, {"LOG_LEVEL": "chatty"}, clear=True):
            assert LeadForgeConfig().get_log_level() == logging.INFO


class TestValidation:
    """Tests for the validation helpers."""

    @pytest.mark.unit
    def test_generation_requires_api_key(self):
        """Test that validate_for_generation fails without a gateway key."""
        with patch.dict(os.environ, {}, clear=True):
            config = LeadForgeConfig()
            with pytest.raises(ConfigError) as exc_info:
                config.validate_for_generation()
            assert "OPENROUTER_API_KEY" in str(exc_info.value)

    @pytest.mark.unit
    def test_generation_passes_with_api_key(self):
        """Test that validate_for_generation passes when the key is set."""
        with patch.dict(os.environ, MOCK_ENV_VARS, clear=True):
            LeadForgeConfig().validate_for_generation()

    @pytest.mark.unit
    def test_backend_requires_url(self):
        """Test that an empty backend URL fails validation."""
        with patch.dict(os.environ, {"BACKEND_API_URL": ""}, clear=True):
            config = LeadForgeConfig()
            with pytest.raises(ConfigError):
                config.validate_for_backend()
