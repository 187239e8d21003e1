# config.py
"""LeadForge configuration module.

Settings are loaded from a .env file (if present) and then from environment
variables. Credentials are never hardcoded; the LLM gateway key is optional
because every build can fall back to category templates.

Usage:
    >>> from leadforge.config import config
    >>> config.BACKEND_API_URL
    'http://localhost:8000/api/v1'
"""

import logging
import os
from typing import Optional

from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()


class ConfigError(Exception):
    """Raised when configuration validation fails."""

    pass


class LeadForgeConfig:
    """Configuration class that loads LeadForge settings from environment variables.

    Attributes:
        OPENROUTER_API_KEY: Bearer credential for the LLM gateway.
        OPENROUTER_BASE_URL: Base URL of the OpenAI-compatible gateway.
        BACKEND_API_URL: Base URL of the backend REST API.
        STORAGE_DIR: Directory holding the durable key-value store.
        USER_ID: Owner of the per-user project store.
    """

    def __init__(self) -> None:
        """Initialize the configuration from environment variables."""
        self.logger = logging.getLogger(__name__)

        # Application environment
        self.APP_ENV = self._get_required("APP_ENV", "dev")
        self.DEBUG = self._get_bool("DEBUG")
        self.LOG_LEVEL = self._get_optional("LOG_LEVEL", "INFO")

        # LLM gateway (OpenRouter)
        self.OPENROUTER_API_KEY = self._get_optional("OPENROUTER_API_KEY")
        self.OPENROUTER_BASE_URL = self._get_optional(
            "OPENROUTER_BASE_URL", "https://openrouter.ai/api/v1"
        )
        self.OPENROUTER_REFERER = self._get_optional(
            "OPENROUTER_REFERER", "http://localhost:3000"
        )
        self.OPENROUTER_SITE_NAME = self._get_optional(
            "OPENROUTER_SITE_NAME", "LeadForge"
        )
        self.OPENROUTER_FALLBACK_MODEL = self._get_optional(
            "OPENROUTER_FALLBACK_MODEL", "google/gemini-2.5-flash"
        )

        # Backend REST API
        self.BACKEND_API_URL = self._get_optional(
            "BACKEND_API_URL", "http://localhost:8000/api/v1"
        )
        self.REQUEST_TIMEOUT_SECONDS = int(
            self._get_optional("REQUEST_TIMEOUT_SECONDS", "30")
        )
        self.GENERATION_TIMEOUT_SECONDS = int(
            self._get_optional("GENERATION_TIMEOUT_SECONDS", "120")
        )

        # Retry helper
        self.RETRY_MAX_ATTEMPTS = int(self._get_optional("RETRY_MAX_ATTEMPTS", "3"))
        self.RETRY_DELAY_SECONDS = float(
            self._get_optional("RETRY_DELAY_SECONDS", "1.0")
        )

        # Local persisted state
        self.STORAGE_DIR = self._get_optional("STORAGE_DIR", ".leadforge")
        self.USER_ID = self._get_optional("USER_ID", "guest")

        # Deployment providers
        self.DEPLOY_DELAY_SECONDS = float(
            self._get_optional("DEPLOY_DELAY_SECONDS", "2.0")
        )
        self.DEPLOY_OUTPUT_DIR = self._get_optional("DEPLOY_OUTPUT_DIR", "deployments")

    def _get_required(self, name: str, default: Optional[str] = None) -> str:
        """Get a required configuration value from environment variables.

        Args:
            name: The name of the environment variable.
            default: Optional default value if not found.

        Returns:
            The value of the environment variable or default if provided.

        Raises:
            ConfigError: If the variable is not found and no default is provided.
        """
        if name in os.environ:
            return os.environ[name]
        if default is not None:
            self.logger.debug(
                "Environment variable %s not found, using default value", name
            )
            return default
        raise ConfigError(
            f"Required environment variable {name} not found and no default provided"
        )

    def _get_optional(self, name: str, default: str = "") -> str:
        """Get an optional configuration value from environment variables."""
        if name in os.environ:
            return os.environ[name]
        return default

    def _get_bool(self, name: str) -> bool:
        """Return True if the variable exists and is set to 'true' or '1'."""
        return name in os.environ and os.environ[name].lower() in ["true", "1"]

    def get_log_level(self) -> int:
        """Get the numeric logging level from LOG_LEVEL.

        Returns:
            A logging level constant, DEBUG when DEBUG is set.
        """
        if self.DEBUG:
            return logging.DEBUG
        return getattr(logging, self.LOG_LEVEL.upper(), logging.INFO)

    def validate_for_generation(self) -> None:
        """Validate configuration required for LLM gateway calls.

        Raises:
            ConfigError: If the gateway credential is missing.
        """
        if not self.OPENROUTER_API_KEY:
            raise ConfigError("OPENROUTER_API_KEY is required for AI generation")

    def validate_for_backend(self) -> None:
        """Validate configuration required for backend REST calls.

        Raises:
            ConfigError: If the backend URL is empty.
        """
        if not self.BACKEND_API_URL:
            raise ConfigError("BACKEND_API_URL is required for backend requests")


# Create a global instance of LeadForgeConfig
config = LeadForgeConfig()
