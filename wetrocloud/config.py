"""Configuration management for the WetroCloud client."""

import os
from typing import Any
import logging

from pydantic import BaseModel, Field, field_validator, ConfigDict, ValidationError as PydanticValidationError
from dotenv import load_dotenv
from .errors import ConfigurationError


logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.wetrocloud.com"
DEFAULT_API_VERSION = "v1"
DEFAULT_REFERRER = "python-sdk"


def _format_validation_error(error: PydanticValidationError) -> str:
    error_messages = []
    for item in error.errors():
        field = ".".join(str(loc) for loc in item["loc"])
        error_messages.append(f"{field}: {item['msg']}")
    return f"Configuration validation failed: {'; '.join(error_messages)}"


class WetroCloudConfig(BaseModel):
    """Configuration model for the WetroCloud client using Pydantic validation."""

    api_key: str = Field(..., description="WetroCloud API secret key")
    base_url: str = Field(DEFAULT_BASE_URL, description="WetroCloud API scheme and host")
    api_version: str = Field(DEFAULT_API_VERSION, description="API version path segment")
    referrer: str = Field(DEFAULT_REFERRER, description="Referrer marker sent with every request")

    model_config = ConfigDict(
        validate_assignment=True,
        extra="forbid"
    )

    @field_validator('base_url')
    @classmethod
    def validate_base_url(cls, v: str) -> str:
        """Validate base URL format and normalize it.

        Args:
            v: Base URL value

        Returns:
            Normalized base URL

        Raises:
            ValueError: If URL format is invalid
        """
        if not v:
            raise ValueError("base_url cannot be empty")

        if not (v.startswith("http://") or v.startswith("https://")):
            raise ValueError("base_url must start with http:// or https://")

        return v.rstrip("/")

    @field_validator('api_key')
    @classmethod
    def validate_api_key(cls, v: str) -> str:
        """Validate API key is not empty."""
        if not v or not v.strip():
            raise ValueError("api_key cannot be empty")

        return v.strip()

    @field_validator('api_version')
    @classmethod
    def validate_api_version(cls, v: str) -> str:
        v = v.strip().strip("/")
        if not v:
            raise ValueError("api_version cannot be empty")
        return v

    @property
    def api_url(self) -> str:
        """Prefix every operation path is appended to."""
        return f"{self.base_url}/{self.api_version}"

    @classmethod
    def build(cls, **config_data: Any) -> "WetroCloudConfig":
        """Create a configuration, reporting problems as ``ConfigurationError``.

        Args:
            **config_data: Field values; ``None`` values fall back to defaults

        Returns:
            WetroCloudConfig instance

        Raises:
            ConfigurationError: If required configuration is missing or invalid
        """
        config_data = {key: value for key, value in config_data.items() if value is not None}

        if not config_data.get("api_key"):
            raise ConfigurationError("api_key is required", config_key="api_key")

        try:
            return cls(**config_data)
        except PydanticValidationError as e:
            raise ConfigurationError(_format_validation_error(e))

    @classmethod
    def from_env(cls) -> "WetroCloudConfig":
        """Load configuration from environment variables.

        Returns:
            WetroCloudConfig instance with values from environment

        Raises:
            ConfigurationError: If required configuration is missing or invalid
        """
        # Load environment variables from .env file if present
        load_dotenv()

        api_key = os.getenv("WETROCLOUD_API_KEY")
        if not api_key:
            raise ConfigurationError(
                "WETROCLOUD_API_KEY environment variable is required",
                config_key="api_key"
            )

        config = cls.build(
            api_key=api_key,
            base_url=os.getenv("WETROCLOUD_API_URL"),
            api_version=os.getenv("WETROCLOUD_API_VERSION"),
            referrer=os.getenv("WETROCLOUD_REFERRER"),
        )
        logger.info(f"Configuration loaded: api_url={config.api_url}")
        return config
