"""
Transport configuration.

Uses Pydantic Settings for environment variable handling and validation,
with an optional YAML file providing defaults underneath the environment.
"""

import os
from pathlib import Path
from typing import Any, Dict, Optional, Union
from urllib.parse import urlparse

import yaml
from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .core.exceptions import ConfigurationError

ENV_PREFIX = "OPENLOG_"
BATCH_INGEST_PATH = "/api/ingest/batch"
HEALTH_PATH = "/api/ingest/health"

DEFAULT_CONFIG_PATHS = ("openlog.yaml", "openlog.yml")


def load_config_file(config_path: Optional[Union[str, Path]] = None) -> Dict[str, Any]:
    """
    Load the ``transport`` section of a YAML config file.

    Without an explicit path, looks for openlog.yaml / openlog.yml in the
    current directory. A missing file yields an empty dict.
    """
    if config_path is None:
        for candidate in DEFAULT_CONFIG_PATHS:
            if os.path.exists(candidate):
                config_path = candidate
                break
        else:
            return {}

    path = Path(config_path)
    if not path.exists():
        return {}

    with open(path, "r") as f:
        config_data = yaml.safe_load(f) or {}

    if not isinstance(config_data, dict):
        raise ConfigurationError(
            f"Config file {path} must contain a mapping",
            details={"path": str(path)},
        )

    section = config_data.get("transport", {}) or {}
    if not isinstance(section, dict):
        raise ConfigurationError(
            f"'transport' section in {path} must be a mapping",
            details={"path": str(path)},
        )
    return section


class TransportConfig(BaseSettings):
    """
    Immutable settings for one LogTransport instance.

    Construction raises ConfigurationError (never a raw pydantic
    ValidationError) so callers have a single failure type to handle.
    """

    endpoint_url: str = Field(description="Base URL of the ingestion server")
    api_key: str = Field(description="Project API key sent as x-api-key")
    service: Optional[str] = Field(default=None, description="Default service for entries lacking one")
    environment: Optional[str] = Field(default=None, description="Default environment for entries lacking one")

    batch_size: int = Field(default=10, gt=0, description="Buffer length that triggers an immediate flush")
    flush_interval_ms: int = Field(default=5000, gt=0, description="Periodic flush interval in milliseconds")
    retries: int = Field(default=3, gt=0, description="Maximum delivery attempts per batch")
    debug: bool = Field(default=False, description="Emit verbose diagnostics")

    timeout_seconds: float = Field(default=10.0, gt=0, description="Per-request HTTP timeout")
    max_buffer_size: Optional[int] = Field(
        default=None,
        gt=0,
        description="Optional cap on buffered entries; oldest are shed beyond it",
    )

    model_config = SettingsConfigDict(
        env_prefix=ENV_PREFIX,
        case_sensitive=False,
        frozen=True,
        extra="ignore",
    )

    def __init__(self, **values: Any) -> None:
        try:
            super().__init__(**values)
        except ValidationError as exc:
            errors = exc.errors(include_url=False, include_input=False)
            fields = sorted({".".join(str(part) for part in err["loc"]) for err in errors})
            raise ConfigurationError(
                f"Invalid transport configuration: {', '.join(fields)}",
                details={"errors": errors},
            ) from exc

    @field_validator("endpoint_url")
    @classmethod
    def validate_endpoint_url(cls, v: str) -> str:
        """Require an absolute http(s) URL and strip the trailing slash."""
        v = v.strip()
        if not v:
            raise ValueError("endpoint_url is required")

        parsed = urlparse(v)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ValueError(f"endpoint_url must be an http(s) URL, got '{v}'")

        return v.rstrip("/")

    @field_validator("api_key")
    @classmethod
    def validate_api_key(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("api_key is required")
        return v

    @property
    def batch_url(self) -> str:
        """Full batch ingestion URL."""
        return f"{self.endpoint_url}{BATCH_INGEST_PATH}"

    @property
    def health_url(self) -> str:
        return f"{self.endpoint_url}{HEALTH_PATH}"

    @property
    def flush_interval_seconds(self) -> float:
        return self.flush_interval_ms / 1000.0


def get_config(config_path: Optional[Union[str, Path]] = None, **overrides: Any) -> TransportConfig:
    """
    Build a TransportConfig from file, environment and explicit overrides.

    Precedence (lowest to highest): field defaults, YAML file, OPENLOG_*
    environment variables, keyword overrides. Overrides set to None are
    ignored so CLI flags left unset fall through.
    """
    file_values = load_config_file(config_path)

    values: Dict[str, Any] = {
        key: value
        for key, value in file_values.items()
        if f"{ENV_PREFIX}{key}".upper() not in os.environ
    }
    values.update({key: value for key, value in overrides.items() if value is not None})

    return TransportConfig(**values)
