"""Pydantic schema for configuration validation.

All config values are validated at startup. Typos and invalid values
fail fast with clear error messages.

Usage:
    from config_schema import load_validated_config, AppConfig
    config = load_validated_config("config/config.yaml")
    # config is now a validated AppConfig instance
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator


_ADDRESS_RE = re.compile(r"^0x[0-9a-fA-F]{40}$")


# =============================================================================
# BASE MODEL WITH STRICT VALIDATION
# =============================================================================

class StrictModel(BaseModel):
    """Base model that rejects unknown fields (catches typos)."""

    model_config = ConfigDict(extra="forbid")


# =============================================================================
# FACTORY MODEL
# =============================================================================

class FactoryConfig(StrictModel):
    """Factory identity and artifact code."""

    address: str = Field(
        default="0x00000000000000000000000000000000000000fa",
        description="Factory address; the namespace every identifier is derived under"
    )
    code_path: str | None = Field(
        default=None,
        description="Artifact code file (raw bytes or compiler .bin hex text)"
    )

    @field_validator("address")
    @classmethod
    def address_is_hex(cls, v: str) -> str:
        """Factory address must be a 0x-prefixed 20-byte hex string."""
        if not _ADDRESS_RE.match(v):
            raise ValueError(f"address must be a 0x-prefixed 20-byte hex string, got {v!r}")
        return v.lower()


# =============================================================================
# AUTHORIZATION MODEL
# =============================================================================

class AuthorizationConfig(StrictModel):
    """Creation gate configuration."""

    threshold: int = Field(
        default=80_000 * 10**18,
        ge=0,
        description="Minimum delegated power at the predicted identifier"
    )
    delegation_type: Literal["voting", "proposition"] = Field(
        default="proposition",
        description="Which delegated power counts toward the threshold"
    )


# =============================================================================
# LOGGING MODEL
# =============================================================================

class LoggingConfig(StrictModel):
    """Logging configuration."""

    output_file: str = Field(
        default="factory.jsonl",
        description="JSONL file for creation events"
    )
    default_recent: int = Field(
        default=50,
        gt=0,
        description="Default number of recent events to return"
    )
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Python logging level for diagnostics"
    )


# =============================================================================
# ROOT CONFIG MODEL
# =============================================================================

class AppConfig(StrictModel):
    """Root configuration model for the entire application.

    All fields have sensible defaults, so an empty config file is valid.
    """

    factory: FactoryConfig = Field(default_factory=FactoryConfig)
    authorization: AuthorizationConfig = Field(default_factory=AuthorizationConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


# =============================================================================
# LOADING FUNCTIONS
# =============================================================================

def load_validated_config(config_path: str | Path = "config/config.yaml") -> AppConfig:
    """Load and validate configuration from YAML file.

    Args:
        config_path: Path to config YAML file.

    Returns:
        Validated AppConfig instance.

    Raises:
        FileNotFoundError: If config file doesn't exist.
        pydantic.ValidationError: If config is invalid (with detailed error message).
    """
    path = Path(config_path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    with open(path) as f:
        raw_config = yaml.safe_load(f) or {}

    return AppConfig.model_validate(raw_config)


def validate_config_dict(config_dict: dict[str, Any]) -> AppConfig:
    """Validate a configuration dictionary.

    Args:
        config_dict: Configuration as a dictionary.

    Returns:
        Validated AppConfig instance.

    Raises:
        pydantic.ValidationError: If config is invalid.
    """
    return AppConfig.model_validate(config_dict)


# =============================================================================
# EXPORTS
# =============================================================================

__all__ = [
    # Root config
    "AppConfig",
    # Sub-configs
    "FactoryConfig",
    "AuthorizationConfig",
    "LoggingConfig",
    # Functions
    "load_validated_config",
    "validate_config_dict",
]
