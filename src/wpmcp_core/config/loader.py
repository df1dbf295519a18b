"""wpmcp configuration loader."""

import dataclasses
import logging
import os
import re
import typing
from enum import Enum
from pathlib import Path
from typing import Any

import yaml

from wpmcp_core.errors import create_error

from .models import TrustLayerConfig

logger = logging.getLogger(__name__)

CONFIG_PATH_ENV = "WPMCP_CONFIG_PATH"
DEFAULT_CONFIG_FILE = "wpmcp-config.yaml"

# Secrets that must be present before the trust layer can start
REQUIRED_SECRETS = (
    ("crypto", "master_key"),
    ("tokens", "secret"),
)


def resolve_env_vars(value: str) -> str:
    """Resolve environment variable references in string.

    Supports:
    - ${VAR} - Required, error if not set
    - ${VAR:-default} - With default value
    - ${VAR:?error message} - Required with custom error

    Raises:
        WpmcpError: If required var not set
    """
    pattern = r"\$\{([^}:]+)(?::([?-])([^}]*))?\}"

    def replacer(match: re.Match[str]) -> str:
        var_name = match.group(1)
        operator = match.group(2)  # '-' or '?' or None
        operand = match.group(3)  # default value or error message

        env_value = os.environ.get(var_name)

        if env_value is not None:
            return env_value

        if operator == "-":
            return operand or ""
        elif operator == "?":
            error_msg = operand or f"Required environment variable {var_name} not set"
            raise create_error("CONFIG_INVALID", detail=error_msg)
        else:
            raise create_error(
                "CONFIG_INVALID",
                detail=f"Required environment variable {var_name} not set",
            )

    return re.sub(pattern, replacer, value)


def _resolve_env_vars_recursive(data: Any) -> Any:
    """Recursively resolve env vars in data structure."""
    if isinstance(data, dict):
        return {k: _resolve_env_vars_recursive(v) for k, v in data.items()}
    elif isinstance(data, list):
        return [_resolve_env_vars_recursive(item) for item in data]
    elif isinstance(data, str):
        return resolve_env_vars(data)
    else:
        return data


def _build_dataclass(cls: type, data: dict[str, Any], path: str) -> Any:
    """Build a config dataclass from a dict, converting enums and nested sections."""
    hints = typing.get_type_hints(cls)
    kwargs: dict[str, Any] = {}

    for f in dataclasses.fields(cls):
        if f.name not in data:
            continue
        value = data[f.name]
        field_type = hints[f.name]

        if dataclasses.is_dataclass(field_type):
            if not isinstance(value, dict):
                raise create_error(
                    "CONFIG_INVALID", detail=f"{path}{f.name} must be a dictionary"
                )
            value = _build_dataclass(field_type, value, f"{path}{f.name}.")
        elif (
            isinstance(field_type, type)
            and typing.get_origin(field_type) is None
            and issubclass(field_type, Enum)
        ):
            try:
                value = field_type(value)
            except ValueError as e:
                allowed = ", ".join(m.value for m in field_type)
                raise create_error(
                    "CONFIG_INVALID",
                    detail=f"{path}{f.name} must be one of: {allowed}",
                ) from e

        kwargs[f.name] = value

    unknown = set(data) - {f.name for f in dataclasses.fields(cls)}
    for key in sorted(unknown):
        logger.warning(f"Unknown configuration key: {path}{key}")

    return cls(**kwargs)


class ConfigLoader:
    """Load and validate wpmcp configuration."""

    def __init__(self) -> None:
        """Initialize config loader."""
        self._config: TrustLayerConfig | None = None
        self._config_path: Path | None = None

    def load(self, path: str | Path | None = None, use_defaults: bool = True) -> TrustLayerConfig:
        """Load configuration from file.

        Resolution order if path not specified:
        1. WPMCP_CONFIG_PATH environment variable
        2. ./wpmcp-config.yaml
        3. If use_defaults=True and no file found, use default configuration

        Raises:
            WpmcpError: If file not found (when use_defaults=False) or invalid
        """
        if path is None:
            path = self._resolve_config_path()

        config_path = Path(path)

        if not config_path.exists():
            if use_defaults:
                logger.info("No config file found, using default configuration")
                return self.load_from_dict({})
            raise create_error(
                "CONFIG_INVALID",
                detail=f"Configuration file not found: {config_path}",
            )

        try:
            with config_path.open() as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise create_error(
                "CONFIG_INVALID",
                detail=f"Invalid YAML in config file: {e}",
            ) from e

        data = _resolve_env_vars_recursive(data)

        return self.load_from_dict(data, config_path)

    def load_from_dict(
        self, data: dict[str, Any], config_path: Path | None = None
    ) -> TrustLayerConfig:
        """Load configuration from dictionary.

        Raises:
            WpmcpError: If configuration is invalid
        """
        if not isinstance(data, dict):
            raise create_error("CONFIG_INVALID", detail="Configuration root must be a dictionary")

        config = _build_dataclass(TrustLayerConfig, data, "")

        self._config = config
        self._config_path = config_path
        logger.info("Configuration loaded successfully")
        return config

    def get(self) -> TrustLayerConfig:
        """Get current configuration.

        Raises:
            WpmcpError: If configuration not loaded
        """
        if self._config is None:
            raise create_error("CONFIG_INVALID", detail="Configuration not loaded")
        return self._config

    def _resolve_config_path(self) -> Path:
        env_path = os.environ.get(CONFIG_PATH_ENV)
        if env_path:
            return Path(env_path)
        return Path(DEFAULT_CONFIG_FILE)


def validate_secrets(config: TrustLayerConfig) -> None:
    """Ensure required secrets are configured.

    Raises:
        WpmcpError: CONFIG_INVALID naming the first missing secret
    """
    for section, name in REQUIRED_SECRETS:
        if not getattr(getattr(config, section), name):
            raise create_error(
                "CONFIG_INVALID",
                detail=f"{section}.{name} is required",
            )


def load_config(path: str | Path | None = None) -> TrustLayerConfig:
    """Convenience function to load configuration."""
    return ConfigLoader().load(path)
