"""Configuration loading from files and environment.

Supports:
- TOML config files
- Environment variables (BAREHUB_* prefix)
- .env files
- Multiple profiles (local, server)
"""

import os
import re
import tomllib
from pathlib import Path
from typing import Any, Optional

from dotenv import load_dotenv

from barehub.config.schema import AppConfig
from barehub.observability.logging import get_logger

logger = get_logger(__name__)


def _substitute_env_vars(obj: Any) -> Any:
    """Recursively substitute environment variables in a data structure.

    Supports formats:
    - ${VAR_NAME}
    - ${VAR_NAME:-default}

    Unset variables without a default are left as written.
    """
    if isinstance(obj, dict):
        return {k: _substitute_env_vars(v) for k, v in obj.items()}
    elif isinstance(obj, list):
        return [_substitute_env_vars(item) for item in obj]
    elif isinstance(obj, str):

        def replace_var(match):
            var_expr = match.group(1)
            if ":-" in var_expr:
                var_name, default_value = var_expr.split(":-", 1)
                return os.getenv(var_name.strip(), default_value)
            var_name = var_expr.strip()
            value = os.getenv(var_name)
            if value is None:
                logger.warning(
                    "env_var_not_found",
                    var_name=var_name,
                    suggestion="Check that the environment variable is set",
                )
                return match.group(0)
            return value

        return re.sub(r"\$\{([^}]+)\}", replace_var, obj)
    else:
        return obj


def load_config(
    config_path: Optional[Path] = None,
    profile: Optional[str] = None,
    env_file: Optional[Path] = None,
) -> AppConfig:
    """Load application configuration.

    Priority (highest to lowest):
    1. Environment variables
    2. Config file
    3. Defaults

    Args:
        config_path: Path to TOML config file
        profile: Config profile to use (e.g., "local", "server")
        env_file: Path to .env file

    Returns:
        Loaded and validated configuration
    """
    if env_file and env_file.exists():
        load_dotenv(env_file)
        logger.info("loaded_env_file", path=str(env_file))

    config_data: dict[str, Any] = {}
    if config_path and config_path.exists():
        with open(config_path, "rb") as f:
            config_data = tomllib.load(f)
        logger.info("loaded_config_file", path=str(config_path))

        profiles = config_data.pop("profiles", {})
        if profile and profile in profiles:
            # Profile tables override base tables key by key
            for key, value in profiles[profile].items():
                if isinstance(value, dict) and isinstance(config_data.get(key), dict):
                    config_data[key] = {**config_data[key], **value}
                else:
                    config_data[key] = value
            logger.info("applied_profile", profile=profile)

        config_data = _substitute_env_vars(config_data)

    config = _build_config(config_data)
    logger.info(
        "config_loaded",
        base_directory=str(config.storage.base_directory),
        strategy=config.introspection.strategy.value,
        metadata_store=config.metadata_store.store_type.value,
    )

    return config


def _build_config(file_data: dict[str, Any]) -> AppConfig:
    """Merge file values under environment values.

    pydantic-settings gives init kwargs precedence over the environment, so
    the environment-only settings are built first and layered on top.
    """
    env_data = AppConfig().model_dump(exclude_unset=True)
    return AppConfig(**_deep_merge(file_data, env_data))


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def get_default_config_path() -> Path:
    """Get the default config file path.

    Searches in order:
    1. ./barehub.toml
    2. ~/.barehub/config.toml
    3. /etc/barehub/config.toml
    """
    search_paths = [
        Path.cwd() / "barehub.toml",
        Path.home() / ".barehub" / "config.toml",
        Path("/etc/barehub/config.toml"),
    ]

    for path in search_paths:
        if path.exists():
            return path

    return search_paths[0]
