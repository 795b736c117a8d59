"""Settings loader and singleton manager.

This module handles:
- Environment variable loading from .env files
- Configuration file loading from TOML
- Thread-safe singleton pattern for Settings instance
"""

from __future__ import annotations

import logging
import os
import threading
from pathlib import Path

from dotenv import load_dotenv

from cjcatalog.config.models.settings import Settings

logger = logging.getLogger(__name__)

API_KEY_ENV_VAR = "CJ_API_KEY"

ENV_FILES: tuple[str, ...] = (".env", ".env.local")

DEFAULT_CONFIG_PATHS: tuple[Path, ...] = (
    Path("config/cjcatalog.toml"),
    Path("cjcatalog.toml"),
)


class SettingsLoader:
    """Thread-safe singleton manager for Settings.

    Uses double-checked locking so request handlers running in worker
    threads share one Settings instance.
    """

    _instance: Settings | None = None
    _lock: threading.RLock = threading.RLock()

    def get_config(self) -> Settings:
        """Get the global settings instance, loading it if necessary."""
        if self._instance is None:
            with self._lock:
                if self._instance is None:
                    self._instance = load_settings()

        return self._instance

    def reload_config(self) -> Settings:
        """Reload the global settings instance from configuration files."""
        with self._lock:
            self._instance = load_settings()

        return self._instance


def _load_env_files(base_dir: Path | None = None) -> None:
    """Load .env files without overriding variables already set."""
    base_dir = base_dir or Path.cwd()
    for name in ENV_FILES:
        env_file = base_dir / name
        if env_file.exists():
            load_dotenv(env_file, override=False)
            logger.debug("Loaded environment from %s", env_file.name)


def _apply_api_key_from_env(settings: Settings) -> Settings:
    """Fill api.api_key from CJ_API_KEY when the settings leave it empty."""
    if settings.api.api_key:
        return settings

    api_key = os.getenv(API_KEY_ENV_VAR, "").strip()
    if not api_key:
        return settings

    return settings.model_copy(
        update={"api": settings.api.model_copy(update={"api_key": api_key})},
    )


def load_settings(config_path: str | Path | None = None) -> Settings:
    """Load settings from a TOML file, environment variables and .env files.

    A missing API key is not an error here: it surfaces as a
    ConfigurationError the first time a token is needed.

    Args:
        config_path: Optional TOML file. When omitted the default locations
            are tried before falling back to environment variables only.

    Returns:
        Settings instance

    Raises:
        FileNotFoundError: If an explicit config_path does not exist
        pydantic.ValidationError: If a value is invalid
    """
    _load_env_files()

    if config_path:
        return _apply_api_key_from_env(Settings.from_toml_file(config_path))

    for default_path in DEFAULT_CONFIG_PATHS:
        if default_path.exists():
            return _apply_api_key_from_env(Settings.from_toml_file(default_path))

    return _apply_api_key_from_env(Settings())


_loader = SettingsLoader()


def get_config() -> Settings:
    """Get the global settings instance (thread-safe)."""
    return _loader.get_config()


def reload_config() -> Settings:
    """Reload the global settings instance from configuration files."""
    return _loader.reload_config()


__all__ = [
    "SettingsLoader",
    "get_config",
    "load_settings",
    "reload_config",
]
