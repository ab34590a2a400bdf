"""Configuration management for photoshelf.

Values come from environment variables, optionally seeded from a ``.env``
file. Lookups are cached per key and type.
"""

import os
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

from .logging_config import get_logger

logger = get_logger(__name__)


class Config:
    """Centralized configuration management using environment variables."""

    def __init__(self, env_file: str | None = None):
        """Initialize configuration.

        Args:
            env_file: Optional dotenv file loaded into the environment. Variables
                already set in the environment take precedence.
        """
        self._cache: dict[str, Any] = {}
        if env_file and Path(env_file).exists():
            load_dotenv(dotenv_path=env_file, override=False)
            logger.debug("env_file_loaded", env_file=env_file)

    def get(self, key: str, default: Any = None, cast_type: type = str) -> Any:
        """Get configuration value from environment variables.

        Args:
            key: Configuration key
            default: Default value if not found
            cast_type: Type to cast the value to (str, int, bool, float)

        Returns:
            Configuration value cast to the specified type
        """
        cache_key = f"{key}:{cast_type.__name__}"
        if cache_key in self._cache:
            return self._cache[cache_key]

        value = os.getenv(key)

        if value is None:
            value = default

        if value is not None:
            try:
                if cast_type is bool:
                    if isinstance(value, str):
                        value = value.lower() in ("true", "1", "yes", "on")
                    else:
                        value = bool(value)
                elif cast_type is not str:
                    value = cast_type(value)
            except (ValueError, TypeError) as e:
                logger.warning(f"Failed to cast config value '{key}' to {cast_type.__name__}: {e}")
                value = default

        self._cache[cache_key] = value
        return value

    def get_required(self, key: str, cast_type: type = str) -> Any:
        """Get required configuration value.

        Raises:
            ValueError: If the required configuration is not found
        """
        value = self.get(key, cast_type=cast_type)
        if value is None:
            raise ValueError(f"Required configuration '{key}' not found")
        return value

    def is_development(self) -> bool:
        """Check if running in development mode."""
        environment = self.get("ENVIRONMENT", "development").lower()
        return environment in ["development", "dev", "local"]

    def is_production(self) -> bool:
        """Check if running in production mode."""
        environment = self.get("ENVIRONMENT", "development").lower()
        return environment in ["production", "prod"]

    def clear_cache(self) -> None:
        """Clear configuration cache."""
        self._cache.clear()


# Global configuration instance
_config: Config | None = None


def get_config() -> Config:
    """Get the global configuration instance."""
    global _config
    if _config is None:
        _config = Config(env_file=os.getenv("PHOTOSHELF_ENV_FILE", ".env"))
    return _config


def reset_config() -> None:
    """Drop the global configuration so the next lookup re-reads the environment."""
    global _config
    _config = None


def get_env(key: str, default: Any = None, cast_type: type = str) -> Any:
    """Get environment variable with type casting."""
    return get_config().get(key, default, cast_type)


def get_required_env(key: str, cast_type: type = str) -> Any:
    """Get required environment variable.

    Raises:
        ValueError: If the required environment variable is not found
    """
    return get_config().get_required(key, cast_type)


def is_development() -> bool:
    """Check if running in development mode."""
    return get_config().is_development()


def get_environment() -> str:
    """Get current environment."""
    return str(get_env("ENVIRONMENT", "development"))


def get_upload_dir() -> str:
    """Root of the upload tree; originals live here, derivatives in subdirectories."""
    return str(get_env("UPLOAD_DIR", "public/images/uploads"))


def get_database_path() -> str:
    """Get the catalog database file path."""
    return str(get_env("DATABASE_PATH", "data/photoshelf.duckdb"))


def get_derivative_generator_kind() -> str:
    """Get the derivative generator backend ('command' or 'pillow')."""
    return str(get_env("DERIVATIVE_GENERATOR", "command")).lower()


def get_derivative_command() -> str:
    """Get the external derivative generation command."""
    return str(get_env("DERIVATIVE_COMMAND", "epg-prep"))


def get_derivative_timeout() -> float:
    """Get the timeout in seconds for one derivative generation run."""
    return float(get_env("DERIVATIVE_TIMEOUT", 300.0, float))


def get_thumbnail_max_size() -> int:
    """Get the bounding box edge for thumbnails, in pixels."""
    return int(get_env("THUMBNAIL_MAX_SIZE", 300, int))


def get_preview_max_size() -> int:
    """Get the bounding box edge for previews, in pixels."""
    return int(get_env("PREVIEW_MAX_SIZE", 1200, int))


def get_max_upload_size() -> int:
    """Get the maximum accepted upload size in bytes."""
    return int(get_env("MAX_UPLOAD_SIZE", 50 * 1024 * 1024, int))


def get_rollback_on_catalog_failure() -> bool:
    """Whether ingestion removes the stored original when the catalog insert fails."""
    return bool(get_env("ROLLBACK_ON_CATALOG_FAILURE", True, bool))
