"""Translation config model and its stores.

The store is consulted once at startup and written on every explicit update.
When loading fails the service falls back to the environment defaults.
"""

import json
import logging
from pathlib import Path
from typing import Optional, Protocol

from pydantic import BaseModel, Field, ValidationError

from translation_gateway.core.config import Settings
from translation_gateway.core.exceptions import ConfigurationError

logger = logging.getLogger(__name__)


class TranslationConfig(BaseModel):
    enabled: bool = True
    api_base_url: str = Field(default="https://api.siliconflow.cn/v1", min_length=1)
    api_key: str = ""
    model: str = Field(default="tencent/Hunyuan-MT-7B", min_length=1)
    timeout_seconds: float = Field(default=30.0, gt=0)
    cache_ttl_seconds: int = Field(default=3600, gt=0)

    @classmethod
    def from_settings(cls, settings: Settings) -> "TranslationConfig":
        return cls(
            enabled=settings.TRANSLATION_ENABLED,
            api_base_url=settings.TRANSLATION_API_BASE_URL,
            api_key=settings.TRANSLATION_API_KEY,
            model=settings.TRANSLATION_MODEL,
            timeout_seconds=settings.TRANSLATION_TIMEOUT_SECONDS,
            cache_ttl_seconds=settings.TRANSLATION_CACHE_TTL_SECONDS,
        )

    def redacted(self) -> dict:
        """Config as a dict with the API key masked, for logging."""
        data = self.model_dump()
        data["api_key"] = "***" if self.api_key else ""
        return data


class ConfigStore(Protocol):
    def load(self) -> TranslationConfig: ...

    def save(self, config: TranslationConfig) -> None: ...


class SettingsConfigStore:
    """Read-only store backed by environment settings.

    Updates are kept in memory for the lifetime of the process.
    """

    def __init__(self, settings: Settings):
        self._config = TranslationConfig.from_settings(settings)

    def load(self) -> TranslationConfig:
        return self._config.model_copy()

    def save(self, config: TranslationConfig) -> None:
        self._config = config.model_copy()


class JsonFileConfigStore:
    """Persist the translation config as JSON.

    Writes go to a temp file that is then renamed over the target, so a
    crash during write never leaves a truncated config behind.
    """

    def __init__(self, path: str, defaults: Optional[TranslationConfig] = None):
        self.path = Path(path)
        self.defaults = defaults or TranslationConfig()

    def load(self) -> TranslationConfig:
        """Load the config, returning defaults if the file does not exist.

        Raises:
            ConfigurationError: If the file exists but cannot be parsed.
        """
        if not self.path.exists():
            logger.debug(f"Translation config file not found: {self.path}")
            return self.defaults.model_copy()

        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
            return TranslationConfig(**{**self.defaults.model_dump(), **data})
        except (OSError, json.JSONDecodeError, ValidationError, TypeError) as e:
            raise ConfigurationError(
                f"Failed to load translation config from {self.path}: {e}"
            ) from e

    def save(self, config: TranslationConfig) -> None:
        """Atomically save the config to disk.

        Raises:
            OSError: If the file cannot be written
        """
        self.path.parent.mkdir(parents=True, exist_ok=True)
        temp_file = self.path.with_suffix(".tmp")
        try:
            with open(temp_file, "w", encoding="utf-8") as f:
                json.dump(config.model_dump(), f, indent=2)
            temp_file.replace(self.path)
            logger.info(f"Saved translation config to {self.path}")
        except Exception:
            logger.exception(f"Failed to save translation config to {self.path}")
            if temp_file.exists():
                temp_file.unlink()
            raise


def build_config_store(settings: Settings) -> ConfigStore:
    defaults = TranslationConfig.from_settings(settings)
    if settings.TRANSLATION_CONFIG_PATH:
        return JsonFileConfigStore(settings.TRANSLATION_CONFIG_PATH, defaults=defaults)
    return SettingsConfigStore(settings)
