import logging
from functools import lru_cache

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    # API settings
    DEBUG: bool = False
    PROJECT_NAME: str = "Translation Gateway"

    # Translation provider (OpenAI-compatible chat completions endpoint)
    TRANSLATION_ENABLED: bool = True
    TRANSLATION_API_BASE_URL: str = "https://api.siliconflow.cn/v1"
    TRANSLATION_API_KEY: str = ""
    TRANSLATION_MODEL: str = "tencent/Hunyuan-MT-7B"
    TRANSLATION_TIMEOUT_SECONDS: float = 30.0
    TRANSLATION_CACHE_TTL_SECONDS: int = 3600  # 1 hour
    TRANSLATION_MAX_CACHE_SIZE: int = 1000

    # Rate limits, slightly below the provider quota (1,000 RPM / 80,000 TPM)
    TRANSLATION_RPM: int = 950
    TRANSLATION_TPM: int = 75000
    TRANSLATION_MAX_CONCURRENT: int = 5
    TRANSLATION_BATCH_SIZE: int = 10

    # Background loops
    SCHEDULER_TICK_INTERVAL_SECONDS: float = 1.0
    CACHE_SWEEP_INTERVAL_SECONDS: float = 300.0

    # Language pair: user-facing (dense script) and upstream language
    USER_LANGUAGE: str = "zh"
    UPSTREAM_LANGUAGE: str = "en"

    # Optional JSON file for persisting runtime config changes ("" = disabled)
    TRANSLATION_CONFIG_PATH: str = ""

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
    )

    @field_validator("TRANSLATION_API_BASE_URL")
    @classmethod
    def validate_api_base_url(cls, v: str) -> str:
        """Normalize the provider base URL.

        Ensures the URL has a scheme and no trailing slash so that
        endpoint paths can be appended safely.

        Raises:
            ValueError: If the URL is empty
        """
        v = v.strip()
        if not v:
            raise ValueError("TRANSLATION_API_BASE_URL must be non-empty")
        if "://" not in v:
            v = "https://" + v
        return v.rstrip("/")

    @field_validator(
        "TRANSLATION_RPM",
        "TRANSLATION_TPM",
        "TRANSLATION_MAX_CONCURRENT",
        "TRANSLATION_BATCH_SIZE",
        "TRANSLATION_MAX_CACHE_SIZE",
        "TRANSLATION_CACHE_TTL_SECONDS",
    )
    @classmethod
    def validate_positive_int(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("value must be a positive integer")
        return v

    @field_validator(
        "TRANSLATION_TIMEOUT_SECONDS",
        "SCHEDULER_TICK_INTERVAL_SECONDS",
        "CACHE_SWEEP_INTERVAL_SECONDS",
    )
    @classmethod
    def validate_positive_float(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("interval must be greater than zero")
        return v

    @field_validator("USER_LANGUAGE", "UPSTREAM_LANGUAGE")
    @classmethod
    def normalize_language(cls, v: str) -> str:
        v = v.strip().lower()
        if not v:
            raise ValueError("language code must be non-empty")
        return v


# Thread-safe lazy initialization using lru_cache
@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached application settings instance with lazy initialization.

    Settings are only created once on first access, then cached for subsequent calls.
    This prevents module-level side effects and allows testing without environment variables.

    Returns:
        Settings: Application settings object
    """
    return Settings()


def reset_settings() -> None:
    """Reset the cached settings instance.

    Useful for testing when you need to reload settings with different values.
    """
    get_settings.cache_clear()
