from loguru import logger
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    openai_api_key: str = Field(default="", validation_alias="OPENAI_API_KEY")
    openai_model: str = Field(default="gpt-4o-mini", validation_alias="OPENAI_MODEL")
    openai_base_url: str = Field(
        default="https://api.openai.com/v1/chat/completions",
        validation_alias="OPENAI_BASE_URL",
    )
    openai_timeout_seconds: float = Field(default=60.0, validation_alias="OPENAI_TIMEOUT_SECONDS")
    openai_max_tokens: int = Field(default=2000, validation_alias="OPENAI_MAX_TOKENS")
    openai_temperature: float = Field(default=0.55, validation_alias="OPENAI_TEMPERATURE")
    openai_max_retries: int = Field(
        default=2,
        validation_alias="OPENAI_MAX_RETRIES",
        description="Transient-failure retries at the HTTP client layer",
    )
    openai_retry_delay_seconds: float = Field(default=0.5, validation_alias="OPENAI_RETRY_DELAY_SECONDS")
    response_cache_ttl_seconds: int = Field(default=900, validation_alias="RESPONSE_CACHE_TTL_SECONDS")
    response_cache_path: str = Field(
        default="",
        validation_alias="RESPONSE_CACHE_PATH",
        description="JSON file backing the response cache (empty keeps it in memory)",
    )
    usage_daily_limit: int = Field(default=1, validation_alias="USAGE_DAILY_LIMIT")
    usage_store_path: str = Field(
        default="",
        validation_alias="USAGE_STORE_PATH",
        description="JSON file backing the usage limiter (empty keeps it in memory)",
    )
    max_generation_attempts: int = Field(
        default=2,
        validation_alias="MAX_GENERATION_ATTEMPTS",
        description="Validation retry budget for remote generation",
    )
    diversity_min_ratio: float = Field(default=0.6, validation_alias="DIVERSITY_MIN_RATIO")
    history_limit: int = Field(default=7, validation_alias="HISTORY_LIMIT")
    prohibited_history_window: int = Field(default=3, validation_alias="PROHIBITED_HISTORY_WINDOW")
    catalog_path: str = Field(
        default="",
        validation_alias="CATALOG_PATH",
        description="Block catalog JSON file (empty uses the bundled seed catalog)",
    )
    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, value: str) -> str:
        """Validate that log level is one of the standard logging levels."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        upper_value = value.upper()
        if upper_value not in valid_levels:
            logger.warning(f"Invalid LOG_LEVEL '{value}'. Valid levels are: {', '.join(sorted(valid_levels))}. Defaulting to INFO.")
            return "INFO"
        return upper_value

    @field_validator("diversity_min_ratio")
    @classmethod
    def validate_diversity_min_ratio(cls, value: float) -> float:
        """Clamp the diversity threshold into [0, 1]."""
        if value < 0.0 or value > 1.0:
            clamped = min(max(value, 0.0), 1.0)
            logger.warning(f"DIVERSITY_MIN_RATIO {value} is outside [0, 1]. Using {clamped}.")
            return clamped
        return value

    @field_validator("max_generation_attempts", "usage_daily_limit", "history_limit")
    @classmethod
    def validate_positive(cls, value: int) -> int:
        if value < 1:
            logger.warning(f"Expected a positive value, got {value}. Using 1.")
            return 1
        return value

    @field_validator("openai_max_retries", "prohibited_history_window")
    @classmethod
    def validate_non_negative(cls, value: int) -> int:
        if value < 0:
            logger.warning(f"Expected a non-negative value, got {value}. Using 0.")
            return 0
        return value

    @property
    def remote_generation_enabled(self) -> bool:
        return bool(self.openai_api_key)


settings = Settings()
