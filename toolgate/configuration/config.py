"""Configuration management for Toolgate."""

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings."""

    # API Settings
    api_host: str = Field(default="0.0.0.0", alias="API_HOST")
    api_port: int = Field(default=3000, alias="API_PORT")
    api_allowed_origins: str | list[str] = Field(default=["*"], alias="API_ALLOWED_ORIGINS")

    environment: Literal["development", "production"] = Field(
        default="development", alias="ENVIRONMENT"
    )
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    # Upstream language model (OpenAI-compatible chat completion endpoint)
    llm_base_url: str = Field(default="http://localhost:1234", alias="LLM_BASE_URL")
    llm_model: str = Field(default="qwen/qwen3-coder-30b", alias="LLM_MODEL")
    llm_request_timeout: float = Field(default=30.0, alias="LLM_REQUEST_TIMEOUT")
    llm_health_timeout: float = Field(default=5.0, alias="LLM_HEALTH_TIMEOUT")
    llm_validate_model_on_startup: bool = Field(
        default=True, alias="LLM_VALIDATE_MODEL_ON_STARTUP"
    )

    # Upstream retry policy
    llm_max_retries: int = Field(default=3, alias="LLM_MAX_RETRIES")
    llm_retry_base_delay: float = Field(default=1.0, alias="LLM_RETRY_BASE_DELAY")
    llm_retry_max_delay: float = Field(default=10.0, alias="LLM_RETRY_MAX_DELAY")
    llm_retry_backoff_multiplier: float = Field(
        default=2.0, alias="LLM_RETRY_BACKOFF_MULTIPLIER"
    )

    # Upstream circuit breaker
    circuit_failure_threshold: int = Field(default=3, alias="CIRCUIT_FAILURE_THRESHOLD")
    circuit_recovery_timeout: float = Field(default=60.0, alias="CIRCUIT_RECOVERY_TIMEOUT")

    # Tool execution retry policy
    tool_max_retries: int = Field(default=2, alias="TOOL_MAX_RETRIES")
    tool_retry_base_delay: float = Field(default=0.5, alias="TOOL_RETRY_BASE_DELAY")
    tool_retry_max_delay: float = Field(default=2.0, alias="TOOL_RETRY_MAX_DELAY")
    tool_retry_backoff_multiplier: float = Field(
        default=2.0, alias="TOOL_RETRY_BACKOFF_MULTIPLIER"
    )

    # Orchestration
    max_tool_iterations: int = Field(default=5, alias="MAX_TOOL_ITERATIONS")

    # Sandbox
    sandbox_dir: Path = Field(
        default=Path("./sandbox"), alias="SANDBOX_DIR", validate_default=True
    )

    # Tool settings
    command_timeout: float = Field(default=30.0, alias="COMMAND_TIMEOUT")
    fetch_max_bytes: int = Field(default=1024 * 1024, alias="FETCH_MAX_BYTES")
    google_api_key: str | None = Field(default=None, alias="GOOGLE_API_KEY")
    google_cx: str | None = Field(default=None, alias="GOOGLE_CX")
    bing_api_key: str | None = Field(default=None, alias="BING_API_KEY")
    brave_api_key: str | None = Field(default=None, alias="BRAVE_API_KEY")

    # Rate limiting (slowapi limit string)
    rate_limit: str = Field(default="100/minute", alias="RATE_LIMIT")
    rate_limit_enabled: bool = Field(default=True, alias="RATE_LIMIT_ENABLED")

    # WebSocket heartbeat interval in seconds
    ws_heartbeat_interval: float = Field(default=30.0, alias="WS_HEARTBEAT_INTERVAL")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    @field_validator("sandbox_dir", mode="before")
    @classmethod
    def expand_sandbox_dir(cls, value: str | Path) -> Path:
        """Expand ``~`` and make the sandbox root absolute."""
        return Path(value).expanduser().resolve()

    @field_validator("api_allowed_origins", mode="before")
    @classmethod
    def split_origins(cls, value: str | list[str]) -> list[str]:
        if isinstance(value, str):
            return [origin.strip() for origin in value.split(",") if origin.strip()]
        return value

    @property
    def is_production(self) -> bool:
        return self.environment == "production"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
