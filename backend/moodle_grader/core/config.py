"""Application configuration."""

from typing import Optional, Literal
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings."""

    # API Settings
    app_name: str = "Moodle Grader Backend"
    debug: bool = False
    api_prefix: str = "/api/v1"

    # LLM Settings
    llm_provider: Literal["openai", "anthropic"] = "openai"
    openai_api_key: Optional[str] = None
    anthropic_api_key: Optional[str] = None
    llm_model: str = "gpt-4o-mini"
    llm_temperature: float = 0.7
    llm_max_tokens: int = 2048
    llm_timeout: int = 60  # hard limit per grading call, seconds
    llm_max_retries: int = 3
    llm_retry_min_wait: float = 2.0
    llm_retry_max_wait: float = 30.0
    max_submission_chars: int = 15_000

    # Pipeline Settings
    folder_concurrency: int = Field(4, ge=1, le=16)  # student folders graded at once
    extraction_concurrency: int = Field(3, ge=1, le=16)  # files decoded at once per folder
    min_meaningful_chars: int = 30
    online_text_ratio: float = 1.5
    content_preview_chars: int = 200
    skip_empty_submissions: bool = True

    # Workflow state store
    state_backend: Optional[Literal["memory", "redis"]] = None
    redis_url: Optional[str] = None
    state_ttl: int = 7 * 24 * 3600  # one week in seconds
    state_key_prefix: str = "moodle_grader:"

    # CORS Settings
    cors_origins: list[str] = [
        "http://localhost:5173",
        "http://localhost:8080",
    ]
    cors_origin_regex: Optional[str] = None

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False
    )


settings = Settings()
