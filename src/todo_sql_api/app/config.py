"""Application settings."""

from functools import lru_cache
import os
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

PROJECT_ROOT = Path(__file__).resolve().parents[3]


class Settings(BaseSettings):
    """Runtime settings loaded from environment variables."""

    app_name: str = "todo-sql-api"
    # "postgres" for the real row store, "memory" for local demos.
    store_backend: str = "postgres"
    database_url: str = ""

    # Provider A: OpenAI-compatible chat completions (Groq by default).
    generator_api_key: str = ""
    generator_model: str = "llama3-8b-8192"
    generator_base_url: str = "https://api.groq.com/openai/v1"
    generator_temperature: float = Field(default=0.1, ge=0.0, le=2.0)
    generator_max_tokens: int = Field(default=150, ge=1)

    # Provider B: Gemini generateContent.
    validator_api_key: str = ""
    validator_model: str = "gemini-1.5-flash"
    validator_base_url: str = "https://generativelanguage.googleapis.com/v1beta"

    llm_timeout_s: float = Field(default=8.0, ge=0.5)
    llm_max_retries: int = Field(default=0, ge=0)
    llm_backoff_s: float = Field(default=0.2, ge=0.0)

    model_config = SettingsConfigDict(
        env_prefix="TODO_SQL_",
        extra="ignore",
        env_file=(PROJECT_ROOT / ".env", PROJECT_ROOT / ".env.local"),
        env_file_encoding="utf-8",
    )

    def resolved_database_url(self) -> str:
        return self.database_url or os.getenv("DATABASE_URL", "")

    def resolved_generator_api_key(self) -> str:
        return self.generator_api_key or os.getenv("GROQ_API_KEY", "")

    def resolved_validator_api_key(self) -> str:
        return self.validator_api_key or os.getenv("GEMINI_API_KEY", "")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
