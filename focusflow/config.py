"""
Runtime configuration for the Focus Flow backend.

Values are read from the environment (and an optional .env file) once per
process. Provider availability is decided purely by API key presence.
"""

from functools import lru_cache
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Load environment variables
load_dotenv()

GEMINI_OPENAI_BASE_URL = "https://generativelanguage.googleapis.com/v1beta/openai/"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Server
    host: str = Field(default="127.0.0.1", alias="HOST")
    port: int = Field(default=3000, alias="PORT")

    # LLM providers
    gemini_api_key: Optional[str] = Field(default=None, alias="GEMINI_API_KEY")
    gemini_model: str = Field(default="gemini-1.5-pro", alias="GEMINI_MODEL")
    gemini_base_url: str = Field(default=GEMINI_OPENAI_BASE_URL, alias="GEMINI_BASE_URL")
    groq_api_key: Optional[str] = Field(default=None, alias="GROQ_API_KEY")
    groq_model: str = Field(default="llama-3.1-8b-instant", alias="GROQ_MODEL")
    llm_timeout_seconds: float = Field(default=12.0, gt=0, alias="LLM_TIMEOUT_SECONDS")

    # Logging / event log
    log_dir: Path = Field(default=Path("logs"), alias="LOG_DIR")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    log_format: str = Field(default="text", alias="LOG_FORMAT")

    model_config = SettingsConfigDict(
        case_sensitive=False,
        env_file=".env",
        populate_by_name=True,
        extra="ignore",
        frozen=True,
    )

    @field_validator("gemini_api_key", "groq_api_key", mode="before")
    @classmethod
    def _blank_key_is_unset(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator("log_level")
    @classmethod
    def _upper_level(cls, value: str) -> str:
        return value.upper()

    @field_validator("log_format")
    @classmethod
    def _lower_format(cls, value: str) -> str:
        return value.lower()

    @property
    def events_file(self) -> Path:
        return self.log_dir / "parse-events.jsonl"


@lru_cache()
def get_settings() -> Settings:
    return Settings()
