"""Configuration helpers for the review sentiment flow."""

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        populate_by_name=True,
        protected_namespaces=(),
    )

    reviews_source: str = Field(
        "reviews_test.tsv",
        alias="REVIEWS_SOURCE",
        description="Path or URL of the TSV file holding reviews.",
    )
    model_id: str = Field(
        "distilbert/distilbert-base-uncased-finetuned-sst-2-english",
        alias="SENTIMENT_MODEL",
        description="Hugging Face model id for the text-classification pipeline.",
    )
    model_revision: str = Field("main", alias="SENTIMENT_MODEL_REVISION")
    inference_timeout: float = Field(
        60.0,
        alias="INFERENCE_TIMEOUT",
        description="Seconds to wait for one classification; 0 disables the limit.",
    )
    reporting_url: str | None = Field(
        None,
        alias="REPORTING_URL",
        description="Apps Script endpoint receiving log records; unset disables reporting.",
    )
    reporting_timeout: float = Field(10.0, alias="REPORTING_TIMEOUT")
    notice_seconds: float = Field(
        5.0,
        alias="NOTICE_SECONDS",
        description="How long a reporting notice stays visible on the page.",
    )
    store_path: Path = Field(
        Path("~/.review_sentiment/store.json"),
        alias="REVIEW_SENTIMENT_STORE",
        description="JSON key-value file holding the optional reporting token.",
    )
    log_level: str = Field("INFO", alias="LOG_LEVEL")


def get_settings() -> Settings:
    """Return a fresh settings instance."""
    return Settings()
