"""Shared configuration management for the intake service.

Based on Pydantic Settings v2:
https://docs.pydantic.dev/latest/concepts/pydantic_settings/
"""

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings with environment variable support.

    All settings can be overridden via environment variables with the prefix 'APP_'.
    Example: APP_EXTRACTION_PROVIDER=ollama
    """

    model_config = SettingsConfigDict(
        env_prefix="APP_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    environment: Literal["development", "staging", "production"] = Field(
        default="development",
        description="Deployment environment",
    )
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Logging level",
    )
    service_name: str = Field(
        default="invoice-intake",
        description="Service identifier for metrics and logs",
    )
    service_version: str = Field(
        default="0.1.0",
        description="Service version",
    )

    # Extraction provider configuration
    extraction_provider: Literal["openai", "ollama"] = Field(
        default="openai",
        description="Extraction provider: openai (any OpenAI-compatible API), ollama (self-hosted)",
    )
    openai_base_url: str | None = Field(
        default=None,
        description="Base URL of an OpenAI-compatible API (None uses api.openai.com)",
    )
    openai_model: str = Field(
        default="gpt-4o-mini",
        description="Vision-capable chat model used for extraction",
    )
    ollama_base_url: str = Field(
        default="http://localhost:11434",
        description="Ollama server base URL",
    )
    ollama_model: str = Field(
        default="qwen2.5vl:7b",
        description="Vision-capable Ollama model used for extraction",
    )
    extraction_temperature: float = Field(
        default=0.1,
        ge=0,
        le=2,
        description="Sampling temperature for extraction calls",
    )
    pdf_render_scale: float = Field(
        default=2.5,
        gt=0,
        description="Zoom factor used when rendering the first PDF page to an image",
    )

    # Reconciliation rules
    special_invoice_marker: str = Field(
        default="专用",
        min_length=1,
        description="Invoice types containing this marker post the net amount to stock",
    )

    # Redis (ledger stores, batch queue, status feed)
    redis_url: str = Field(
        default="redis://localhost:6379/0",
        description="Redis connection URL",
    )
    ledger_namespace: str = Field(
        default="intake",
        description="Key prefix for ledger and failure records in Redis",
    )
    queue_max_jobs: int = Field(
        default=1,
        ge=1,
        description="Concurrent batch jobs per worker (keep at 1 for a shared ledger)",
    )
    queue_job_timeout: int = Field(
        default=1800,
        ge=1,
        description="Batch job timeout in seconds",
    )
    batch_status_ttl_seconds: int = Field(
        default=86400,
        ge=1,
        description="How long batch status documents are kept in Redis",
    )
    metrics_port: int | None = Field(
        default=None,
        description="Port for the Prometheus metrics server (None disables it)",
    )


def get_settings() -> Settings:
    """Factory function to get settings instance.

    Returns:
        Configured Settings instance
    """
    return Settings()
