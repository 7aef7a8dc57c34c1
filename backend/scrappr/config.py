from __future__ import annotations

from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings with environment variable support."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="SCRAPPR_",
        extra="ignore",
        case_sensitive=False,
    )

    # Application
    debug: bool = False
    log_level: str = "INFO"

    # API
    api_prefix: str = "/api/v1"
    cors_origins: list[str] = [
        "http://localhost:8081",
        "http://localhost:19006",
        "http://127.0.0.1:8081",
    ]

    cors_origin_regex: str | None = None
    trusted_hosts: list[str] = ["*"]
    root_path: str = ""

    # Document store
    store_backend: Literal["memory", "supabase"] = "memory"

    # Supabase
    supabase_url: str = ""
    supabase_anon_key: str = ""
    supabase_service_role_key: str = ""
    supabase_documents_table: str = "documents"

    # OpenAI
    openai_api_key: str = ""
    transcription_model: str = "whisper-1"
    transcription_timeout_seconds: float = 300.0  # Same budget as the hosted callable

    # Client side transcription endpoint (callable protocol)
    transcription_url: str = "http://localhost:8000/api/v1/transcribeAudio"

    # Audio capture
    audio_sample_rate: int = 44100
    audio_channels: int = 1
    audio_subtype: str = "PCM_16"


settings = Settings()
