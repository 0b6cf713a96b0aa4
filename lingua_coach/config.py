"""
Configuration module for Lingua Coach.
Uses pydantic-settings for environment variable management.
"""

from functools import lru_cache
from typing import List, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", case_sensitive=False, extra="ignore"
    )

    # ===========================================
    # Server Configuration
    # ===========================================
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=8000, description="Server port")
    debug: bool = Field(default=False, description="Debug mode")
    environment: str = Field(default="development", description="Environment name")

    # ===========================================
    # AI Provider Configuration
    # ===========================================
    openai_api_key: Optional[str] = Field(
        default=None, description="API key for the OpenAI provider"
    )
    openai_base_url: Optional[str] = Field(
        default=None, description="Override for the provider base URL"
    )
    openai_timeout: float = Field(
        default=60.0, description="Provider request timeout in seconds"
    )

    # ===========================================
    # Transcription (Speech-to-Text) Configuration
    # ===========================================
    transcription_model: str = Field(
        default="whisper-1", description="Model used to transcribe learner audio"
    )
    transcription_language: str = Field(
        default="en", description="Language hint passed to the transcriber"
    )
    pcm_sample_rate: int = Field(
        default=16000,
        description="Sample rate assumed for raw PCM uploads without a rate parameter (Hz)",
    )

    # ===========================================
    # Language Model Configuration
    # ===========================================
    analysis_model: str = Field(
        default="gpt-4o", description="Chat model used for practice feedback"
    )
    analysis_temperature: float = Field(
        default=0.7, description="Temperature for practice feedback"
    )
    conversation_model: str = Field(
        default="gpt-4o", description="Chat model used for conversation replies"
    )
    conversation_temperature: float = Field(
        default=0.8, description="Temperature for conversation replies"
    )
    conversation_max_tokens: int = Field(
        default=500, description="Max tokens for a conversation reply"
    )
    history_window: int = Field(
        default=10,
        description="Number of most recent turns sent along with a conversation request",
    )

    # ===========================================
    # TTS (Text-to-Speech) Configuration
    # ===========================================
    tts_model: str = Field(default="tts-1", description="Speech synthesis model")
    tts_voice: str = Field(default="nova", description="Speech synthesis voice")
    tts_format: str = Field(default="mp3", description="Reply audio format")

    # ===========================================
    # Upload Limits
    # ===========================================
    max_upload_bytes: int = Field(
        default=25 * 1024 * 1024,
        description="Largest accepted audio upload (the transcriber caps files at 25 MB)",
    )

    # ===========================================
    # Client Configuration
    # ===========================================
    api_base_url: str = Field(
        default="http://localhost:8000",
        description="Backend URL used by the terminal client",
    )
    client_timeout: float = Field(
        default=120.0, description="Client request timeout in seconds"
    )
    record_sample_rate: int = Field(
        default=16000, description="Microphone sample rate for the terminal client (Hz)"
    )

    # ===========================================
    # CORS Configuration
    # ===========================================
    cors_origins: str = Field(
        default="http://localhost:3000",
        description="Comma-separated list of allowed CORS origins",
    )

    # ===========================================
    # Logging
    # ===========================================
    log_level: str = Field(default="INFO", description="Logging level")
    log_format: str = Field(
        default="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>",
        description="Loguru log format",
    )

    # ===========================================
    # Computed Properties
    # ===========================================
    @property
    def cors_origins_list(self) -> List[str]:
        """Parse CORS origins from comma-separated string to list."""
        return [origin.strip() for origin in self.cors_origins.split(",")]

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment.lower() == "production"

    @property
    def provider_configured(self) -> bool:
        """Check if an API key is available for the provider."""
        return bool(self.openai_api_key)


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.
    Uses lru_cache to ensure settings are only loaded once.
    """
    return Settings()
