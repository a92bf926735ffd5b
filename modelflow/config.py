"""
Configuration settings for ModelFlow.
"""

from pydantic_settings import BaseSettings
from typing import Optional


class Settings(BaseSettings):
    """Application settings with environment variable support."""

    # Application
    APP_NAME: str = "ModelFlow"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = True

    # Server
    HOST: str = "0.0.0.0"
    PORT: int = 8000

    # Flow Engine
    EXECUTION_TIMEOUT: int = 300  # Seconds, whole run
    UPSTREAM_ERROR_POLICY: str = "proceed"  # proceed | substitute | skip
    SIMULATE_UNKNOWN_MODELS: bool = False  # Fall back to mock-model

    # Provider dispatch
    PROVIDER_TIMEOUT: float = 60.0  # Seconds, per request
    OPENAI_BASE_URL: str = "https://api.openai.com/v1"
    ANTHROPIC_BASE_URL: str = "https://api.anthropic.com/v1"
    GOOGLE_BASE_URL: str = "https://generativelanguage.googleapis.com/v1beta"
    MISTRAL_BASE_URL: str = "https://api.mistral.ai/v1"
    COHERE_BASE_URL: str = "https://api.cohere.com/v2"
    XAI_BASE_URL: str = "https://api.x.ai/v1"
    DEEPSEEK_BASE_URL: str = "https://api.deepseek.com/v1"
    TOGETHER_BASE_URL: str = "https://api.together.xyz/v1"

    # Provider credentials
    OPENAI_API_KEY: Optional[str] = None
    ANTHROPIC_API_KEY: Optional[str] = None
    GOOGLE_API_KEY: Optional[str] = None
    MISTRAL_API_KEY: Optional[str] = None
    COHERE_API_KEY: Optional[str] = None
    XAI_API_KEY: Optional[str] = None
    DEEPSEEK_API_KEY: Optional[str] = None
    TOGETHER_API_KEY: Optional[str] = None

    # Logging
    LOG_LEVEL: str = "INFO"

    class Config:
        env_file = ".env"
        case_sensitive = True


# Global settings instance
settings = Settings()
