from typing import List, Optional
from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings
from time import time


class Settings(BaseSettings):
    """
    Application configuration settings.
    """

    # App settings
    APP_NAME: str = Field(
        default="BugTracker Pro API", description="Name of the application"
    )
    VERSION: str = Field(default="0.1.0", description="Application version")
    ENVIRONMENT: str = Field(
        default="development", description="Application environment"
    )
    DEBUG: bool = Field(default=True, description="Enable debug mode")
    DOCS_ENABLED: bool = Field(default=True, description="Enable API documentation")

    # Server settings
    HOST: str = Field(default="0.0.0.0", description="Server host")
    PORT: int = Field(default=8000, description="Server port")

    # Hosted backend (table API + auth API)
    BACKEND_URL: str = Field(
        default="http://localhost:54321", description="Base URL of the hosted backend"
    )
    BACKEND_ANON_KEY: str = Field(
        default="dev-anon-key", description="Public (anon) API key of the backend"
    )
    BACKEND_JWT_SECRET: Optional[str] = Field(
        default=None,
        description="JWT secret of the backend auth service, enables signature checks",
    )
    BACKEND_TIMEOUT: float = Field(
        default=10.0, description="Timeout in seconds for backend requests"
    )
    SITE_URL: str = Field(
        default="http://localhost:8080",
        description="Public URL of the web app, used for e-mail redirects",
    )

    # Sessions
    REDIS_URL: str = Field(
        default="redis://localhost:6379/0", description="Redis connection URL"
    )
    SESSION_EXPIRE_DAYS: int = Field(default=7, description="Session lifetime in days")
    SESSION_REFRESH_MARGIN_SECONDS: int = Field(
        default=60,
        description="Refresh access tokens this many seconds before they expire",
    )

    # CORS settings
    CORS_ORIGINS: List[str] = Field(
        default=["http://localhost:3000", "http://localhost:8080"],
        description="CORS origins",
    )

    # Logging
    LOG_LEVEL: str = Field(default="INFO", description="Log level")

    @field_validator("ENVIRONMENT")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        """Validate environment value"""
        allowed_envs = ["development", "testing", "staging", "production"]
        if v.lower() not in allowed_envs:
            raise ValueError(f"Environment must be one of: {allowed_envs}")
        return v.lower()

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level"""
        allowed_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in allowed_levels:
            raise ValueError(f"Log level must be one of: {allowed_levels}")
        return v.upper()

    @field_validator("BACKEND_URL", "SITE_URL")
    @classmethod
    def validate_url(cls, v: str) -> str:
        """Validate and normalize base URLs"""
        if not v.startswith(("http://", "https://")):
            raise ValueError("URL must start with http:// or https://")
        return v.rstrip("/")

    @field_validator("PORT")
    @classmethod
    def validate_port(cls, v: int) -> int:
        """Validate port range"""
        if not (1 <= v <= 65535):
            raise ValueError("Port must be between 1 and 65535")
        return v

    @model_validator(mode="after")
    def validate_docs_settings(self) -> "Settings":
        """Validate docs settings based on debug mode"""
        if self.DEBUG:
            # Force docs enabled in debug mode
            self.DOCS_ENABLED = True
        return self

    class Config:
        env_file = ".env"
        case_sensitive = True


# Global settings instance
startup_time = time()
settings = Settings()
