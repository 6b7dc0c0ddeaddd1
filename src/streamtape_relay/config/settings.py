# src/streamtape_relay/config/settings.py
from functools import lru_cache
from pathlib import Path
import tempfile
from typing import List, Optional

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

LOCAL_FRONTEND_ORIGIN = "http://localhost:5173"
UPLOAD_STRATEGIES = ("stream", "disk", "memory")


class Settings(BaseSettings):
    """
    Single source of truth for all application settings.

    Configuration precedence:
    1. Environment variables (highest priority)
    2. .env file (if exists)
    3. Default values in this class (lowest priority)

    Usage:
        from streamtape_relay.config.settings import get_settings
        settings = get_settings()
        folder_id = settings.streamtape_folder_id
    """

    # Application Settings
    app_name: str = Field(
        default="streamtape-relay",
        description="Application name"
    )

    environment: str = Field(
        default="development",
        validation_alias=AliasChoices("environment", "NODE_ENV"),
        description="Runtime environment: development or production"
    )

    port: int = Field(
        default=5000,
        description="Port the HTTP server listens on"
    )

    frontend_url: Optional[str] = Field(
        default=None,
        description="Allowed browser origin in production"
    )

    # Streamtape Credentials
    streamtape_login: Optional[str] = Field(
        default=None,
        description="API login for the Streamtape account"
    )

    streamtape_key: Optional[str] = Field(
        default=None,
        description="API key for the Streamtape account"
    )

    streamtape_folder_id: Optional[str] = Field(
        default=None,
        description="Folder used for both listing and uploading"
    )

    # Provider Endpoints
    api_base_url: str = Field(
        default="https://api.streamtape.com",
        description="Base URL of the Streamtape HTTP API"
    )

    stream_base_url: str = Field(
        default="https://streamtape.com/e/",
        description="Prefix combined with a file id to build the player URL"
    )

    # Timeouts (seconds)
    request_timeout: float = Field(
        default=30.0,
        description="Timeout for single-call provider proxies"
    )

    negotiation_timeout: float = Field(
        default=60.0,
        description="Bound on obtaining a one-time upload URL"
    )

    upload_timeout: float = Field(
        default=300.0,
        description="Bound on relaying the file to the upload URL"
    )

    keepalive_expiry: float = Field(
        default=30.0,
        description="How long an idle pooled connection to Streamtape is kept open"
    )

    # Upload Relay
    upload_strategy: str = Field(
        default="stream",
        description="How incoming files are held: stream, disk or memory"
    )

    upload_field_name: str = Field(
        default="videoFile",
        description="Multipart field carrying the uploaded file"
    )

    upload_tmp_dir: Optional[str] = Field(
        default=None,
        description="Directory for disk-buffered uploads (system temp dir if unset)"
    )

    max_buffer_bytes: int = Field(
        default=256 * 1024 * 1024,
        description="Largest file accepted by the memory strategy"
    )

    chunk_size: int = Field(
        default=2 * 1024 * 1024,
        description="Read size for buffered sources"
    )

    progress_log_percent: int = Field(
        default=10,
        ge=1,
        le=100,
        description="Progress log interval when the total size is known"
    )

    progress_log_bytes: int = Field(
        default=50 * 1024 * 1024,
        description="Progress log interval when the total size is unknown"
    )

    force_ipv4: bool = Field(
        default=True,
        description="Bind outbound connections to IPv4"
    )

    disconnect_poll_interval: float = Field(
        default=0.5,
        description="How often buffered uploads check for a client disconnect"
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Logging level"
    )

    @field_validator("environment", mode="before")
    @classmethod
    def normalize_environment(cls, v):
        """Accept NODE_ENV style values in any case."""
        if v:
            return str(v).strip().lower()
        return "development"

    @field_validator("upload_strategy")
    @classmethod
    def validate_upload_strategy(cls, v):
        """Validate the upload strategy is one of the allowed values."""
        v = v.strip().lower()
        if v not in UPLOAD_STRATEGIES:
            raise ValueError(f"Invalid upload_strategy: {v}. Must be one of {list(UPLOAD_STRATEGIES)}")
        return v

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def allowed_origins(self) -> List[str]:
        """CORS origins: the deployed frontend in production, the dev server otherwise."""
        if self.is_production:
            return [self.frontend_url] if self.frontend_url else []
        return [LOCAL_FRONTEND_ORIGIN]

    @property
    def credentials_configured(self) -> bool:
        return all([self.streamtape_login, self.streamtape_key, self.streamtape_folder_id])

    @property
    def upload_dir(self) -> Path:
        """Directory holding disk-buffered uploads."""
        return Path(self.upload_tmp_dir or tempfile.gettempdir())

    def public_summary(self) -> dict:
        """Settings safe to print or log; the API key is never included."""
        return {
            "environment": self.environment,
            "port": self.port,
            "api_base_url": self.api_base_url,
            "stream_base_url": self.stream_base_url,
            "streamtape_login": self.streamtape_login,
            "streamtape_key": "set" if self.streamtape_key else None,
            "streamtape_folder_id": self.streamtape_folder_id,
            "allowed_origins": self.allowed_origins,
            "upload_strategy": self.upload_strategy,
            "upload_dir": str(self.upload_dir),
            "negotiation_timeout": self.negotiation_timeout,
            "upload_timeout": self.upload_timeout,
            "log_level": self.log_level,
        }

    model_config = SettingsConfigDict(
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="allow",
        populate_by_name=True,
    )


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.
    This ensures we only create one Settings instance per process.
    """
    return Settings()
