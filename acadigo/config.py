"""Application settings.

All values come from environment variables (``ACADIGO_`` prefix) or a local
``.env`` file, so the same code runs locally and in production.
"""

from functools import lru_cache
from pathlib import Path
from typing import List, Literal, Optional

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Core configuration.

    - ``database_url``: local SQLite by default.
    - ``storage_backend``: ``local`` keeps files under ``storage_dir``;
      ``supabase`` talks to Supabase Storage over HTTP.
    - ``environment``: error details are only exposed in ``development``.
    """

    database_url: str = Field(
        default="sqlite:///./storage/acadigo.db", description="SQLAlchemy database URL"
    )
    environment: Literal["development", "production"] = "production"

    # Tokens
    secret_key: str = Field(default="change-me-in-production", description="JWT signing key")
    token_algorithm: str = "HS256"
    token_expire_days: int = 7

    # Object storage
    storage_backend: Literal["local", "supabase"] = "local"
    storage_dir: Path = Field(default=Path("./storage/files"))
    public_file_base_url: str = "/files"
    supabase_url: Optional[str] = None
    supabase_service_role_key: Optional[str] = None
    supabase_bucket: str = "acadigo"
    max_upload_bytes: int = 10 * 1024 * 1024

    # Email
    smtp_host: Optional[str] = None
    smtp_port: int = 587
    smtp_username: Optional[str] = None
    smtp_password: Optional[str] = None
    smtp_use_tls: bool = True
    email_from: str = "Acadigo <no-reply@acadigo.local>"
    frontend_url: str = "http://localhost:5173"

    # Rate limiting (requests per window)
    rate_limit_enabled: bool = True
    rate_limit_window_seconds: int = 60
    rate_limit_student: int = 60
    rate_limit_trainer: int = 120
    rate_limit_admin: int = 180
    rate_limit_auth: int = 20
    # Peers whose X-Forwarded-For header is believed, e.g. ["127.0.0.1"]
    trusted_proxies: List[str] = Field(default_factory=list)

    # Logging
    log_level: str = "INFO"
    log_file: Optional[Path] = None

    # First admin, created at startup when set
    bootstrap_admin_email: Optional[str] = None
    bootstrap_admin_password: Optional[str] = None
    bootstrap_admin_name: str = "Administrator"

    model_config = {
        "env_prefix": "ACADIGO_",
        "env_file": ".env",
        "env_file_encoding": "utf-8",
    }

    @property
    def is_development(self) -> bool:
        return self.environment == "development"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Cached global settings instance."""

    return Settings()
