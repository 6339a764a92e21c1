"""Environment-driven configuration with Pydantic v2."""

from typing import Literal, Optional
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings driven entirely by environment variables."""

    # Remote store (hosted Postgres REST endpoint)
    supabase_url: str = Field(default="http://localhost:54321")
    supabase_anon_key: str = Field(default="")
    supabase_access_token: Optional[str] = Field(default=None)
    remote_timeout: float = Field(default=10.0, ge=1.0, le=120.0)

    # Retry policy for remote calls
    remote_max_retries: int = Field(default=3, ge=1, le=10)
    remote_retry_delay: float = Field(default=1.0, ge=0.0, le=10.0)
    remote_retry_max_delay: float = Field(default=10.0, ge=0.0, le=60.0)

    # Cache Configuration (seconds)
    cache_ttl: float = Field(default=300.0, gt=0)
    cache_max_size: int = Field(default=100, ge=1)
    cache_cleanup_interval: float = Field(default=300.0, gt=0)

    # Drafts
    autosave_interval: float = Field(default=30.0, gt=0)

    # Logging
    log_level: str = Field(default="INFO")
    log_format: Literal["json", "console"] = Field(default="console")
    log_file: Optional[str] = Field(default=None)

    @field_validator("supabase_url")
    @classmethod
    def strip_trailing_slash(cls, v):
        """Normalise the base URL so paths can be appended."""
        return v.rstrip("/")

    @property
    def rest_url(self) -> str:
        """Base URL of the REST interface."""
        return f"{self.supabase_url}/rest/v1"

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
        "extra": "forbid",
        "env_parse_none_str": "none",
    }
