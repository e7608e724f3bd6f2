from pathlib import Path
from typing import List

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

MIB = 1024 * 1024


class Settings(BaseSettings):
    host: str = "0.0.0.0"
    port: int = 3001

    n8n_webhook_url: str | None = None

    upload_dir: Path = Path("uploads")
    max_upload_bytes: int = 10 * MIB
    allowed_extensions: str = ".txt,.pdf,.doc,.docx,.csv,.json"

    relay_timeout_seconds: float | None = None
    relay_max_attempts: int = 1
    relay_backoff_seconds: float = 1.0

    max_extra_fields: int = 20
    max_field_length: int = 10_000

    cors_origins: str = "*"
    log_level: str = "INFO"

    model_config = SettingsConfigDict(env_prefix="", env_file=".env", extra="ignore")

    @field_validator("n8n_webhook_url", "relay_timeout_seconds", mode="before")
    @classmethod
    def _blank_is_unset(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @field_validator("relay_max_attempts")
    @classmethod
    def _at_least_one_attempt(cls, v: int) -> int:
        if v < 1:
            raise ValueError("relay_max_attempts must be >= 1")
        return v

    @property
    def extension_allowlist(self) -> frozenset[str]:
        return frozenset(
            e.strip().lower() if e.strip().startswith(".") else "." + e.strip().lower()
            for e in self.allowed_extensions.split(",")
            if e.strip()
        )

    @property
    def cors_origin_list(self) -> List[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]


def get_settings() -> Settings:
    return Settings()
