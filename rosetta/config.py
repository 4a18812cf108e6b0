"""Rosetta — Application configuration via environment variables."""

from __future__ import annotations

from pydantic_settings import BaseSettings


class RosettaSettings(BaseSettings):
    """Central configuration loaded from environment / .env file."""

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}

    # ── PostgreSQL (Conversion Store) ──────────────────────────
    postgres_user: str = "rosetta"
    postgres_password: str = "change-me-in-production"
    postgres_db: str = "classification_bridge"
    postgres_host: str = "localhost"
    postgres_port: int = 5432

    # Full SQLAlchemy URL; wins over the postgres_* parts when set
    database_url: str = ""

    @property
    def database_url_sync(self) -> str:
        if self.database_url:
            return self.database_url
        return (
            f"postgresql+psycopg2://{self.postgres_user}:{self.postgres_password}"
            f"@{self.postgres_host}:{self.postgres_port}/{self.postgres_db}"
        )

    # ── Field Encryption ───────────────────────────────────────
    # base64 of 32 random bytes (openssl rand -base64 32); development key only
    encryption_master_key: str = "AAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAA="

    # ── Logging ────────────────────────────────────────────────
    log_level: str = "INFO"
    log_format: str = "json"


settings = RosettaSettings()
