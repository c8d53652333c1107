from __future__ import annotations

import os

from dotenv import load_dotenv
from pydantic_settings import BaseSettings, SettingsConfigDict


# Load .env early for local development
load_dotenv()


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(env_file=".env", env_ignore_empty=True, extra="ignore")

    # Database. DATABASE_URL wins; otherwise DB_HOST switches to PostgreSQL.
    database_url: str = os.getenv("DATABASE_URL", "")
    db_host: str | None = os.getenv("DB_HOST")
    db_port: int = int(os.getenv("DB_PORT", "5432"))
    db_user: str = os.getenv("DB_USER", "postgres")
    db_password: str = os.getenv("DB_PASSWORD", "postgres")
    db_name: str = os.getenv("DB_NAME", "workcafe_db")
    pool_checkout_warn_seconds: float = float(os.getenv("POOL_CHECKOUT_WARN_SECONDS", "5"))

    # Security
    jwt_secret: str = os.getenv("JWT_SECRET", "dev-secret-change-me")
    access_token_exp_minutes: int = int(os.getenv("ACCESS_TOKEN_EXP_MINUTES", str(60 * 24 * 7)))

    # Server
    port: int = int(os.getenv("PORT", "5000"))
    cors_origins: str = os.getenv("CORS_ORIGINS", "*")

    # Photo storage
    media_dir: str = os.getenv("MEDIA_DIR", "./media")
    media_url: str = os.getenv("MEDIA_URL", "/media")

    # Logging
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    log_dir: str = os.getenv("LOG_DIR", "./logs")

    @property
    def sqlalchemy_database_url(self) -> str:
        if self.database_url:
            return self.database_url
        if self.db_host:
            return (
                f"postgresql+psycopg2://{self.db_user}:{self.db_password}"
                f"@{self.db_host}:{self.db_port}/{self.db_name}"
            )
        return "sqlite:///./workcafe.db"

    @property
    def cors_origin_list(self) -> list[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]


settings = Settings()
