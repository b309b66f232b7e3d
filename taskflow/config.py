"""Environment-driven settings for the TaskFlow backend."""

import os
from datetime import time
from typing import Literal

from pydantic import BaseModel, Field, field_validator

DEFAULT_DATABASE_URL = "sqlite:///./taskflow.db"
DEFAULT_CORS_ORIGINS = "http://localhost:5173,http://localhost:3000"


def normalize_database_url(url: str) -> str:
    """Map Heroku/Railway style ``postgres://`` URLs onto the psycopg2 driver."""
    if url.startswith("postgres://"):
        url = "postgresql://" + url[len("postgres://"):]
    if url.startswith("postgresql://"):
        url = url.replace("postgresql://", "postgresql+psycopg2://", 1)
    return url


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


class Settings(BaseModel):
    database_url: str = DEFAULT_DATABASE_URL
    storage: Literal["sql", "memory", "auto"] = "sql"
    jwt_secret: str = "change-me-in-production"
    jwt_ttl_days: int = Field(default=7, gt=0)
    bcrypt_rounds: int = Field(default=12, ge=4, le=31)
    cors_origins: list[str] = Field(
        default_factory=lambda: DEFAULT_CORS_ORIGINS.split(",")
    )
    host: str = "0.0.0.0"
    port: int = 4000
    smtp_host: str = "smtp.gmail.com"
    smtp_port: int = 587
    email_user: str = ""
    email_pass: str = ""
    email_from: str = ""
    reminders_enabled: bool = True
    reminder_time: time = time(8, 0)
    log_level: str = "INFO"

    @field_validator("database_url")
    @classmethod
    def _normalize_url(cls, v: str) -> str:
        return normalize_database_url(v.strip() or DEFAULT_DATABASE_URL)

    @property
    def mail_configured(self) -> bool:
        return bool(self.email_user and self.email_pass)

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from process environment variables."""
        values: dict = {
            "database_url": os.getenv("DATABASE_URL", DEFAULT_DATABASE_URL),
            "storage": os.getenv("TASKFLOW_STORAGE", "sql").strip().lower(),
            "jwt_secret": os.getenv("JWT_SECRET", "change-me-in-production"),
            "cors_origins": [
                origin.strip()
                for origin in os.getenv("CORS_ORIGINS", DEFAULT_CORS_ORIGINS).split(",")
                if origin.strip()
            ],
            "host": os.getenv("HOST", "0.0.0.0"),
            "smtp_host": os.getenv("SMTP_HOST", "smtp.gmail.com"),
            "email_user": os.getenv("EMAIL_USER", ""),
            "email_pass": os.getenv("EMAIL_PASS", ""),
            "email_from": os.getenv("EMAIL_FROM", ""),
            "reminders_enabled": _env_bool("REMINDERS_ENABLED", True),
            "reminder_time": os.getenv("REMINDER_TIME", "08:00"),
            "log_level": os.getenv("LOG_LEVEL", "INFO").upper(),
        }
        for key, env in (
            ("jwt_ttl_days", "JWT_TTL_DAYS"),
            ("bcrypt_rounds", "BCRYPT_ROUNDS"),
            ("port", "PORT"),
            ("smtp_port", "SMTP_PORT"),
        ):
            raw = os.getenv(env)
            if raw:
                values[key] = raw
        return cls.model_validate(values)
