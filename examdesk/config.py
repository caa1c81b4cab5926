"""Exam Incident Desk configuration system using Pydantic Settings."""

from __future__ import annotations

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ExamDeskConfig(BaseSettings):
    """Main configuration class. Loads from .env file and environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # App
    app_name: str = "Exam Incident Desk"
    debug: bool = False
    host: str = "127.0.0.1"
    port: int = 8000
    cors_origins: list[str] = ["http://localhost:3000"]

    # Database
    database_url: str = "sqlite+aiosqlite:///./examdesk.db"

    # Auth (tokens are issued elsewhere; we only verify them)
    secret_key: str = "CHANGE_ME_IN_PRODUCTION"
    jwt_algorithm: str = "HS256"

    # Listing
    default_page_size: int = 10
    max_page_size: int = 100

    # Errors
    expose_error_details: bool = False

    # Logging
    log_dir: str = "logs"
    log_max_bytes: int = 10_000_000  # 10 MB
    log_backup_count: int = 5

    @field_validator("jwt_algorithm")
    @classmethod
    def validate_jwt_algorithm(cls, v: str) -> str:
        allowed = {"HS256", "HS384", "HS512"}
        if v not in allowed:
            raise ValueError(f"jwt_algorithm must be one of {allowed}")
        return v

    @model_validator(mode="after")
    def validate_page_sizes(self) -> "ExamDeskConfig":
        if self.default_page_size < 1 or self.max_page_size < 1:
            raise ValueError("page sizes must be positive")
        if self.default_page_size > self.max_page_size:
            raise ValueError("default_page_size cannot exceed max_page_size")
        return self


def get_config() -> ExamDeskConfig:
    """Factory function to create config instance."""
    return ExamDeskConfig()
