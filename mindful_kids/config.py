# mindful_kids/config.py - Environment driven configuration
from dotenv import load_dotenv

load_dotenv()
from typing import Optional, Union
from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, field_validator


DEV_JWT_SECRET = "dev-secret-change-in-production"


class Settings(BaseSettings):
    """Application settings with validation and environment variable support (Pydantic V2 Syntax)"""

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="allow",
        case_sensitive=False,
        populate_by_name=True,
    )

    # Application
    app_name: str = "Mindful Kids API"
    app_version: str = "1.0.0"
    environment: str = Field(default="development", alias="ENVIRONMENT")
    debug: bool = Field(default=False, alias="DEBUG")
    port: int = Field(default=8000, alias="PORT")

    # Database
    database_url: str = Field(default="sqlite:///./mindful_kids.db", alias="DATABASE_URL")
    database_pool_size: int = Field(default=10, alias="DATABASE_POOL_SIZE")
    database_max_overflow: int = Field(default=20, alias="DATABASE_MAX_OVERFLOW")

    # Security
    jwt_secret: str = Field(default=DEV_JWT_SECRET, alias="JWT_SECRET")
    jwt_algorithm: str = Field(default="HS256", alias="JWT_ALGORITHM")
    jwt_expires_minutes: int = Field(default=60 * 24 * 7, alias="JWT_EXPIRES_MINUTES")
    jwt_admin_expires_minutes: int = Field(default=60 * 8, alias="JWT_ADMIN_EXPIRES_MINUTES")
    document_link_expires_seconds: int = Field(default=300, alias="DOCUMENT_LINK_EXPIRES_SECONDS")
    rate_limit_enabled: bool = Field(default=True, alias="RATE_LIMIT_ENABLED")

    # Public URLs
    base_url: Optional[str] = Field(default=None, alias="BASE_URL")
    clinic_invite_base_url: Optional[str] = Field(default=None, alias="CLINIC_INVITE_BASE_URL")
    clinic_invite_expires_days: int = Field(default=7, alias="CLINIC_INVITE_EXPIRES_DAYS")

    # Uploads
    upload_dir: str = Field(default="uploads", alias="UPLOAD_DIR")
    max_upload_bytes: int = Field(default=10 * 1024 * 1024, alias="MAX_UPLOAD_BYTES")

    # Email (SendGrid)
    sendgrid_api_key: Optional[str] = Field(default=None, alias="SENDGRID_API_KEY")
    sender_email: str = Field(default="noreply@mindfulkids.app", alias="SENDER_EMAIL")

    # CORS
    cors_origins: Union[str, list[str]] = Field(default=["http://localhost:8081", "http://localhost:19006"], alias="CORS_ORIGINS")

    # Admin bootstrap / promotion
    allow_admin_promotion: bool = Field(default=False, alias="ALLOW_ADMIN_PROMOTION")
    admin_email: Optional[str] = Field(default=None, alias="ADMIN_EMAIL")
    admin_password: Optional[str] = Field(default=None, alias="ADMIN_PASSWORD")

    # --- Pydantic V2 Validators ---
    @field_validator("cors_origins", mode='before')
    @classmethod
    def parse_cors_origins(cls, v):
        if isinstance(v, str):
            if not v.strip():
                return ["*"]
            return [origin.strip() for origin in v.split(',') if origin.strip()]
        return v

    @field_validator("database_url")
    @classmethod
    def validate_database_url(cls, v):
        if not v:
            raise ValueError("DATABASE_URL is required")
        if v.startswith("postgres://"):
            v = v.replace("postgres://", "postgresql://", 1)
        if not v.startswith(("postgresql://", "postgresql+psycopg2://", "sqlite://")):
            raise ValueError("DATABASE_URL must be a valid PostgreSQL or SQLite URL")
        return v

    @field_validator("jwt_secret")
    @classmethod
    def validate_jwt_secret(cls, v, info):
        environment = (info.data.get("environment") or "development").lower()
        if environment == "production" and (v == DEV_JWT_SECRET or len(v) < 32):
            raise ValueError("JWT_SECRET must be set to at least 32 characters in production")
        return v

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"

    @property
    def is_development(self) -> bool:
        return self.environment.lower() == "development"

    @property
    def email_enabled(self) -> bool:
        return bool(self.sendgrid_api_key)

    @property
    def public_base_url(self) -> str:
        return (self.base_url or f"http://localhost:{self.port}").rstrip("/")


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()

# Note: Do not instantiate settings at import time to avoid failing
# on missing environment variables. Use `get_settings()` instead.
