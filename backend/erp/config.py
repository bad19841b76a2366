# backend/erp/config.py
# Overview: Environment settings validated at startup and the Flask config derived from them.

from __future__ import annotations

from datetime import timedelta
from functools import lru_cache
from typing import Literal

from pydantic import Field, SecretStr, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from sqlalchemy.engine import URL


# Values that ship in example env files and must never reach a real deployment.
KNOWN_DEFAULT_SECRETS = {
    "secret",
    "changeme",
    "change-me",
    "your-secret-key",
    "your_jwt_secret",
    "your-jwt-secret-key",
    "dev-secret-key-change-me",
    "your-session-secret",
}

MIN_SECRET_LENGTH = 32


class Settings(BaseSettings):
    """
    Process environment, validated once at startup.

    WHY: A missing database password or a copy-pasted example secret must stop
    the process before it serves a single request, not surface later as a
    500 on the first login.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    app_env: Literal["development", "production", "test"] = "development"
    port: int = Field(default=5000, ge=1, le=65535)
    frontend_url: str = Field(..., min_length=1, description="Comma-separated list of allowed origins")
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    force_https: bool = False
    disable_csrf: bool = False
    trust_proxy_hops: int = Field(default=0, ge=0, le=5, description="Reverse proxies in front of the app; 0 trusts no X-Forwarded-* header")

    # Database
    db_type: Literal["sqlite", "mysql", "postgres"] = "sqlite"
    database_url: str | None = None
    sqlite_path: str = "erp.sqlite3"
    db_host: str | None = None
    db_port: int | None = None
    db_username: str | None = None
    db_password: SecretStr | None = None
    db_database: str | None = None

    # Secrets
    jwt_secret: SecretStr
    session_secret: SecretStr
    jwt_expires_in_hours: int = Field(default=24, ge=1, le=24 * 7)
    bcrypt_rounds: int = Field(default=12, ge=4, le=16)

    # Uploads
    upload_path: str = "uploads"
    max_file_size: int = Field(default=10 * 1024 * 1024, gt=0)

    # Rate limiting (fixed window per client IP)
    rate_limit_enabled: bool = True
    rate_limit_window_minutes: int = Field(default=15, ge=1)
    rate_limit_max_requests: int = Field(default=100, ge=1)
    auth_rate_limit_max: int = Field(default=10, ge=1)
    api_rate_limit_max: int = Field(default=100, ge=1)

    # Gemini (chatbot)
    gemini_api_key: SecretStr | None = None
    gemini_model: str = "gemini-2.5-flash"

    # Alimtalk gateway
    alimtalk_api_url: str = "https://api.alimtalk.example/send"
    alimtalk_api_key: SecretStr | None = None
    alimtalk_callback: str | None = None
    alimtalk_otp_template: str = "OTP_TEMPLATE"
    alimtalk_welcome_template: str = "WELCOME_TEMPLATE"
    alimtalk_signature_template: str = "SJT_125177"
    alimtalk_timeout_seconds: float = 10.0
    public_base_url: str = "http://localhost:5000"

    @field_validator("jwt_secret", "session_secret")
    @classmethod
    def _reject_weak_secret(cls, value: SecretStr) -> SecretStr:
        raw = value.get_secret_value()
        if len(raw) < MIN_SECRET_LENGTH:
            raise ValueError(f"must be at least {MIN_SECRET_LENGTH} characters")
        if raw.lower() in KNOWN_DEFAULT_SECRETS:
            raise ValueError("must not be a default value")
        return value

    @model_validator(mode="after")
    def _check_cross_field(self) -> "Settings":
        if self.db_type != "sqlite" and not self.database_url:
            missing = [
                name.upper()
                for name in ("db_host", "db_username", "db_password", "db_database")
                if not getattr(self, name)
            ]
            if missing:
                raise ValueError(f"DB_TYPE={self.db_type} requires {', '.join(missing)}")
        if self.app_env == "production" and self.bcrypt_rounds < 12:
            raise ValueError("BCRYPT_ROUNDS must be >= 12 in production")
        if self.jwt_secret.get_secret_value() == self.session_secret.get_secret_value():
            raise ValueError("JWT_SECRET and SESSION_SECRET must differ")
        return self

    @property
    def is_production(self) -> bool:
        return self.app_env == "production"

    @property
    def allowed_origins(self) -> set[str]:
        return {origin.strip().rstrip("/") for origin in self.frontend_url.split(",") if origin.strip()}

    def sqlalchemy_url(self) -> str:
        if self.database_url:
            return self.database_url
        if self.db_type == "sqlite":
            return f"sqlite:///{self.sqlite_path}"

        drivername = "mysql+pymysql" if self.db_type == "mysql" else "postgresql+psycopg2"
        default_port = 3306 if self.db_type == "mysql" else 5432
        url = URL.create(
            drivername,
            username=self.db_username,
            password=self.db_password.get_secret_value() if self.db_password else None,
            host=self.db_host,
            port=self.db_port or default_port,
            database=self.db_database,
        )
        return url.render_as_string(hide_password=False)


@lru_cache
def get_settings() -> Settings:
    """Cached settings instance for the running process."""
    return Settings()


class Config:
    """Flask configuration built from validated settings."""

    SQLALCHEMY_TRACK_MODIFICATIONS = False
    JSON_AS_ASCII = False

    def __init__(self, settings: Settings):
        self.APP_ENV = settings.app_env
        self.SECRET_KEY = settings.session_secret.get_secret_value()
        self.SQLALCHEMY_DATABASE_URI = settings.sqlalchemy_url()
        self.LOG_LEVEL = settings.log_level
        self.ALLOWED_ORIGINS = settings.allowed_origins
        self.FORCE_HTTPS = settings.force_https
        self.TRUST_PROXY_HOPS = settings.trust_proxy_hops

        # flask-jwt-extended: cookies first (browser), Authorization header as fallback
        self.JWT_SECRET_KEY = settings.jwt_secret.get_secret_value()
        self.JWT_TOKEN_LOCATION = ["cookies", "headers"]
        self.JWT_ACCESS_COOKIE_NAME = "authToken"
        self.JWT_REFRESH_COOKIE_NAME = "refreshToken"
        self.JWT_ACCESS_TOKEN_EXPIRES = timedelta(hours=settings.jwt_expires_in_hours)
        self.JWT_REFRESH_TOKEN_EXPIRES = timedelta(hours=settings.jwt_expires_in_hours * 2)
        self.JWT_COOKIE_CSRF_PROTECT = False
        self.JWT_COOKIE_SECURE = settings.is_production
        self.JWT_COOKIE_SAMESITE = "Strict" if settings.is_production else "Lax"
        self.BCRYPT_ROUNDS = settings.bcrypt_rounds
        self.PASSWORD_RESET_TOKEN_MINUTES = 5

        self.CSRF_ENABLED = not settings.disable_csrf
        self.CSRF_TOKEN_MAX_AGE = 3600

        self.UPLOAD_PATH = settings.upload_path
        self.MAX_FILE_SIZE = settings.max_file_size
        self.MAX_CONTENT_LENGTH = settings.max_file_size + 1024 * 1024

        self.RATE_LIMIT_ENABLED = settings.rate_limit_enabled
        self.RATE_LIMIT_WINDOW_SECONDS = settings.rate_limit_window_minutes * 60
        self.RATE_LIMIT_MAX_REQUESTS = settings.rate_limit_max_requests
        self.AUTH_RATE_LIMIT_MAX = settings.auth_rate_limit_max
        self.API_RATE_LIMIT_MAX = settings.api_rate_limit_max

        self.GEMINI_API_KEY = settings.gemini_api_key.get_secret_value() if settings.gemini_api_key else None
        self.GEMINI_MODEL = settings.gemini_model

        self.ALIMTALK_API_URL = settings.alimtalk_api_url
        self.ALIMTALK_API_KEY = settings.alimtalk_api_key.get_secret_value() if settings.alimtalk_api_key else None
        self.ALIMTALK_CALLBACK = settings.alimtalk_callback
        self.ALIMTALK_OTP_TEMPLATE = settings.alimtalk_otp_template
        self.ALIMTALK_WELCOME_TEMPLATE = settings.alimtalk_welcome_template
        self.ALIMTALK_SIGNATURE_TEMPLATE = settings.alimtalk_signature_template
        self.ALIMTALK_TIMEOUT_SECONDS = settings.alimtalk_timeout_seconds
        self.PUBLIC_BASE_URL = settings.public_base_url.rstrip("/")
