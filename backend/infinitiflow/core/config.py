from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import field_validator
from typing import List, Any
from datetime import timedelta
import json
import re


_DURATION_PATTERN = re.compile(r'^\s*(\d+)\s*(ms|s|m|h|d|w)?\s*$')

_DURATION_UNITS = {
    "ms": timedelta(milliseconds=1),
    "s": timedelta(seconds=1),
    "m": timedelta(minutes=1),
    "h": timedelta(hours=1),
    "d": timedelta(days=1),
    "w": timedelta(weeks=1),
}


def parse_duration(v: Any) -> timedelta:
    """
    Parse a duration such as "15m", "7d" or "3600" into a timedelta.

    Bare numbers are seconds, matching how JWT libraries read numeric expiries.
    """
    if isinstance(v, timedelta):
        return v
    if isinstance(v, (int, float)):
        return timedelta(seconds=v)
    match = _DURATION_PATTERN.match(str(v))
    if not match:
        raise ValueError(f"Invalid duration: {v!r}")
    amount, unit = match.groups()
    return int(amount) * _DURATION_UNITS[unit or "s"]


def parse_cors_origins(v: Any) -> List[str]:
    """Parse CORS origins from string or list"""
    if isinstance(v, list):
        return v
    if isinstance(v, str):
        # Try JSON parsing first
        if v.startswith('['):
            try:
                return json.loads(v)
            except json.JSONDecodeError:
                pass
        # Fall back to comma-separated
        return [origin.strip() for origin in v.split(',') if origin.strip()]
    return []


class Settings(BaseSettings):
    """Application settings - all configurable via environment variables"""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # ==========================================
    # Application
    # ==========================================
    APP_NAME: str = "InfinitiFlow API"
    APP_VERSION: str = "1.0.0"
    ENVIRONMENT: str = "development"  # "production" enables secure cookies + JSON logs
    DEBUG: bool = False

    # Server Configuration
    SERVER_HOST: str = "0.0.0.0"
    SERVER_PORT: int = 5000

    # ==========================================
    # Database
    # ==========================================
    DATABASE_URL: str = "sqlite+aiosqlite:///./infinitiflow.db"
    DB_ECHO: bool = False

    # ==========================================
    # Authentication
    # ==========================================
    JWT_SECRET: str = ""
    JWT_EXPIRE: str = "7d"
    JWT_REFRESH_SECRET: str = ""
    JWT_REFRESH_EXPIRE: str = "30d"
    JWT_ALGORITHM: str = "HS256"
    JWT_COOKIE_EXPIRES_IN: int = 7  # days
    REFRESH_COOKIE_EXPIRES_IN: int = 30  # days
    BCRYPT_SALT_ROUNDS: int = 12  # 4 for tests (fast), 12 for prod (secure)

    # Lockout
    MAX_LOGIN_ATTEMPTS: int = 5
    LOCK_TIME_MINUTES: int = 120

    # One-time tokens
    PASSWORD_RESET_EXPIRE_MINUTES: int = 10
    EMAIL_VERIFICATION_EXPIRE_HOURS: int = 24

    # ==========================================
    # Frontend URL (verification / reset links)
    # ==========================================
    CLIENT_URL: str = "http://localhost:3000"

    # ==========================================
    # Email
    # ==========================================
    SMTP_HOST: str = "smtp.ethereal.email"
    SMTP_PORT: int = 587
    SMTP_USER: str = ""
    SMTP_PASSWORD: str = ""
    EMAIL_FROM: str = "noreply@infinitiflow.com"
    EMAIL_FROM_NAME: str = "InfinitiFlow"
    EMAIL_SEND_TIMEOUT_SECONDS: float = 10.0

    # SendGrid Configuration (preferred when an API key is present)
    SENDGRID_API_KEY: str = ""
    USE_SENDGRID: bool = True

    # ==========================================
    # CORS (stored as comma-separated string, parsed to list)
    # ==========================================
    CORS_ORIGINS_STR: str = "http://localhost:3000,http://127.0.0.1:3000,http://localhost:5173"

    @property
    def CORS_ORIGINS(self) -> List[str]:
        """Parse CORS origins from comma-separated string"""
        return parse_cors_origins(self.CORS_ORIGINS_STR)

    # ==========================================
    # Rate Limiting
    # ==========================================
    RATE_LIMIT_ENABLED: bool = True
    RATE_LIMIT_STORAGE_URI: str = "memory://"
    RATE_LIMIT_PER_WINDOW: int = 100
    RATE_LIMIT_WINDOW_MINUTES: int = 15

    # Per-user limiter (in-process, bounded)
    USER_RATE_LIMIT_MAX_REQUESTS: int = 100
    USER_RATE_LIMIT_WINDOW_MS: int = 15 * 60 * 1000
    USER_RATE_LIMIT_MAX_TRACKED_USERS: int = 10000

    # ==========================================
    # Request limits
    # ==========================================
    MAX_REQUEST_SIZE: int = 10 * 1024 * 1024  # 10MB

    # ==========================================
    # Logging
    # ==========================================
    LOG_LEVEL: str = "INFO"
    LOG_FILE: str = ""

    @field_validator("JWT_EXPIRE", "JWT_REFRESH_EXPIRE")
    @classmethod
    def validate_duration(cls, v: str) -> str:
        parse_duration(v)
        return v

    @property
    def access_token_lifetime(self) -> timedelta:
        return parse_duration(self.JWT_EXPIRE)

    @property
    def refresh_token_lifetime(self) -> timedelta:
        return parse_duration(self.JWT_REFRESH_EXPIRE)

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT == "production"


settings = Settings()
