"""Configuration module for the Academic Notifications service.

This module provides centralized configuration management, including directory
paths, API server settings, database, authentication and email settings.
All configuration values can be overridden via environment variables.
"""

import os
from functools import lru_cache
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict

# Load environment variables from .env file
load_dotenv()

# --- Directory Configuration ---

# Root directory of the project
ROOT_DIR = Path(__file__).parent.parent.resolve()

# Data directory name
DATA_DIR_NAME = "data"
DATA_DIR = ROOT_DIR / DATA_DIR_NAME

# --- Runtime Environment ---

# "development" exposes stack traces in error responses
ENVIRONMENT: str = os.getenv("ENVIRONMENT", "production")
LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

# --- API Server Configuration ---

API_HOST: str = os.getenv("API_HOST", "0.0.0.0")
API_PORT: int = int(os.getenv("API_PORT", "8000"))

# CORS allowed origins (comma-separated list)
# Default includes local development addresses. For production, set via
# CORS_ALLOWED_ORIGINS environment variable.
_CORS_ALLOWED_ORIGINS_STR: str = os.getenv(
    "CORS_ALLOWED_ORIGINS",
    "http://localhost:5173,http://127.0.0.1:5173,http://localhost:3000,"
    "http://127.0.0.1:3000",
)
CORS_ALLOWED_ORIGINS: List[str] = [
    origin.strip()
    for origin in _CORS_ALLOWED_ORIGINS_STR.split(",")
    if origin.strip()
]

# --- Database Configuration ---

DATABASE_URL: str = os.getenv(
    "DATABASE_URL", f"sqlite:///{DATA_DIR}/academic_notifications.db"
)

# --- Authentication Configuration ---

JWT_SECRET_KEY: str = os.getenv("JWT_SECRET_KEY", "change-me-in-production")
JWT_ALGORITHM: str = os.getenv("JWT_ALGORITHM", "HS256")
JWT_ISSUER: str = os.getenv("JWT_ISSUER", "academic-system")
JWT_AUDIENCE: str = os.getenv("JWT_AUDIENCE", "academic-system-users")
ACCESS_TOKEN_EXPIRE_HOURS: int = int(os.getenv("ACCESS_TOKEN_EXPIRE_HOURS", "24"))

# Cookie used by web clients when no Authorization header is sent
AUTH_COOKIE_NAME: str = os.getenv("AUTH_COOKIE_NAME", "auth_token")

# One-time login codes
OTP_LENGTH: int = int(os.getenv("OTP_LENGTH", "6"))
OTP_EXPIRATION_MINUTES: int = int(os.getenv("OTP_EXPIRATION_MINUTES", "10"))
OTP_RESEND_COOLDOWN_SECONDS: int = int(os.getenv("OTP_RESEND_COOLDOWN_SECONDS", "60"))
OTP_MAX_ATTEMPTS: int = int(os.getenv("OTP_MAX_ATTEMPTS", "3"))

# Minimum administrator password length
ADMIN_PASSWORD_MIN_LENGTH: int = 6

# --- Email Configuration ---

SMTP_SERVER: str = os.getenv("SMTP_SERVER", "smtp.gmail.com")
SMTP_PORT: int = int(os.getenv("SMTP_PORT", "587"))
SMTP_USERNAME: Optional[str] = os.getenv("SMTP_USERNAME")
SMTP_PASSWORD: Optional[str] = os.getenv("SMTP_PASSWORD")
# Seconds to wait on the SMTP relay
SMTP_TIMEOUT_SECONDS: float = float(os.getenv("SMTP_TIMEOUT_SECONDS", "10"))
EMAIL_FROM: Optional[str] = os.getenv("EMAIL_FROM") or SMTP_USERNAME
SCHOOL_NAME: str = os.getenv("SCHOOL_NAME", "Academic System")

# --- Notification Configuration ---

# Age threshold used by the admin cleanup when no explicit value is given
NOTIFICATION_RETENTION_DAYS: int = int(os.getenv("NOTIFICATION_RETENTION_DAYS", "14"))

# Listing limits
DEFAULT_LIST_LIMIT: int = 20
MAX_LIST_LIMIT: int = 100

# --- Academic Configuration ---

# Grades a student can be in; promotion and demotion stop at the bounds
MIN_GRADE: int = 1
MAX_GRADE: int = int(os.getenv("MAX_GRADE", "6"))


class AuthSettings(BaseModel):
    """Immutable authentication settings shared by the token issuer and OTP engine."""

    model_config = ConfigDict(frozen=True)

    jwt_secret_key: str
    jwt_algorithm: str = "HS256"
    jwt_issuer: str = "academic-system"
    jwt_audience: str = "academic-system-users"
    access_token_expire_hours: int = 24
    otp_length: int = 6
    otp_expiration_minutes: int = 10
    otp_resend_cooldown_seconds: int = 60
    otp_max_attempts: int = 3


@lru_cache
def get_auth_settings() -> AuthSettings:
    """Build the authentication settings once per process."""
    return AuthSettings(
        jwt_secret_key=JWT_SECRET_KEY,
        jwt_algorithm=JWT_ALGORITHM,
        jwt_issuer=JWT_ISSUER,
        jwt_audience=JWT_AUDIENCE,
        access_token_expire_hours=ACCESS_TOKEN_EXPIRE_HOURS,
        otp_length=OTP_LENGTH,
        otp_expiration_minutes=OTP_EXPIRATION_MINUTES,
        otp_resend_cooldown_seconds=OTP_RESEND_COOLDOWN_SECONDS,
        otp_max_attempts=OTP_MAX_ATTEMPTS,
    )
