"""
Application configuration.

Every setting is read from the environment (a local .env is loaded once here).
Other modules import values from this module instead of calling os.getenv
themselves, so the JWT secret used to sign tokens is the same one used to
verify them.
"""

import os
from typing import List, Optional

from dotenv import load_dotenv

load_dotenv()


def _get_bool(value: Optional[str], default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _get_list(value: Optional[str], default: List[str]) -> List[str]:
    if not value:
        return default
    return [item.strip() for item in value.split(",") if item.strip()]


APP_ENV = os.getenv("APP_ENV", "development")
DEBUG = _get_bool(os.getenv("DEBUG"), default=False)

# --- TOKENS ---
DEFAULT_JWT_SECRET = "dev-change-me"
JWT_SECRET = os.getenv("JWT_SECRET", DEFAULT_JWT_SECRET)
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
TOKEN_EXPIRATION_MINUTES = int(os.getenv("TOKEN_EXPIRATION_MINUTES", 60))

# --- DATABASE ---
DATABASE_URL = os.getenv("DATABASE_URL")

# --- UPLOADS ---
UPLOAD_FOLDER = os.getenv("UPLOAD_FOLDER", "uploads")
MAX_UPLOAD_MB = int(os.getenv("MAX_UPLOAD_MB", 10))

# --- GOOGLE OAUTH ---
GOOGLE_CLIENT_ID = os.getenv("GOOGLE_CLIENT_ID", "")
GOOGLE_CLIENT_SECRET = os.getenv("GOOGLE_CLIENT_SECRET", "")
GOOGLE_REDIRECT_URI = os.getenv(
    "GOOGLE_REDIRECT_URI", "http://localhost:5050/auth/google/callback"
)
GOOGLE_TIMEOUT_SECONDS = int(os.getenv("GOOGLE_TIMEOUT_SECONDS", 10))

# --- FRONTEND ---
# Empty means the static pages are served from the same origin as the API.
FRONTEND_BASE_URL = os.getenv("FRONTEND_BASE_URL", "").rstrip("/")
CORS_ORIGINS = _get_list(
    os.getenv("CORS_ORIGINS"),
    [
        "http://localhost:3000",
        "http://localhost:5050",
        "http://localhost:5500",
        "http://localhost:8080",
        "null",
    ],
)


def validate_runtime_config() -> None:
    """Refuse to run in production with the built-in development secret."""
    if APP_ENV.lower() == "production" and JWT_SECRET == DEFAULT_JWT_SECRET:
        raise RuntimeError("JWT_SECRET is missing. Set it in .env")
