import os
from datetime import time
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root
env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(dotenv_path=env_path)

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./field_scheduling.db")

# Security - CRITICAL: No default secret key in production
SECRET_KEY = os.getenv("SECRET_KEY")
if not SECRET_KEY:
    import warnings

    warnings.warn(
        "SECRET_KEY not set! Using insecure default - DO NOT USE IN PRODUCTION", RuntimeWarning, stacklevel=2
    )
    SECRET_KEY = "INSECURE-DEV-KEY-CHANGE-IN-PRODUCTION"  # noqa: S105 - Dev fallback only
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "720"))

# Base URL used to build the public confirmation link sent to customers
APP_URL = os.getenv("APP_URL", "http://localhost:3000").rstrip("/")

# Resend Email Configuration
RESEND_API_KEY = os.getenv("RESEND_API_KEY")
EMAIL_FROM_ADDRESS = os.getenv("EMAIL_FROM_ADDRESS", "Field Scheduling <noreply@example.com>")
EMAIL_REPLY_TO = os.getenv("EMAIL_REPLY_TO")
# Global switch for customer-facing email; projects carry their own flag as well
EMAILS_ENABLED = os.getenv("EMAILS_ENABLED", "true").lower() == "true"

# Confirmation protocol
CONFIRMATION_EXPIRY_DAYS = int(os.getenv("CONFIRMATION_EXPIRY_DAYS", "7"))
CONFIRMATION_RATE_LIMIT = int(os.getenv("CONFIRMATION_RATE_LIMIT", "5"))
CONFIRMATION_RATE_WINDOW_SECONDS = int(os.getenv("CONFIRMATION_RATE_WINDOW_SECONDS", "60"))

# Rate limiting: "memory" (per process) or "redis" (shared between workers)
RATE_LIMIT_BACKEND = os.getenv("RATE_LIMIT_BACKEND", "memory").lower()
RATE_LIMIT_MAX_KEYS = int(os.getenv("RATE_LIMIT_MAX_KEYS", "1000"))
REDIS_URL = os.getenv("REDIS_URL")

# Default working hours for generated assignment days (HH:MM)
DEFAULT_DAY_START = time.fromisoformat(os.getenv("DEFAULT_DAY_START", "07:00"))
DEFAULT_DAY_END = time.fromisoformat(os.getenv("DEFAULT_DAY_END", "16:00"))
