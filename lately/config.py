import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root
env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(dotenv_path=env_path)

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./lately.db")

# Security - CRITICAL: No default secret key in production
SECRET_KEY = os.getenv("SECRET_KEY")
if not SECRET_KEY:
    import warnings

    warnings.warn(
        "SECRET_KEY not set! Using insecure default - DO NOT USE IN PRODUCTION", RuntimeWarning, stacklevel=2
    )
    SECRET_KEY = "INSECURE-DEV-KEY-CHANGE-IN-PRODUCTION"  # noqa: S105 - Dev fallback only

# Fernet key for platform tokens (generate with: python -c "from cryptography.fernet import Fernet; print(Fernet.generate_key().decode())")
# Falls back to a key derived from SECRET_KEY
TOKEN_ENCRYPTION_KEY = os.getenv("TOKEN_ENCRYPTION_KEY")

# Frontend base URL for dashboard links in emails
FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:5173")

# Resend Email Configuration
RESEND_API_KEY = os.getenv("RESEND_API_KEY")
EMAIL_FROM_ADDRESS = os.getenv("EMAIL_FROM_ADDRESS", "Lately <noreply@lately.com>")

# Marketplace pricing - the platform keeps this share of the provider's discount
PLATFORM_FEE_PERCENTAGE = float(os.getenv("PLATFORM_FEE_PERCENTAGE", "7"))

# Providers operate on Pacific civil time regardless of where the sync runs
OPERATING_TIMEZONE = os.getenv("OPERATING_TIMEZONE", "America/Los_Angeles")

# Fallback category used when the classifier finds no keyword match
DEFAULT_CATEGORY_BY_PLATFORM = {
    "square": "Square Services",
    "vagaro": "Salon & Spa",
    "zenoti": "Wellness Services",
    "boulevard": "Beauty Services",
}
DEFAULT_CATEGORY_NAME = "Platform Services"

PLATFORM_ICON_BY_PLATFORM = {
    "square": "credit-card",
    "vagaro": "scissors",
    "zenoti": "flower",
    "boulevard": "sparkles",
}
DEFAULT_PLATFORM_ICON = "calendar"

# Fetch window relative to today (operating timezone)
SYNC_LOOKBACK_DAYS = int(os.getenv("SYNC_LOOKBACK_DAYS", "1"))
SYNC_LOOKAHEAD_DAYS = int(os.getenv("SYNC_LOOKAHEAD_DAYS", "7"))

# Outbound platform calls
ADAPTER_TIMEOUT_SECONDS = float(os.getenv("ADAPTER_TIMEOUT_SECONDS", "30"))
ADAPTER_MAX_RETRIES = int(os.getenv("ADAPTER_MAX_RETRIES", "3"))
ADAPTER_RETRY_BACKOFF_SECONDS = float(os.getenv("ADAPTER_RETRY_BACKOFF_SECONDS", "1.0"))

# Square Configuration
SQUARE_ENVIRONMENT = os.getenv("SQUARE_ENVIRONMENT", "sandbox")  # sandbox or production
SQUARE_API_VERSION = os.getenv("SQUARE_API_VERSION", "2024-12-18")

# Scheduled sync cadence (minutes past each hour the arq cron fires)
SYNC_CRON_MINUTES = {
    int(minute) for minute in os.getenv("SYNC_CRON_MINUTES", "0,30").split(",") if minute.strip()
}
