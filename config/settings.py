"""Load settings from environment. Profiles live in MongoDB; env only tunes the sync engine."""
import os
from pathlib import Path

from dotenv import load_dotenv

load_dotenv(Path(__file__).resolve().parents[1] / ".env")


def _str(key: str, default: str = "") -> str:
    return os.environ.get(key, default).strip()


def _int(key: str, default: int = 0) -> int:
    try:
        return int(os.environ.get(key, str(default)))
    except ValueError:
        return default


def _float(key: str, default: float = 0.0) -> float:
    try:
        return float(os.environ.get(key, str(default)))
    except ValueError:
        return default


def _bool(key: str, default: bool = False) -> bool:
    return _str(key, "true" if default else "false").lower() in ("true", "1", "yes")


class Settings:
    # MongoDB
    MONGODB_URI: str = _str("MONGODB_URI", "mongodb://localhost:27017")
    MONGODB_DB: str = _str("MONGODB_DB", "cp_tracker")

    # Codeforces API. Official limit is roughly 1 call per 2 seconds.
    CODEFORCES_API_BASE: str = _str("CODEFORCES_API_BASE", "https://codeforces.com/api")
    CF_REQUEST_TIMEOUT: float = _float("CF_REQUEST_TIMEOUT", 10.0)
    CF_MIN_INTERVAL: float = _float("CF_MIN_INTERVAL", 2.0)
    CF_SUBMISSIONS_COUNT: int = _int("CF_SUBMISSIONS_COUNT", 1000)

    # Aggregation
    RECENT_SUBMISSIONS_WINDOW: int = _int("RECENT_SUBMISSIONS_WINDOW", 10)

    # Problemset catalog cache
    CATALOG_TTL_HOURS: int = _int("CATALOG_TTL_HOURS", 24)
    CATALOG_BROWSE_TTL_MINUTES: int = _int("CATALOG_BROWSE_TTL_MINUTES", 60)
    CATALOG_RETRY_SECONDS: int = _int("CATALOG_RETRY_SECONDS", 60)

    # Sync scheduling (cron syntax, default 2 AM daily)
    SYNC_CRON: str = _str("SYNC_CRON", "0 2 * * *")
    SYNC_WORKERS: int = _int("SYNC_WORKERS", 3)
    SYNC_DEADLINE_SECONDS: int = _int("SYNC_DEADLINE_SECONDS", 0)
    DISABLE_SCHEDULER: bool = _bool("DISABLE_SCHEDULER", False)

    # Inactivity reminders
    INACTIVITY_DAYS: int = _int("INACTIVITY_DAYS", 7)
    REMINDER_COOLDOWN_HOURS: int = _int("REMINDER_COOLDOWN_HOURS", 20)

    # Timezone used when rendering dates in emails
    USER_TIMEZONE: str = _str("USER_TIMEZONE", "UTC")

    # SMTP
    SMTP_HOST: str = _str("SMTP_HOST", "")
    SMTP_PORT: int = _int("SMTP_PORT", 587)
    SMTP_USER: str = _str("SMTP_USER", "")
    SMTP_PASSWORD: str = _str("SMTP_PASSWORD", "")
    NOTIFICATION_FROM: str = _str("NOTIFICATION_FROM", "")

    # Logging
    LOG_LEVEL: str = _str("LOG_LEVEL", "INFO")

    # API server
    PORT: int = _int("PORT", 8000)


settings = Settings()

# On Windows, MongoDB Atlas often fails with TLSV1_ALERT_INTERNAL_ERROR unless
# SSL uses a known CA bundle. Set these before any connection so the ssl module uses certifi.
if os.name == "nt" and "mongodb+srv" in (os.environ.get("MONGODB_URI") or ""):
    import certifi
    _ca = certifi.where()
    os.environ.setdefault("SSL_CERT_FILE", _ca)
    os.environ.setdefault("REQUESTS_CA_BUNDLE", _ca)
