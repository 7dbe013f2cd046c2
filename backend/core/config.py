import os
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dotenv import load_dotenv


load_dotenv()


def _get_list(value: str | None, default: list[str]) -> list[str]:
    if value is None:
        return default
    return [item.strip() for item in value.split(",") if item.strip()]


APP_ENV = os.getenv("APP_ENV", "development")

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./clinic.db")

JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", "change-me")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
JWT_EXPIRES_MINUTES = int(os.getenv("JWT_EXPIRES_MINUTES", str(7 * 24 * 60)))

CLINIC_TIMEZONE = os.getenv("CLINIC_TIMEZONE", "America/New_York")

CORS_ALLOW_ORIGINS = _get_list(os.getenv("CORS_ALLOW_ORIGINS"), ["http://localhost:5173"])

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

SLOT_DURATION_MINUTES = 30
BOOKING_LEAD_TIME_MINUTES = 60
NO_SHOW_LOCK_MINUTES = 10

DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100
MAX_REASON_LENGTH = 500


def clinic_zone() -> ZoneInfo:
    return ZoneInfo(CLINIC_TIMEZONE)


def validate_runtime_config() -> None:
    if APP_ENV.lower() == "production" and JWT_SECRET_KEY == "change-me":
        raise RuntimeError("JWT_SECRET_KEY must be set in production.")
    try:
        clinic_zone()
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise RuntimeError(f"CLINIC_TIMEZONE {CLINIC_TIMEZONE!r} is not a known IANA zone.") from exc
