import os
from datetime import time

from dotenv import load_dotenv


load_dotenv()


def _get_time(value: str | None, default: time) -> time:
    if not value:
        return default
    hours, minutes = value.strip().split(":", 1)
    return time(int(hours), int(minutes))


def _get_breaks(value: str | None) -> list[tuple[time, time]]:
    # "12:00-13:30,15:00-15:15"
    breaks: list[tuple[time, time]] = []
    if not value:
        return breaks
    for chunk in value.split(","):
        chunk = chunk.strip()
        if not chunk:
            continue
        start, end = chunk.split("-", 1)
        breaks.append((_get_time(start, time(0, 0)), _get_time(end, time(0, 0))))
    return breaks


APP_ENV = os.getenv("APP_ENV", "development")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

CORS_ALLOWED_ORIGINS = [
    origin.strip()
    for origin in os.getenv("CORS_ALLOWED_ORIGINS", "http://localhost:3000").split(",")
    if origin.strip()
]

JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", "change-me")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
JWT_EXPIRES_MINUTES = int(os.getenv("JWT_EXPIRES_MINUTES", "60"))

# Used when an organization has no working hours configured.
DEFAULT_WORKDAY_START = _get_time(os.getenv("DEFAULT_WORKDAY_START"), time(8, 0))
DEFAULT_WORKDAY_END = _get_time(os.getenv("DEFAULT_WORKDAY_END"), time(18, 0))
DEFAULT_SLOT_MINUTES = int(os.getenv("DEFAULT_SLOT_MINUTES", "30"))
DEFAULT_BREAKS = _get_breaks(os.getenv("DEFAULT_BREAKS"))

DEFAULT_APPOINTMENT_DURATION_MINUTES = int(os.getenv("DEFAULT_APPOINTMENT_DURATION_MINUTES", "30"))
MAX_APPOINTMENT_DURATION_MINUTES = int(os.getenv("MAX_APPOINTMENT_DURATION_MINUTES", "720"))
MAX_APPOINTMENT_NOTES_LENGTH = int(os.getenv("MAX_APPOINTMENT_NOTES_LENGTH", "2000"))


def validate_runtime_config() -> None:
    if APP_ENV.lower() == "production" and JWT_SECRET_KEY == "change-me":
        raise RuntimeError("JWT_SECRET_KEY must be set in production.")
    if DEFAULT_SLOT_MINUTES <= 0:
        raise RuntimeError("DEFAULT_SLOT_MINUTES must be a positive number of minutes.")
    if DEFAULT_WORKDAY_START >= DEFAULT_WORKDAY_END:
        raise RuntimeError("DEFAULT_WORKDAY_START must be earlier than DEFAULT_WORKDAY_END.")
