import os

from dotenv import load_dotenv

load_dotenv()


def _get_bool(value: str | None, default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _get_list(value: str | None, default: list[str]) -> list[str]:
    if not value:
        return default
    return [item.strip() for item in value.split(",") if item.strip()]


APP_ENV = os.getenv("APP_ENV", "development")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./feedback.db")

CORS_ORIGINS = _get_list(os.getenv("CORS_ORIGINS"), ["http://localhost:3000"])

ADMIN_TOKEN_HEADER = os.getenv("ADMIN_TOKEN_HEADER", "admintoken")
ADMIN_AUTH_SCHEME = os.getenv("ADMIN_AUTH_SCHEME", "phone").strip().lower()
ADMIN_AUTH_SCHEMES = {"phone", "jwt"}

JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", "change-me")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
JWT_EXPIRES_MINUTES = int(os.getenv("JWT_EXPIRES_MINUTES", "60"))

AUDIT_LOG_CAPACITY = int(os.getenv("AUDIT_LOG_CAPACITY", "1000"))

LEGACY_UPDATE_ADMIN_ENABLED = _get_bool(os.getenv("LEGACY_UPDATE_ADMIN_ENABLED"), default=True)

REPORT_TIMEZONE = os.getenv("REPORT_TIMEZONE", "Europe/Moscow")


def validate_runtime_config() -> None:
    if ADMIN_AUTH_SCHEME not in ADMIN_AUTH_SCHEMES:
        raise RuntimeError(f"ADMIN_AUTH_SCHEME must be one of {sorted(ADMIN_AUTH_SCHEMES)}.")
    if APP_ENV.lower() == "production" and ADMIN_AUTH_SCHEME == "jwt" and JWT_SECRET_KEY == "change-me":
        raise RuntimeError("JWT_SECRET_KEY must be set in production.")
