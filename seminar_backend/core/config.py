import os

from dotenv import load_dotenv

load_dotenv()


def _get_bool(value: str | None, default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _get_list(value: str | None) -> list[str]:
    if not value:
        return []
    return [item.strip() for item in value.split(",") if item.strip()]


APP_ENV = os.getenv("APP_ENV", "development")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./seminar.db")

# Empty list means any origin is accepted.
CORS_ORIGINS = _get_list(os.getenv("CORS_ORIGINS"))

JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", "change-me")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
JWT_EXPIRES_MINUTES = int(os.getenv("JWT_EXPIRES_MINUTES", "1440"))

BCRYPT_ROUNDS = int(os.getenv("BCRYPT_ROUNDS", "12"))
PASSWORD_MIN_LENGTH = 6

OTP_TTL_MINUTES = int(os.getenv("OTP_TTL_MINUTES", "10"))
OTP_MAX_ATTEMPTS = int(os.getenv("OTP_MAX_ATTEMPTS", "3"))
PENDING_SWEEP_INTERVAL_SECONDS = int(os.getenv("PENDING_SWEEP_INTERVAL_SECONDS", "900"))
VERIFICATION_EXEMPT_ROLES = set(_get_list(os.getenv("VERIFICATION_EXEMPT_ROLES", "admin")))

EMAIL_ENABLED = _get_bool(os.getenv("EMAIL_ENABLED"), default=False)
SMTP_HOST = os.getenv("SMTP_HOST", "smtp.gmail.com")
SMTP_PORT = int(os.getenv("SMTP_PORT", "587"))
SMTP_USER = os.getenv("SMTP_USER", "")
SMTP_PASSWORD = os.getenv("SMTP_PASSWORD", "")
SMTP_USE_TLS = _get_bool(os.getenv("SMTP_USE_TLS"), default=True)
EMAIL_FROM_ADDRESS = os.getenv("EMAIL_FROM_ADDRESS", "noreply@seminarreport.com")
EMAIL_FROM_NAME = os.getenv("EMAIL_FROM_NAME", "Seminar Report System")
EMAIL_MAX_RETRIES = int(os.getenv("EMAIL_MAX_RETRIES", "3"))
EMAIL_RETRY_BASE_DELAY_SECONDS = float(os.getenv("EMAIL_RETRY_BASE_DELAY_SECONDS", "1.0"))

STORAGE_BACKEND = os.getenv("STORAGE_BACKEND", "local").strip().lower()
UPLOAD_DIR = os.getenv("UPLOAD_DIR", "uploads/reports")
MAX_UPLOAD_BYTES = int(os.getenv("MAX_UPLOAD_BYTES", str(10 * 1024 * 1024)))

S3_BUCKET_NAME = os.getenv("S3_BUCKET_NAME", "")
S3_KEY_PREFIX = os.getenv("S3_KEY_PREFIX", "seminar-reports")
S3_PRESIGNED_URL_EXPIRES_SECONDS = int(os.getenv("S3_PRESIGNED_URL_EXPIRES_SECONDS", "300"))
AWS_REGION = os.getenv("AWS_REGION", "us-east-1")
AWS_ACCESS_KEY_ID = os.getenv("AWS_ACCESS_KEY_ID", "")
AWS_SECRET_ACCESS_KEY = os.getenv("AWS_SECRET_ACCESS_KEY", "")


def validate_runtime_config() -> None:
    if APP_ENV.lower() == "production":
        if JWT_SECRET_KEY == "change-me":
            raise RuntimeError("JWT_SECRET_KEY must be set in production.")
        if not os.getenv("DATABASE_URL"):
            raise RuntimeError("DATABASE_URL must be set in production.")
    if STORAGE_BACKEND not in {"local", "s3"}:
        raise RuntimeError(f"Unsupported STORAGE_BACKEND '{STORAGE_BACKEND}'.")
    if STORAGE_BACKEND == "s3" and not S3_BUCKET_NAME:
        raise RuntimeError("S3_BUCKET_NAME must be set when STORAGE_BACKEND is 's3'.")
