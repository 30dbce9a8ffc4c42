from datetime import datetime, timedelta, timezone

import jwt

from seminar_backend.core import config

REQUIRED_CLAIMS = ["sub", "exp", "iat"]


def create_access_token(subject: str, expires_minutes: int | None = None, issued_at: datetime | None = None) -> str:
    issued_at = issued_at or datetime.now(timezone.utc)
    lifetime = timedelta(minutes=expires_minutes or config.JWT_EXPIRES_MINUTES)
    payload = {"sub": subject, "iat": issued_at, "exp": issued_at + lifetime}
    return jwt.encode(payload, config.JWT_SECRET_KEY, algorithm=config.JWT_ALGORITHM)


def decode_access_token(token: str) -> dict:
    """Raises ``jwt.InvalidTokenError`` (or a subclass) on bad signature, expiry or missing claims."""
    return jwt.decode(
        token,
        config.JWT_SECRET_KEY,
        algorithms=[config.JWT_ALGORITHM],
        options={"require": REQUIRED_CLAIMS},
    )


def token_subject(token: str) -> str:
    return decode_access_token(token)["sub"]
