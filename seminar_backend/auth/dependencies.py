import logging

import jwt
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from seminar_backend.auth import jwt_handler
from seminar_backend.core.errors import AuthenticationError, AuthorizationError
from seminar_backend.database import get_db
from seminar_backend.models.ids import is_valid_id
from seminar_backend.models.user import User

logger = logging.getLogger(__name__)

security = HTTPBearer(auto_error=False)


def authenticate_token(token: str | None, db: Session) -> User:
    """Resolve a bearer token to its user or raise ``AuthenticationError``."""
    if not token:
        logger.info("Rejected request without bearer token")
        raise AuthenticationError()

    try:
        user_id = jwt_handler.token_subject(token)
    except jwt.InvalidTokenError as exc:
        logger.info("Rejected bearer token: %s", exc)
        raise AuthenticationError("Invalid or expired token") from exc

    if not is_valid_id(user_id):
        logger.info("Rejected bearer token with malformed subject %r", user_id)
        raise AuthenticationError()

    user = db.get(User, user_id)
    if user is None:
        logger.info("Rejected bearer token for unknown user %s", user_id)
        raise AuthenticationError()
    return user


def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
    db: Session = Depends(get_db),
) -> User:
    token = credentials.credentials if credentials and credentials.scheme.lower() == "bearer" else None
    return authenticate_token(token, db)


def check_role(user: User, allowed_roles: tuple[str, ...]) -> User:
    if user.role not in allowed_roles:
        logger.info("User %s with role %s denied; requires one of %s", user.id, user.role, allowed_roles)
        raise AuthorizationError("Access denied")
    return user


def require_role(*allowed_roles: str):
    def dependency(current_user: User = Depends(get_current_user)) -> User:
        return check_role(current_user, allowed_roles)

    return dependency
