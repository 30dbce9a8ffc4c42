import logging

from fastapi import APIRouter, Depends
from pydantic import Field, field_validator
from sqlalchemy.orm import Session

from seminar_backend.auth.dependencies import get_current_user, require_role
from seminar_backend.auth.verification import EMAIL_PATTERN, find_user_by_email, normalize_email
from seminar_backend.core.errors import AuthorizationError, ConflictError, NotFoundError, ValidationError
from seminar_backend.core.field_masks import USER_FIELD_MASKS, apply_field_mask
from seminar_backend.database import get_db
from seminar_backend.models.user import ROLES, User
from seminar_backend.routes.common import CamelModel, clean_text, require_valid_id
from seminar_backend.serializers import serialize_user

router = APIRouter(tags=['users'])

logger = logging.getLogger(__name__)


class UpdateUserRequest(CamelModel):
    name: str | None = None
    email: str | None = None
    role: str | None = None
    roll_number: str | None = Field(default=None, alias='rollNumber')
    department: str | None = None
    year: int | None = None
    specialization: str | None = None
    is_email_verified: bool | None = Field(default=None, alias='isEmailVerified')

    @field_validator('role')
    @classmethod
    def normalize_role(cls, value: str | None) -> str | None:
        return value.strip().lower() if value else value


def load_user(db: Session, user_id: str) -> User:
    user = db.get(User, require_valid_id(user_id, 'user id'))
    if user is None:
        raise NotFoundError('User not found')
    return user


def ensure_admin_or_self(current_user: User, user_id: str) -> None:
    if current_user.role != 'admin' and current_user.id != user_id.lower():
        raise AuthorizationError('Not authorized')


@router.get('/')
def list_users(current_user: User = Depends(require_role('admin')), db: Session = Depends(get_db)):
    users = db.query(User).order_by(User.created_at.desc()).all()
    return [serialize_user(user) for user in users]


@router.get('/{user_id}')
def get_user(user_id: str, current_user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    ensure_admin_or_self(current_user, user_id)
    return serialize_user(load_user(db, user_id))


@router.put('/{user_id}')
def update_user(
    user_id: str,
    data: UpdateUserRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    ensure_admin_or_self(current_user, user_id)
    user = load_user(db, user_id)

    updates = apply_field_mask(data.model_dump(exclude_unset=True), current_user.role, USER_FIELD_MASKS)

    if 'name' in updates:
        updates['name'] = clean_text(updates['name'])
        if not updates['name']:
            raise ValidationError('Name must not be blank')

    if 'role' in updates and updates['role'] not in ROLES:
        raise ValidationError('Invalid role. Must be student, teacher, or admin')

    if 'email' in updates:
        email = normalize_email(updates['email'])
        if not EMAIL_PATTERN.match(email):
            raise ValidationError('Invalid email format')
        existing = find_user_by_email(db, email)
        if existing is not None and existing.id != user.id:
            raise ConflictError('User already exists')
        updates['email'] = email

    for name, value in updates.items():
        setattr(user, name, value)
    db.commit()
    db.refresh(user)
    logger.info('User %s updated by %s: %s', user.id, current_user.id, ', '.join(sorted(updates)) or 'no changes')
    return serialize_user(user)


@router.delete('/{user_id}')
def delete_user(user_id: str, current_user: User = Depends(require_role('admin')), db: Session = Depends(get_db)):
    user = load_user(db, user_id)
    if user.id == current_user.id:
        raise ValidationError('You cannot delete your own account')

    db.delete(user)
    db.commit()
    logger.info('User %s deleted by %s', user.id, current_user.id)
    return {'message': 'User deleted successfully'}
