"""Per-role write permissions for partial updates.

Each entity declares which fields every role may write. Fields outside the
mask are either dropped silently or rejected, depending on the mask.
"""

from dataclasses import dataclass, field
from typing import Any, Mapping

from seminar_backend.core.errors import AuthorizationError


@dataclass(frozen=True)
class FieldMask:
    writable: frozenset[str]
    # Fields that abort the update with 403 instead of being dropped.
    forbidden: frozenset[str] = field(default_factory=frozenset)


def mask(writable: set[str] | frozenset[str], forbidden: set[str] | frozenset[str] = frozenset()) -> FieldMask:
    return FieldMask(frozenset(writable), frozenset(forbidden))


def apply_field_mask(updates: Mapping[str, Any], role: str, masks: Mapping[str, FieldMask]) -> dict[str, Any]:
    role_mask = masks.get(role)
    if role_mask is None:
        raise AuthorizationError('Not authorized')

    blocked = sorted(name for name in updates if name in role_mask.forbidden)
    if blocked:
        raise AuthorizationError(f"Not authorized to change {', '.join(blocked)}")

    return {name: value for name, value in updates.items() if name in role_mask.writable}


TOPIC_REVIEW_FIELDS = {'status', 'feedback', 'teacher_id', 'reviewed_at'}

TOPIC_FIELD_MASKS = {
    'student': mask({'title', 'description'}),
    'teacher': mask({'title', 'description'} | TOPIC_REVIEW_FIELDS),
    'admin': mask({'title', 'description'} | TOPIC_REVIEW_FIELDS),
}

REPORT_REVIEW_FIELDS = {'status', 'feedback', 'grade', 'teacher_id'}

REPORT_FIELD_MASKS = {
    'student': mask({'title'}),
    'teacher': mask({'title'} | REPORT_REVIEW_FIELDS),
    'admin': mask({'title'} | REPORT_REVIEW_FIELDS),
}

USER_PROFILE_FIELDS = {'name', 'roll_number', 'department', 'year', 'specialization'}

USER_FIELD_MASKS = {
    'student': mask(USER_PROFILE_FIELDS, forbidden={'role'}),
    'teacher': mask(USER_PROFILE_FIELDS, forbidden={'role'}),
    'admin': mask(USER_PROFILE_FIELDS | {'role', 'email', 'is_email_verified'}),
}
