import pytest

from seminar_backend.core.errors import AuthorizationError
from seminar_backend.core.field_masks import (
    REPORT_FIELD_MASKS,
    TOPIC_FIELD_MASKS,
    USER_FIELD_MASKS,
    apply_field_mask,
)


def test_student_topic_update_drops_review_fields() -> None:
    updates = {'title': 'New', 'status': 'approved', 'feedback': 'self-approved', 'teacher_id': 'x'}

    assert apply_field_mask(updates, 'student', TOPIC_FIELD_MASKS) == {'title': 'New'}


def test_teacher_topic_update_keeps_review_fields() -> None:
    updates = {'status': 'approved', 'feedback': 'Looks good', 'unknown': 1}

    assert apply_field_mask(updates, 'teacher', TOPIC_FIELD_MASKS) == {'status': 'approved', 'feedback': 'Looks good'}


def test_student_report_update_is_title_only() -> None:
    updates = {'title': 'Final', 'grade': 'A', 'status': 'approved'}

    assert apply_field_mask(updates, 'student', REPORT_FIELD_MASKS) == {'title': 'Final'}


@pytest.mark.parametrize('role', ['student', 'teacher'])
def test_non_admin_cannot_change_role(role: str) -> None:
    with pytest.raises(AuthorizationError) as exception_info:
        apply_field_mask({'name': 'Me', 'role': 'admin'}, role, USER_FIELD_MASKS)

    assert exception_info.value.message == 'Not authorized to change role'


def test_non_admin_profile_update_drops_email_change() -> None:
    updates = {'name': 'Me', 'email': 'new@example.edu', 'is_email_verified': False}

    assert apply_field_mask(updates, 'student', USER_FIELD_MASKS) == {'name': 'Me'}


def test_admin_may_change_role_and_email() -> None:
    updates = {'role': 'teacher', 'email': 'new@example.edu'}

    assert apply_field_mask(updates, 'admin', USER_FIELD_MASKS) == updates


def test_unknown_role_is_rejected() -> None:
    with pytest.raises(AuthorizationError):
        apply_field_mask({'title': 'x'}, 'guest', TOPIC_FIELD_MASKS)
