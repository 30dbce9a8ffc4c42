"""JSON views of durable records. Password hashes never leave this module."""

from datetime import datetime
from typing import Any, Optional

from seminar_backend.models.reference import reference_id, reference_to, summarize
from seminar_backend.models.report import Report
from seminar_backend.models.topic import Topic
from seminar_backend.models.user import User


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def serialize_user(user: User) -> dict[str, Any]:
    return {
        'id': user.id,
        'email': user.email,
        'name': user.name,
        'role': user.role,
        'rollNumber': user.roll_number,
        'department': user.department,
        'year': user.year,
        'specialization': user.specialization,
        'isEmailVerified': bool(user.is_email_verified),
        'createdAt': _iso(user.created_at),
        'updatedAt': _iso(user.updated_at),
    }


def serialize_topic(topic: Topic) -> dict[str, Any]:
    student = reference_to(topic, 'student', 'student_id')
    teacher = reference_to(topic, 'teacher', 'teacher_id')
    return {
        'id': topic.id,
        'title': topic.title,
        'description': topic.description,
        'studentId': reference_id(student),
        'student': summarize(student),
        'teacherId': reference_id(teacher),
        'teacher': summarize(teacher),
        'status': topic.status,
        'submittedAt': _iso(topic.submitted_at),
        'reviewedAt': _iso(topic.reviewed_at),
        'feedback': topic.feedback,
    }


def serialize_report(report: Report) -> dict[str, Any]:
    student = reference_to(report, 'student', 'student_id')
    teacher = reference_to(report, 'teacher', 'teacher_id')
    topic = reference_to(report, 'topic', 'topic_id')
    return {
        'id': report.id,
        'title': report.title,
        'topicId': reference_id(topic),
        'studentId': reference_id(student),
        'student': summarize(student),
        'teacherId': reference_id(teacher),
        'teacher': summarize(teacher),
        'fileName': report.file_name,
        # Clients always fetch through the API; storage locations stay private.
        'fileUrl': f'/api/reports/{report.id}/download',
        'fileSize': report.file_size,
        'contentType': report.content_type,
        'submittedAt': _iso(report.submitted_at),
        'status': report.status,
        'feedback': report.feedback,
        'grade': report.grade,
    }
