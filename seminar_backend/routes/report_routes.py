import logging
import os

from fastapi import APIRouter, Depends, File, Form, UploadFile, status
from fastapi.responses import FileResponse, RedirectResponse
from pydantic import Field, field_validator
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, joinedload

from seminar_backend.auth.dependencies import get_current_user, require_role
from seminar_backend.core import config
from seminar_backend.core.errors import (
    AuthorizationError,
    NotFoundError,
    UpstreamUnavailableError,
    ValidationError,
)
from seminar_backend.core.field_masks import REPORT_FIELD_MASKS, apply_field_mask
from seminar_backend.database import get_db
from seminar_backend.models.reference import is_referenced_by, reference_to
from seminar_backend.models.report import REPORT_STATUSES, Report
from seminar_backend.models.topic import Topic
from seminar_backend.models.user import User, utcnow
from seminar_backend.routes.common import CamelModel, clean_text, require_valid_id
from seminar_backend.serializers import serialize_report
from seminar_backend.services import email_service
from seminar_backend.services.file_store import FileStore, FileStoreError, StoredFileMissing
from seminar_backend.services.outbox import Outbox
from seminar_backend.state import get_file_store, get_outbox

router = APIRouter(tags=['reports'])

logger = logging.getLogger(__name__)

ELEVATED_ROLES = ('teacher', 'admin')
ALLOWED_EXTENSIONS = {'.pdf', '.doc', '.docx'}
ALLOWED_CONTENT_TYPES = {
    'application/pdf',
    'application/msword',
    'application/vnd.openxmlformats-officedocument.wordprocessingml.document',
    # Some browsers send Word files without a specific type.
    'application/octet-stream',
}
REVIEWED_REPORT_STATUSES = ('reviewed', 'approved', 'rejected')
NOTIFY_REPORT_STATUSES = ('approved', 'rejected')


class UpdateReportRequest(CamelModel):
    title: str | None = None
    status: str | None = None
    feedback: str | None = None
    grade: str | None = None
    teacher_id: str | None = Field(default=None, alias='teacherId')

    @field_validator('status')
    @classmethod
    def validate_status(cls, value: str | None) -> str | None:
        if value is None:
            return None
        normalized = value.strip().lower()
        if normalized not in REPORT_STATUSES:
            raise ValueError('Invalid status. Must be submitted, reviewed, approved, or rejected')
        return normalized

    @field_validator('grade', mode='before')
    @classmethod
    def coerce_grade(cls, value):
        return str(value).strip() if value is not None else None


def load_report(db: Session, report_id: str) -> Report:
    report = (
        db.query(Report)
        .options(joinedload(Report.student), joinedload(Report.teacher))
        .filter(Report.id == require_valid_id(report_id, 'report id'))
        .first()
    )
    if report is None:
        raise NotFoundError('Report not found')
    return report


def is_report_owner(report: Report, user: User) -> bool:
    return is_referenced_by(reference_to(report, 'student', 'student_id'), user.id)


def ensure_can_view(report: Report, user: User) -> None:
    if user.role == 'student' and not is_report_owner(report, user):
        raise AuthorizationError('Not authorized')


def validate_upload(file: UploadFile) -> bytes:
    """Check the upload's name, type and size and return its bytes."""
    if file is None or not file.filename:
        raise ValidationError('Report file is required')

    extension = os.path.splitext(file.filename)[1].lower()
    if extension not in ALLOWED_EXTENSIONS:
        raise ValidationError('Only PDF and Word documents (.pdf, .doc, .docx) are allowed')

    content_type = (file.content_type or 'application/octet-stream').split(';')[0].strip().lower()
    if content_type not in ALLOWED_CONTENT_TYPES:
        raise ValidationError('Only PDF and Word documents (.pdf, .doc, .docx) are allowed')

    data = file.file.read(config.MAX_UPLOAD_BYTES + 1)
    if len(data) > config.MAX_UPLOAD_BYTES:
        limit_mb = config.MAX_UPLOAD_BYTES // (1024 * 1024)
        raise ValidationError(f'File too large. Maximum size is {limit_mb} MB')
    if not data:
        raise ValidationError('Uploaded file is empty')
    return data


@router.get('/')
def list_reports(current_user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    query = db.query(Report).options(joinedload(Report.student), joinedload(Report.teacher))
    if current_user.role == 'student':
        query = query.filter(Report.student_id == current_user.id)
    reports = query.order_by(Report.submitted_at.desc()).all()
    return [serialize_report(report) for report in reports]


@router.get('/{report_id}')
def get_report(report_id: str, current_user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    report = load_report(db, report_id)
    ensure_can_view(report, current_user)
    return serialize_report(report)


@router.post('/', status_code=status.HTTP_201_CREATED)
def create_report(
    title: str = Form(...),
    topic_id: str = Form(..., alias='topicId'),
    file: UploadFile = File(...),
    current_user: User = Depends(require_role('student')),
    db: Session = Depends(get_db),
    store: FileStore = Depends(get_file_store),
    outbox: Outbox = Depends(get_outbox),
):
    title = clean_text(title)
    if not title:
        raise ValidationError('Title is required')

    topic_id = require_valid_id(topic_id, 'topic id')
    topic = db.get(Topic, topic_id)
    if topic is None:
        raise NotFoundError('Topic not found')
    if not is_referenced_by(reference_to(topic, 'student', 'student_id'), current_user.id):
        raise AuthorizationError('You can only submit reports for your own topics')

    data = validate_upload(file)

    try:
        stored = store.save(data, file.filename, file.content_type, owner_id=current_user.id)
    except FileStoreError as exc:
        logger.error('Report upload failed for %s: %s', current_user.email, exc)
        raise UpstreamUnavailableError('File storage is unavailable. Please try again later.') from exc

    report = Report(
        title=title,
        topic_id=topic.id,
        student_id=current_user.id,
        file_name=os.path.basename(file.filename),
        storage_key=stored.storage_key,
        file_size=stored.size,
        content_type=file.content_type,
        submitted_at=utcnow(),
        status='submitted',
    )
    db.add(report)
    try:
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        store.delete(stored.storage_key)
        logger.exception('Could not save report metadata, removed stored file %s', stored.storage_key)
        raise

    outbox.enqueue(email_service.report_submitted_email(current_user.email, current_user.name, title))
    logger.info('Report %s submitted by %s', report.id, current_user.email)
    return serialize_report(load_report(db, report.id))


@router.put('/{report_id}')
def update_report(
    report_id: str,
    data: UpdateReportRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    outbox: Outbox = Depends(get_outbox),
):
    report = load_report(db, report_id)
    if current_user.role not in ELEVATED_ROLES and not is_report_owner(report, current_user):
        raise AuthorizationError('Not authorized')

    updates = apply_field_mask(data.model_dump(exclude_unset=True), current_user.role, REPORT_FIELD_MASKS)

    if 'title' in updates:
        updates['title'] = clean_text(updates['title'])
        if not updates['title']:
            raise ValidationError('Title must not be blank')

    if updates.get('teacher_id'):
        teacher_id = require_valid_id(updates['teacher_id'], 'teacher id')
        reviewer = db.get(User, teacher_id)
        if reviewer is None or reviewer.role not in ELEVATED_ROLES:
            raise ValidationError('Teacher not found')
        updates['teacher_id'] = teacher_id

    if updates.get('status') in REVIEWED_REPORT_STATUSES and not updates.get('teacher_id'):
        updates['teacher_id'] = current_user.id

    previous_status = report.status
    for name, value in updates.items():
        setattr(report, name, value)
    db.commit()
    db.expire_all()
    report = load_report(db, report.id)

    if report.status in NOTIFY_REPORT_STATUSES and report.status != previous_status and report.student is not None:
        outbox.enqueue(
            email_service.report_reviewed_email(
                report.student.email,
                report.student.name,
                report.title,
                report.status,
                feedback=report.feedback,
                grade=report.grade,
            )
        )
    return serialize_report(report)


@router.get('/{report_id}/download')
def download_report(
    report_id: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    store: FileStore = Depends(get_file_store),
):
    report = load_report(db, report_id)
    ensure_can_view(report, current_user)

    try:
        location = store.locate(report.storage_key, report.file_name)
    except StoredFileMissing as exc:
        logger.warning('Stored file %s for report %s is missing', report.storage_key, report.id)
        raise NotFoundError('File not found') from exc
    except FileStoreError as exc:
        raise UpstreamUnavailableError('File storage is unavailable. Please try again later.') from exc

    if location.url:
        return RedirectResponse(location.url, status_code=status.HTTP_307_TEMPORARY_REDIRECT)
    return FileResponse(
        location.path,
        media_type=report.content_type or 'application/octet-stream',
        filename=report.file_name,
    )


@router.delete('/{report_id}')
def delete_report(
    report_id: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    store: FileStore = Depends(get_file_store),
):
    report = load_report(db, report_id)
    if current_user.role != 'admin' and not is_report_owner(report, current_user):
        raise AuthorizationError('Not authorized')

    storage_key = report.storage_key
    db.delete(report)
    db.commit()

    if not store.delete(storage_key):
        logger.warning('Stored file %s was not removed for report %s', storage_key, report_id)
    return {'message': 'Report deleted successfully'}
