from datetime import datetime

from fastapi import APIRouter, Depends, status
from pydantic import Field, field_validator
from sqlalchemy.orm import Session, joinedload

from seminar_backend.auth.dependencies import get_current_user, require_role
from seminar_backend.core.errors import AuthorizationError, NotFoundError, ValidationError
from seminar_backend.core.field_masks import TOPIC_FIELD_MASKS, apply_field_mask
from seminar_backend.database import get_db
from seminar_backend.models.reference import is_referenced_by, reference_to
from seminar_backend.models.topic import REVIEWED_TOPIC_STATUSES, TOPIC_STATUSES, Topic
from seminar_backend.models.user import User, utcnow
from seminar_backend.routes.common import CamelModel, clean_text, require_valid_id
from seminar_backend.serializers import serialize_topic

router = APIRouter(tags=['topics'])

ELEVATED_ROLES = ('teacher', 'admin')


class CreateTopicRequest(CamelModel):
    title: str
    description: str

    @field_validator('title', 'description')
    @classmethod
    def validate_not_blank(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError('must not be blank')
        return normalized


class UpdateTopicRequest(CamelModel):
    title: str | None = None
    description: str | None = None
    status: str | None = None
    feedback: str | None = None
    teacher_id: str | None = Field(default=None, alias='teacherId')
    reviewed_at: datetime | None = Field(default=None, alias='reviewedAt')

    @field_validator('status')
    @classmethod
    def validate_status(cls, value: str | None) -> str | None:
        if value is None:
            return None
        normalized = value.strip().lower()
        if normalized not in TOPIC_STATUSES:
            raise ValueError('Invalid status. Must be pending, approved, or rejected')
        return normalized


def load_topic(db: Session, topic_id: str) -> Topic:
    topic = (
        db.query(Topic)
        .options(joinedload(Topic.student), joinedload(Topic.teacher))
        .filter(Topic.id == require_valid_id(topic_id, 'topic id'))
        .first()
    )
    if topic is None:
        raise NotFoundError('Topic not found')
    return topic


def is_topic_owner(topic: Topic, user: User) -> bool:
    return is_referenced_by(reference_to(topic, 'student', 'student_id'), user.id)


def ensure_reviewer_exists(db: Session, teacher_id: str) -> str:
    teacher_id = require_valid_id(teacher_id, 'teacher id')
    reviewer = db.get(User, teacher_id)
    if reviewer is None or reviewer.role not in ELEVATED_ROLES:
        raise ValidationError('Teacher not found')
    return teacher_id


@router.get('/')
def list_topics(current_user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    query = db.query(Topic).options(joinedload(Topic.student), joinedload(Topic.teacher))
    if current_user.role == 'student':
        query = query.filter(Topic.student_id == current_user.id)
    topics = query.order_by(Topic.submitted_at.desc()).all()
    return [serialize_topic(topic) for topic in topics]


@router.get('/{topic_id}')
def get_topic(topic_id: str, current_user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    topic = load_topic(db, topic_id)
    if current_user.role == 'student' and not is_topic_owner(topic, current_user):
        raise AuthorizationError('Not authorized')
    return serialize_topic(topic)


@router.post('/', status_code=status.HTTP_201_CREATED)
def create_topic(
    data: CreateTopicRequest,
    current_user: User = Depends(require_role('student')),
    db: Session = Depends(get_db),
):
    topic = Topic(
        title=data.title,
        description=data.description,
        student_id=current_user.id,
        status='pending',
        submitted_at=utcnow(),
    )
    db.add(topic)
    db.commit()
    return serialize_topic(load_topic(db, topic.id))


@router.put('/{topic_id}')
def update_topic(
    topic_id: str,
    data: UpdateTopicRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    topic = load_topic(db, topic_id)

    if current_user.role not in ELEVATED_ROLES:
        if not is_topic_owner(topic, current_user):
            raise AuthorizationError('Not authorized')
        if topic.status != 'pending':
            raise AuthorizationError('Only pending topics can be edited')

    updates = apply_field_mask(data.model_dump(exclude_unset=True), current_user.role, TOPIC_FIELD_MASKS)

    for text_field in ('title', 'description'):
        if text_field in updates:
            updates[text_field] = clean_text(updates[text_field])
            if not updates[text_field]:
                raise ValidationError(f'{text_field.capitalize()} must not be blank')

    if updates.get('teacher_id'):
        updates['teacher_id'] = ensure_reviewer_exists(db, updates['teacher_id'])

    if updates.get('status') in REVIEWED_TOPIC_STATUSES:
        if not updates.get('teacher_id'):
            updates['teacher_id'] = current_user.id
        if not updates.get('reviewed_at'):
            updates['reviewed_at'] = utcnow()

    for name, value in updates.items():
        setattr(topic, name, value)
    db.commit()
    db.expire_all()
    return serialize_topic(load_topic(db, topic.id))


@router.delete('/{topic_id}')
def delete_topic(topic_id: str, current_user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    topic = load_topic(db, topic_id)
    if current_user.role != 'admin' and not (current_user.role == 'student' and is_topic_owner(topic, current_user)):
        raise AuthorizationError('Not authorized')

    db.delete(topic)
    db.commit()
    return {'message': 'Topic deleted successfully'}
