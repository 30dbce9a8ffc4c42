"""Seminar topic model definitions."""

from sqlalchemy import Column, DateTime, String, Text
from sqlalchemy.orm import relationship

from seminar_backend.database import Base
from seminar_backend.models.ids import new_id
from seminar_backend.models.user import utcnow

TOPIC_STATUSES = ('pending', 'approved', 'rejected')
REVIEWED_TOPIC_STATUSES = ('approved', 'rejected')


class Topic(Base):
    """A seminar topic proposed by a student and reviewed by a teacher."""
    __tablename__ = "topics"

    id = Column(String(36), primary_key=True, default=new_id)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=False)
    # Plain id references; deleting a user leaves their topics in place.
    student_id = Column(String(36), nullable=False, index=True)
    teacher_id = Column(String(36), index=True)
    status = Column(String(20), default='pending', nullable=False)
    submitted_at = Column(DateTime(timezone=True), default=utcnow)
    reviewed_at = Column(DateTime(timezone=True))
    feedback = Column(Text)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    student = relationship("User", primaryjoin="foreign(Topic.student_id) == User.id")
    teacher = relationship("User", primaryjoin="foreign(Topic.teacher_id) == User.id")
