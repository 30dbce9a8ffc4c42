"""Seminar report model definitions."""

from sqlalchemy import Column, DateTime, Integer, String, Text
from sqlalchemy.orm import relationship

from seminar_backend.database import Base
from seminar_backend.models.ids import new_id
from seminar_backend.models.user import utcnow

REPORT_STATUSES = ('submitted', 'reviewed', 'approved', 'rejected')


class Report(Base):
    """An uploaded seminar report file and its review state."""
    __tablename__ = "reports"

    id = Column(String(36), primary_key=True, default=new_id)
    title = Column(String(255), nullable=False)
    # Plain id references, no foreign keys: deleting a topic or user leaves
    # the reports that point at it untouched.
    topic_id = Column(String(36), nullable=False, index=True)
    student_id = Column(String(36), nullable=False, index=True)
    teacher_id = Column(String(36), index=True)
    file_name = Column(String(255), nullable=False)
    storage_key = Column(String(512), nullable=False)
    file_size = Column(Integer, nullable=False)
    content_type = Column(String(127))
    submitted_at = Column(DateTime(timezone=True), default=utcnow)
    status = Column(String(20), default='submitted', nullable=False)
    feedback = Column(Text)
    grade = Column(String(20))
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    topic = relationship("Topic", primaryjoin="foreign(Report.topic_id) == Topic.id")
    student = relationship("User", primaryjoin="foreign(Report.student_id) == User.id")
    teacher = relationship("User", primaryjoin="foreign(Report.teacher_id) == User.id")
