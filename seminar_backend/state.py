"""Process-wide service instances and their FastAPI providers.

Tests replace these through ``app.dependency_overrides``.
"""

from datetime import timedelta

from seminar_backend.auth.pending_store import InMemoryPendingStore, PendingStore
from seminar_backend.core import config
from seminar_backend.services.email_service import EmailService
from seminar_backend.services.file_store import FileStore, create_file_store
from seminar_backend.services.outbox import EmailOutbox, Outbox

registration_store: PendingStore = InMemoryPendingStore(
    name='pending-registrations',
    ttl=timedelta(minutes=config.OTP_TTL_MINUTES),
    max_attempts=config.OTP_MAX_ATTEMPTS,
)
reset_store: PendingStore = InMemoryPendingStore(
    name='password-resets',
    ttl=timedelta(minutes=config.OTP_TTL_MINUTES),
    max_attempts=config.OTP_MAX_ATTEMPTS,
)
email_outbox = EmailOutbox(EmailService())
file_store: FileStore = create_file_store()


def get_registration_store() -> PendingStore:
    return registration_store


def get_reset_store() -> PendingStore:
    return reset_store


def get_outbox() -> Outbox:
    return email_outbox


def get_file_store() -> FileStore:
    return file_store
