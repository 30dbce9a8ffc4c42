import os
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

os.environ.setdefault('DATABASE_URL', 'sqlite://')
os.environ.setdefault('JWT_SECRET_KEY', 'test-secret-key')
os.environ.setdefault('BCRYPT_ROUNDS', '4')
os.environ.setdefault('EMAIL_ENABLED', 'false')
os.environ.setdefault('STORAGE_BACKEND', 'local')

from seminar_backend.auth import jwt_handler  # noqa: E402
from seminar_backend.auth.passwords import hash_password  # noqa: E402
from seminar_backend.auth.pending_store import InMemoryPendingStore  # noqa: E402
from seminar_backend.database import Base  # noqa: E402
from seminar_backend.models.report import Report  # noqa: E402
from seminar_backend.models.topic import Topic  # noqa: E402
from seminar_backend.models.user import User  # noqa: E402
from seminar_backend.services.file_store import LocalFileStore  # noqa: E402

TEST_PASSWORD = 'secret123'


class FakeClock:
    def __init__(self, start: datetime | None = None):
        self.now = start or datetime(2026, 1, 5, 9, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class FakeOutbox:
    """Records queued messages instead of sending them."""

    def __init__(self):
        self.messages = []

    def enqueue(self, message) -> bool:
        self.messages.append(message)
        return True

    def kinds(self) -> list[str]:
        return [message.kind for message in self.messages]

    def last_to(self, address: str):
        matching = [message for message in self.messages if message.to == address]
        return matching[-1] if matching else None


@pytest.fixture
def engine():
    engine = create_engine(
        'sqlite://',
        connect_args={'check_same_thread': False},
        poolclass=StaticPool,
    )

    @event.listens_for(engine, 'connect')
    def enforce_foreign_keys(dbapi_connection, connection_record):
        # Match Postgres: SQLite ignores foreign keys unless asked.
        cursor = dbapi_connection.cursor()
        cursor.execute('PRAGMA foreign_keys=ON')
        cursor.close()

    Base.metadata.create_all(bind=engine, tables=[User.__table__, Topic.__table__, Report.__table__])
    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine, tables=[Report.__table__, Topic.__table__, User.__table__])
        engine.dispose()


@pytest.fixture
def db_session(engine):
    testing_session_local = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    db = testing_session_local()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def registration_store(clock):
    return InMemoryPendingStore(name='test-registrations', ttl=timedelta(minutes=10), max_attempts=3, clock=clock)


@pytest.fixture
def reset_store(clock):
    return InMemoryPendingStore(name='test-resets', ttl=timedelta(minutes=10), max_attempts=3, clock=clock)


@pytest.fixture
def outbox():
    return FakeOutbox()


@pytest.fixture
def file_store(tmp_path):
    return LocalFileStore(tmp_path / 'reports')


@pytest.fixture
def make_user(db_session):
    def factory(role: str = 'student', email: str | None = None, name: str | None = None, **fields) -> User:
        user = User(
            email=email or f'{role}-{len(db_session.query(User).all()) + 1}@example.edu',
            hashed_password=hash_password(fields.pop('password', TEST_PASSWORD)),
            name=name or role.capitalize(),
            role=role,
            is_email_verified=True,
            **fields,
        )
        db_session.add(user)
        db_session.commit()
        db_session.refresh(user)
        return user

    return factory


@pytest.fixture
def make_topic(db_session):
    def factory(student: User, title: str = 'Quantum Networking', status: str = 'pending', **fields) -> Topic:
        topic = Topic(
            title=title,
            description=fields.pop('description', 'A survey of entanglement distribution.'),
            student_id=student.id,
            status=status,
            **fields,
        )
        db_session.add(topic)
        db_session.commit()
        db_session.refresh(topic)
        return topic

    return factory


@pytest.fixture
def make_report(db_session):
    def factory(topic: Topic, title: str = 'Final Report', **fields) -> Report:
        report = Report(
            title=title,
            topic_id=topic.id,
            student_id=fields.pop('student_id', topic.student_id),
            file_name=fields.pop('file_name', 'report.pdf'),
            storage_key=fields.pop('storage_key', f'{topic.student_id}_report.pdf'),
            file_size=fields.pop('file_size', 128),
            content_type='application/pdf',
            **fields,
        )
        db_session.add(report)
        db_session.commit()
        db_session.refresh(report)
        return report

    return factory


@pytest.fixture
def auth_header():
    def build(user: User) -> dict[str, str]:
        return {'Authorization': f'Bearer {jwt_handler.create_access_token(subject=user.id)}'}

    return build


@pytest.fixture
def client(engine, registration_store, reset_store, outbox, file_store):
    from fastapi.testclient import TestClient

    from seminar_backend.database import get_db
    from seminar_backend.main import app
    from seminar_backend.state import get_file_store, get_outbox, get_registration_store, get_reset_store

    testing_session_local = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    def override_get_db():
        db = testing_session_local()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_registration_store] = lambda: registration_store
    app.dependency_overrides[get_reset_store] = lambda: reset_store
    app.dependency_overrides[get_outbox] = lambda: outbox
    app.dependency_overrides[get_file_store] = lambda: file_store
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
