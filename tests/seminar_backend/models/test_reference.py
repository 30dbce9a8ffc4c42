from types import SimpleNamespace

from seminar_backend.models.ids import is_valid_id, new_id
from seminar_backend.models.reference import (
    ExpandedReference,
    IdReference,
    is_referenced_by,
    reference_id,
    reference_to,
    summarize,
)
from seminar_backend.models.topic import Topic
from seminar_backend.serializers import serialize_topic


def test_reference_id_reads_both_shapes() -> None:
    record = SimpleNamespace(id='user-1', name='Alice', email='alice@example.edu')

    assert reference_id(IdReference('user-1')) == 'user-1'
    assert reference_id(ExpandedReference(record)) == 'user-1'
    assert reference_id(None) is None


def test_is_referenced_by_compares_ids_for_both_shapes() -> None:
    record = SimpleNamespace(id='user-1', name='Alice', email='alice@example.edu')

    assert is_referenced_by(IdReference('user-1'), 'user-1')
    assert is_referenced_by(ExpandedReference(record), 'user-1')
    assert not is_referenced_by(IdReference('user-2'), 'user-1')
    assert not is_referenced_by(None, 'user-1')


def test_summarize_only_expands_loaded_records() -> None:
    record = SimpleNamespace(id='user-1', name='Alice', email='alice@example.edu', hashed_password='x')

    assert summarize(ExpandedReference(record)) == {'id': 'user-1', 'name': 'Alice', 'email': 'alice@example.edu'}
    assert summarize(IdReference('user-1')) is None


def test_reference_to_uses_id_when_relationship_not_loaded(db_session, make_user, make_topic) -> None:
    student = make_user()
    topic_id = make_topic(student).id
    db_session.expire_all()

    topic = db_session.get(Topic, topic_id)
    ref = reference_to(topic, 'student', 'student_id')

    assert isinstance(ref, IdReference)
    assert ref.id == student.id
    assert reference_to(topic, 'teacher', 'teacher_id') is None


def test_reference_to_expands_loaded_relationship(db_session, make_user, make_topic) -> None:
    student = make_user(name='Alice')
    topic = make_topic(student)
    assert topic.student.name == 'Alice'

    ref = reference_to(topic, 'student', 'student_id')

    assert isinstance(ref, ExpandedReference)
    assert serialize_topic(topic)['student'] == {'id': student.id, 'name': 'Alice', 'email': student.email}
    assert serialize_topic(topic)['studentId'] == student.id


def test_new_id_is_valid_and_pending_keys_are_not() -> None:
    assert is_valid_id(new_id())
    assert is_valid_id(new_id().upper())
    assert not is_valid_id('a' * 32)
    assert not is_valid_id(None)
