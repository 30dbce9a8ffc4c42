import pytest
from pydantic import ValidationError as PydanticValidationError

from seminar_backend.core.errors import AuthorizationError, NotFoundError, ValidationError
from seminar_backend.routes.topic_routes import (
    CreateTopicRequest,
    UpdateTopicRequest,
    create_topic,
    delete_topic,
    get_topic,
    list_topics,
    update_topic,
)
from seminar_backend.models.report import Report
from seminar_backend.serializers import serialize_report


def test_create_topic_stamps_owner_and_pending_status(db_session, make_user) -> None:
    student = make_user()

    topic = create_topic(
        CreateTopicRequest(title='  Edge Computing ', description='Latency at the edge'),
        current_user=student,
        db=db_session,
    )

    assert topic['title'] == 'Edge Computing'
    assert topic['status'] == 'pending'
    assert topic['studentId'] == student.id
    assert topic['student']['email'] == student.email
    assert topic['teacherId'] is None


def test_create_topic_request_rejects_blank_title() -> None:
    with pytest.raises(PydanticValidationError):
        CreateTopicRequest(title='   ', description='x')


def test_student_update_strips_review_fields(db_session, make_user, make_topic) -> None:
    student = make_user()
    topic = make_topic(student)

    updated = update_topic(
        topic.id,
        UpdateTopicRequest(title='Renamed', status='approved', feedback='self-approved'),
        current_user=student,
        db=db_session,
    )

    assert updated['title'] == 'Renamed'
    assert updated['status'] == 'pending'
    assert updated['feedback'] is None


def test_student_cannot_edit_someone_elses_topic(db_session, make_user, make_topic) -> None:
    owner = make_user()
    other = make_user()
    topic = make_topic(owner)

    with pytest.raises(AuthorizationError):
        update_topic(topic.id, UpdateTopicRequest(title='Mine now'), current_user=other, db=db_session)


def test_student_cannot_edit_reviewed_topic(db_session, make_user, make_topic) -> None:
    student = make_user()
    topic = make_topic(student, status='approved')

    with pytest.raises(AuthorizationError):
        update_topic(topic.id, UpdateTopicRequest(title='Late change'), current_user=student, db=db_session)


def test_teacher_approval_stamps_reviewer_and_time(db_session, make_user, make_topic) -> None:
    student = make_user()
    teacher = make_user(role='teacher', name='Prof')
    topic = make_topic(student)

    updated = update_topic(
        topic.id,
        UpdateTopicRequest(status='approved', feedback='Good scope'),
        current_user=teacher,
        db=db_session,
    )

    assert updated['status'] == 'approved'
    assert updated['teacherId'] == teacher.id
    assert updated['teacher']['name'] == 'Prof'
    assert updated['reviewedAt'] is not None
    assert updated['feedback'] == 'Good scope'


def test_teacher_update_rejects_unknown_reviewer(db_session, make_user, make_topic) -> None:
    student = make_user()
    teacher = make_user(role='teacher')
    topic = make_topic(student)

    with pytest.raises(ValidationError):
        update_topic(
            topic.id,
            UpdateTopicRequest(status='approved', teacherId=student.id),
            current_user=teacher,
            db=db_session,
        )


def test_update_topic_request_rejects_unknown_status() -> None:
    with pytest.raises(PydanticValidationError):
        UpdateTopicRequest(status='archived')


def test_list_topics_is_scoped_for_students(db_session, make_user, make_topic) -> None:
    alice = make_user()
    bob = make_user()
    teacher = make_user(role='teacher')
    make_topic(alice, title='Alice topic')
    make_topic(bob, title='Bob topic')

    alice_view = list_topics(current_user=alice, db=db_session)
    teacher_view = list_topics(current_user=teacher, db=db_session)

    assert [topic['title'] for topic in alice_view] == ['Alice topic']
    assert {topic['title'] for topic in teacher_view} == {'Alice topic', 'Bob topic'}


def test_get_topic_hides_other_students_topics(db_session, make_user, make_topic) -> None:
    owner = make_user()
    other = make_user()
    topic = make_topic(owner)

    with pytest.raises(AuthorizationError):
        get_topic(topic.id, current_user=other, db=db_session)


def test_get_topic_rejects_malformed_and_missing_ids(db_session, make_user) -> None:
    student = make_user()

    with pytest.raises(ValidationError):
        get_topic('not-an-id', current_user=student, db=db_session)
    with pytest.raises(NotFoundError):
        get_topic('0b5e1f3a-2c4d-4e6f-8a9b-0c1d2e3f4a5b', current_user=student, db=db_session)


def test_delete_topic_allowed_for_owner_not_teacher(db_session, make_user, make_topic) -> None:
    student = make_user()
    teacher = make_user(role='teacher')
    topic = make_topic(student)

    with pytest.raises(AuthorizationError):
        delete_topic(topic.id, current_user=teacher, db=db_session)

    assert delete_topic(topic.id, current_user=student, db=db_session) == {'message': 'Topic deleted successfully'}


def test_topic_endpoints_over_http(client, make_user, auth_header) -> None:
    student = make_user()
    teacher = make_user(role='teacher')

    created = client.post(
        '/api/topics/',
        json={'title': 'Swarm Robotics', 'description': 'Coordination without a leader'},
        headers=auth_header(student),
    )
    teacher_create = client.post(
        '/api/topics/',
        json={'title': 'Nope', 'description': 'Teachers do not propose topics'},
        headers=auth_header(teacher),
    )
    reviewed = client.put(
        f'/api/topics/{created.json()["id"]}',
        json={'status': 'rejected', 'feedback': 'Too broad'},
        headers=auth_header(teacher),
    )

    assert created.status_code == 201
    assert teacher_create.status_code == 403
    assert reviewed.status_code == 200
    assert reviewed.json()['teacherId'] == teacher.id
    assert reviewed.json()['status'] == 'rejected'


def test_student_cannot_create_topic_for_someone_else(client, make_user, auth_header) -> None:
    student = make_user()
    victim = make_user()

    response = client.post(
        '/api/topics/',
        json={'title': 'Spoofed', 'description': 'Owner in body', 'studentId': victim.id, 'student_id': victim.id},
        headers=auth_header(student),
    )

    assert response.status_code == 201
    assert response.json()['studentId'] == student.id


def test_deleting_topic_keeps_its_reports(db_session, make_user, make_topic, make_report) -> None:
    student = make_user()
    topic = make_topic(student)
    report_id = make_report(topic).id

    assert delete_topic(topic.id, current_user=student, db=db_session) == {'message': 'Topic deleted successfully'}

    db_session.expire_all()
    report = db_session.get(Report, report_id)
    assert report is not None
    assert report.topic is None
    assert serialize_report(report)['topicId'] == topic.id
