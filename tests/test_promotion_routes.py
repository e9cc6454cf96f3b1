from datetime import timedelta

from conftest import utc_today
from models import ActionLog, Guardian, Notification, NotificationRecipient, Promotion, User
from utils.extensions import db


def test_promotion_requires_login(client):
    response = client.post('/promotion/1', json={'rank_id': 1, 'approved': True})
    assert response.status_code == 401
    assert response.get_json()['error'] == 'Authentication required.'


def test_instructor_cannot_promote(client, make_user, login, make_student, rank_named):
    login(make_user('sensei', role='instructor'))
    student = make_student('Ana', 20)

    response = client.post(f'/promotion/{student.id}', json={'rank_id': rank_named('Blue').id, 'approved': True})

    assert response.status_code == 403


def test_eligibility_of_new_youth_student(client, coordinator, make_student, add_attendance):
    student = make_student('Lia', 10)
    add_attendance(student, 30)

    data = client.get(f'/promotion/eligibility/{student.id}').get_json()

    assert data['track'] == 'youth'
    assert data['current_rank']['name'] == 'White'
    assert data['next_rank']['name'] == 'Grey-White'
    assert data['attendance'] == 30
    assert data['required'] == 30
    assert data['eligible'] is True
    assert data['status'] == 'ready'


def test_eligibility_unknown_student(client, coordinator):
    response = client.get('/promotion/eligibility/999')
    assert response.status_code == 404


def test_promote_adult_below_threshold(client, coordinator, make_student, add_attendance, rank_named):
    student = make_student('Bruno', 20)
    add_attendance(student, 39)

    response = client.post(f'/promotion/{student.id}', json={'rank_id': rank_named('Blue').id, 'approved': True})

    assert response.status_code == 400
    data = response.get_json()
    assert data['reason'] == 'attendance-insufficient'
    assert data['details'] == {'actual': 39, 'required': 40}
    assert Promotion.query.count() == 0


def test_promote_adult_white_to_blue(client, coordinator, make_student, add_attendance, rank_named):
    student = make_student('Bruno', 20)
    add_attendance(student, 40)

    response = client.post(f'/promotion/{student.id}',
                           json={'rank_id': rank_named('Blue').id, 'approved': True, 'notes': 'Solid guard'})

    assert response.status_code == 201
    data = response.get_json()
    assert data['promotion']['rank']['name'] == 'Blue'
    assert data['promotion']['degree'] == 0
    assert data['promotion']['promoted_on'] == utc_today().isoformat()
    assert data['promotion']['promoted_by_id'] == coordinator.id
    assert data['previous_rank']['name'] == 'White'

    current = client.get(f'/promotion/current/{student.id}').get_json()
    assert current['rank']['name'] == 'Blue'

    # the new promotion date becomes the baseline
    eligibility = client.get(f'/promotion/eligibility/{student.id}').get_json()
    assert eligibility['next_rank']['name'] == 'Purple'
    assert eligibility['attendance'] == 1


def test_promotion_needs_approval(client, coordinator, make_student, add_attendance, rank_named):
    student = make_student('Bruno', 20)
    add_attendance(student, 40)

    response = client.post(f'/promotion/{student.id}', json={'rank_id': rank_named('Blue').id})

    assert response.status_code == 400
    assert response.get_json()['error'] == 'approval required'


def test_skip_is_rejected(client, coordinator, make_student, add_attendance, give_rank, rank_named):
    student = make_student('Caio', 25)
    give_rank(student, 'Blue', utc_today() - timedelta(days=200))
    add_attendance(student, 100)

    response = client.post(f'/promotion/{student.id}', json={'rank_id': rank_named('Brown').id, 'approved': True})

    assert response.status_code == 400
    assert response.get_json()['reason'] == 'skip-forbidden'


def test_youth_cannot_get_adult_rank(client, coordinator, make_student, add_attendance, give_rank, rank_named):
    student = make_student('Duda', 12)
    give_rank(student, 'Green-Black', utc_today() - timedelta(days=200))
    add_attendance(student, 100)

    response = client.post(f'/promotion/{student.id}', json={'rank_id': rank_named('Blue').id, 'approved': True})

    assert response.status_code == 400
    assert response.get_json()['reason'] == 'track-mismatch'


def test_purple_grants_instructor_role_and_notifies(client, coordinator, make_user, make_student,
                                                   add_attendance, give_rank, rank_named):
    pupil = make_user('pupil', role='student')
    student = make_student('Eva', 22, account=pupil)
    give_rank(student, 'Blue', utc_today() - timedelta(days=100))
    add_attendance(student, 45)
    db.session.add(Guardian(student_id=student.id, name='Rita', relation='Mother', email='rita@example.com'))
    db.session.add(Guardian(student_id=student.id, name='Joao', relation='Father'))
    db.session.commit()

    response = client.post(f'/promotion/{student.id}', json={'rank_id': rank_named('Purple').id, 'approved': True})

    assert response.status_code == 201
    data = response.get_json()
    assert data['account_role'] == 'student_instructor'
    assert data['guardians_notified'] == 1
    assert db.session.get(User, pupil.id).role == 'student_instructor'

    notice = Notification.query.filter_by(type='promotion').one()
    recipients = {r.user_id for r in NotificationRecipient.query.filter_by(notification_id=notice.id)}
    assert recipients == {coordinator.id, pupil.id}


def test_history_is_newest_first(client, coordinator, make_student, give_rank):
    student = make_student('Fabio', 30)
    give_rank(student, 'Blue', utc_today() - timedelta(days=400))
    give_rank(student, 'Purple', utc_today() - timedelta(days=100))

    history = client.get(f'/promotion/history/{student.id}').get_json()

    assert [p['rank']['name'] for p in history] == ['Purple', 'Blue']


def test_current_rank_defaults_to_base(client, coordinator, make_student):
    student = make_student('Gabi', 9)

    data = client.get(f'/promotion/current/{student.id}').get_json()

    assert data['rank']['name'] == 'White'
    assert data['degree'] == 0
    assert data['promoted_on'] is None


def test_eligible_list_filters_by_status(client, coordinator, make_student, add_attendance):
    ready = make_student('Hugo', 10)
    add_attendance(ready, 30)
    near = make_student('Iris', 10)
    add_attendance(near, 27)
    make_student('Joana', 10)

    everyone = client.get('/promotion/eligible').get_json()
    only_ready = client.get('/promotion/eligible?only=ready').get_json()

    assert {r['name'] for r in everyone} == {ready.full_name, near.full_name}
    assert [r['student_id'] for r in only_ready] == [ready.id]
    assert client.get('/promotion/eligible?only=far').status_code == 400


def test_approval_must_be_exactly_true(client, coordinator, make_student, add_attendance, rank_named):
    student = make_student('Bruno', 20)
    add_attendance(student, 40)

    for approved in ('no', 1, 'true', 'N'):
        response = client.post(f'/promotion/{student.id}',
                               json={'rank_id': rank_named('Blue').id, 'approved': approved})
        assert response.status_code == 400
        assert response.get_json()['error'] == 'approval required'
    assert Promotion.query.count() == 0


def test_degree_is_not_coerced(client, coordinator, make_student, add_attendance, rank_named):
    student = make_student('Bruno', 20)
    add_attendance(student, 40)

    for degree in (2.7, True, '1'):
        response = client.post(f'/promotion/{student.id}',
                               json={'rank_id': rank_named('Blue').id, 'degree': degree, 'approved': True})
        assert response.status_code == 400
        assert response.get_json()['error'] == 'Degree must be an integer.'
    assert Promotion.query.count() == 0


def test_same_belt_promotion_records_degree_award(client, coordinator, make_student, add_attendance,
                                                   give_rank, rank_named):
    student = make_student('Caio', 25)
    give_rank(student, 'Blue', utc_today() - timedelta(days=200))
    add_attendance(student, 30)

    response = client.post(f'/promotion/{student.id}',
                           json={'rank_id': rank_named('Blue').id, 'degree': 2, 'approved': True})

    assert response.status_code == 201
    assert response.get_json()['promotion']['degree'] == 2
    assert response.get_json()['previous_rank']['name'] == 'Blue'


def test_minimum_days_between_promotions(client, coordinator, make_student, add_attendance,
                                          give_rank, rank_named):
    blue, purple = rank_named('Blue'), rank_named('Purple')
    client.put('/ranks/transitions', json={'from_rank_id': blue.id, 'to_rank_id': purple.id,
                                           'youth_required': 45, 'adult_required': 45, 'min_days': 365})
    student = make_student('Davi', 25)
    give_rank(student, 'Blue', utc_today() - timedelta(days=100))
    add_attendance(student, 50)

    eligibility = client.get(f'/promotion/eligibility/{student.id}').get_json()
    assert eligibility['eligible'] is True
    assert eligibility['days_since_promotion'] == 100
    assert eligibility['time_ok'] is False
    assert eligibility['status'] == 'near'

    response = client.post(f'/promotion/{student.id}', json={'rank_id': purple.id, 'approved': True})

    assert response.status_code == 400
    data = response.get_json()
    assert data['reason'] == 'interval-not-met'
    assert data['details'] == {'days': 100, 'min_days': 365}
    assert Promotion.query.count() == 1


def test_promotion_is_written_to_action_log(client, coordinator, make_student, add_attendance, rank_named):
    student = make_student('Bruno', 20)
    add_attendance(student, 40)

    response = client.post(f'/promotion/{student.id}', json={'rank_id': rank_named('Blue').id, 'approved': True})

    entry = ActionLog.query.one()
    assert entry.action == 'promotion'
    assert entry.user_id == coordinator.id
    assert entry.related_type == 'promotion'
    assert entry.related_id == response.get_json()['promotion']['id']
    assert 'from White to Blue' in entry.description

    listed = client.get('/reports/actions?action=promotion').get_json()
    assert [a['id'] for a in listed] == [entry.id]
    assert client.get('/reports/actions?action=login').get_json() == []


def test_rejected_promotion_leaves_no_action_log(client, coordinator, make_student, rank_named):
    student = make_student('Bruno', 20)

    response = client.post(f'/promotion/{student.id}', json={'rank_id': rank_named('Blue').id, 'approved': True})

    assert response.status_code == 400
    assert ActionLog.query.count() == 0
