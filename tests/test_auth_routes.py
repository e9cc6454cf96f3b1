from datetime import date

from conftest import PASSWORD
from models import User
from utils.extensions import db
from utils.notifications import PromotionNotifier
from utils.promotion import PromotionGranted, PromotionInfo, RankInfo, StudentInfo


def test_health_check(client):
    response = client.get('/health')
    assert response.status_code == 200
    assert response.get_json() == {'status': 'ok'}


def test_unknown_route_is_json(client):
    response = client.get('/rota-que-nao-existe')
    assert response.status_code == 404
    assert 'error' in response.get_json()


def test_login_and_me(client, make_user):
    make_user('sensei', role='instructor')

    response = client.post('/auth/login', json={'username': 'SENSEI', 'password': PASSWORD})

    assert response.status_code == 200
    assert client.get('/auth/me').get_json()['role'] == 'instructor'


def test_bad_password(client, make_user):
    make_user('sensei', role='instructor')

    response = client.post('/auth/login', json={'username': 'sensei', 'password': 'wrong'})

    assert response.status_code == 401
    assert client.get('/auth/me').status_code == 401


def test_logout(client, coordinator):
    assert client.post('/auth/logout').status_code == 200
    assert client.get('/auth/me').status_code == 401


def test_coordinator_creates_instructor(client, coordinator):
    response = client.post('/auth/users', json={
        'username': 'sensei', 'first_name': 'Kenji', 'last_name': 'Sato',
        'role': 'instructor', 'password': 'secret1', 'email': 'kenji@dojo.test'})

    assert response.status_code == 201
    user = User.query.filter_by(username='sensei').one()
    assert user.check_password('secret1')


def test_only_admin_creates_coordinators(client, coordinator):
    response = client.post('/auth/users', json={
        'username': 'boss', 'first_name': 'Big', 'last_name': 'Boss',
        'role': 'coordinator', 'password': 'secret1'})

    assert response.status_code == 400


def test_username_must_be_unique(client, make_user, login):
    login(make_user('admin', role='admin'))

    response = client.post('/auth/users', json={
        'username': 'Admin', 'first_name': 'A', 'last_name': 'B',
        'role': 'coordinator', 'password': 'secret1'})

    assert response.status_code == 400
    assert response.get_json()['details'] == {'username': 'Admin'}


def test_notifications_can_be_read(client, coordinator, make_student, give_rank):
    student = make_student('Ana', 20)
    promotion = give_rank(student, 'Blue', date(2026, 3, 1))
    PromotionNotifier()(PromotionGranted(
        PromotionInfo(promotion.id, student.id, promotion.rank_id, 0, promotion.promoted_on),
        StudentInfo(student.id, student.full_name, student.birth_date),
        RankInfo(1, 'White', 1), RankInfo(promotion.rank_id, 'Blue', 14)))
    db.session.commit()

    unread = client.get('/auth/notifications').get_json()
    assert len(unread) == 1
    assert unread[0]['message'] == 'Ana Silva was promoted from White to Blue on 01 March 2026.'

    assert client.post(f"/auth/notifications/{unread[0]['id']}/read").status_code == 200
    assert client.get('/auth/notifications').get_json() == []
