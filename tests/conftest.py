from datetime import date, datetime, timedelta

import pytest

from app import create_app
from config import TestConfig
from models import AttendanceRecord, ClassEnrollment, Promotion, Rank, Student, TrainingClass, User
from utils.extensions import db
from utils.seed import seed_ranks

PASSWORD = 'Password123'


def utc_today():
    return datetime.utcnow().date()


def born_years_ago(years):
    # 1 January keeps the age exact for the whole year
    return date(utc_today().year - years, 1, 1)


@pytest.fixture
def app(tmp_path):
    class Config(TestConfig):
        BACKUP_FOLDER = str(tmp_path / 'backups')

    app = create_app(Config)
    with app.app_context():
        db.create_all()
        seed_ranks()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def make_user(app):
    def _make_user(username, role='coordinator'):
        user = User(username=username, first_name=username.title(), last_name='Tester',
                    email=f'{username}@dojo.test', role=role)
        user.set_password(PASSWORD)
        db.session.add(user)
        db.session.commit()
        return user
    return _make_user


@pytest.fixture
def login(client):
    def _login(user):
        response = client.post('/auth/login', json={'username': user.username, 'password': PASSWORD})
        assert response.status_code == 200
        return response
    return _login


@pytest.fixture
def coordinator(make_user, login):
    user = make_user('coordinator', role='coordinator')
    login(user)
    return user


@pytest.fixture
def make_student(app):
    def _make_student(first_name, age, last_name='Silva', account=None):
        student = Student(first_name=first_name, last_name=last_name,
                          birth_date=born_years_ago(age),
                          account_id=account.id if account else None)
        db.session.add(student)
        db.session.commit()
        return student
    return _make_student


@pytest.fixture
def training_class(app):
    training_class = TrainingClass(name='Evening BJJ', min_age=4, max_age=99)
    db.session.add(training_class)
    db.session.commit()
    return training_class


@pytest.fixture
def add_attendance(training_class):
    """Add `count` present marks on consecutive days ending `end` (default today)."""
    def _add_attendance(student, count, end=None, present=True):
        end = end or utc_today()
        if not any(e.class_id == training_class.id for e in student.enrollments):
            db.session.add(ClassEnrollment(class_id=training_class.id, student_id=student.id))
        for offset in range(count):
            db.session.add(AttendanceRecord(student_id=student.id, class_id=training_class.id,
                                            date=end - timedelta(days=offset), is_present=present))
        db.session.commit()
    return _add_attendance


@pytest.fixture
def rank_named(app):
    def _rank_named(name):
        return Rank.query.filter_by(name=name).one()
    return _rank_named


@pytest.fixture
def give_rank(rank_named):
    def _give_rank(student, name, promoted_on, degree=0):
        promotion = Promotion(student_id=student.id, rank_id=rank_named(name).id,
                              degree=degree, promoted_on=promoted_on)
        db.session.add(promotion)
        db.session.commit()
        return promotion
    return _give_rank
