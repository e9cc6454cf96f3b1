from datetime import date

import pytest
from sqlalchemy import text

from models import Promotion, Student
from utils import errors
from utils.extensions import db
from utils.roster import SqlRoster, active_student_ids


def test_latest_promotion_prefers_newest_date(app, make_student, give_rank, rank_named):
    student = make_student('Ana', 25)
    give_rank(student, 'Purple', date(2025, 6, 1))
    give_rank(student, 'Blue', date(2024, 6, 1))

    latest = SqlRoster().get_latest_promotion(student.id)

    assert latest.rank_id == rank_named('Purple').id
    assert latest.promoted_on == date(2025, 6, 1)


def test_count_attendance_since(app, make_student, add_attendance):
    student = make_student('Ana', 25)
    add_attendance(student, 10, end=date(2026, 1, 10))
    add_attendance(student, 4, end=date(2025, 12, 1), present=False)

    roster = SqlRoster()

    assert roster.count_attendance(student.id) == 10
    assert roster.count_attendance(student.id, since=date(2026, 1, 8)) == 3


def test_requirements_are_keyed_by_rank_ids(app, rank_named):
    requirements = SqlRoster().get_attendance_requirements()

    white_to_blue = requirements[(rank_named('White').id, rank_named('Blue').id)]
    assert (white_to_blue.youth, white_to_blue.adult) == (30, 40)


def test_concurrent_promotion_is_detected(app, make_student, rank_named):
    student = make_student('Ana', 25)
    db.session.get(Student, student.id)
    # another writer already bumped the ledger
    db.session.execute(text('UPDATE student SET ledger_version = ledger_version + 1 WHERE id = :id'),
                       {'id': student.id})

    with pytest.raises(errors.ConcurrentUpdate):
        SqlRoster().create_promotion(student.id, rank_named('Blue').id, 0, date(2026, 1, 1))
    db.session.rollback()
    assert Promotion.query.count() == 0


def test_unknown_student(app):
    with pytest.raises(errors.NotFound):
        SqlRoster().get_student(12345)


def test_active_student_ids_by_class(app, make_student, add_attendance, training_class):
    enrolled = make_student('Ana', 10)
    make_student('Bruno', 10)
    add_attendance(enrolled, 1)

    assert active_student_ids(training_class.id) == [enrolled.id]
    assert len(active_student_ids()) == 2
