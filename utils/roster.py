# utils/roster.py
"""
SQLAlchemy-backed Roster for the promotion engine.

Nothing here commits: the request that drives the engine owns the transaction.
"""
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm.exc import StaleDataError

from models import AttendanceRecord, ClassEnrollment, Promotion, Rank, RankTransition, Student, User
from utils import errors
from utils.extensions import db
from utils.promotion import (AccountInfo, TransitionRequirement, PromotionInfo,
                             RankInfo, Roster, StudentInfo)


def rank_info(rank):
    return RankInfo(id=rank.id, name=rank.name, order=rank.order,
                    min_age=rank.min_age, grants_instructor=bool(rank.grants_instructor))


def student_info(student):
    return StudentInfo(id=student.id, name=student.full_name, birth_date=student.birth_date,
                       reset_baseline_date=student.attendance_reset_on,
                       account_id=student.account_id)


def promotion_info(promotion):
    return PromotionInfo(id=promotion.id, student_id=promotion.student_id,
                         rank_id=promotion.rank_id, degree=promotion.degree,
                         promoted_on=promotion.promoted_on)


class SqlRoster(Roster):

    def __init__(self, session=None):
        self.session = session if session is not None else db.session
        self._ranks = None
        self._requirements = None

    def get_student(self, student_id, for_update=False):
        try:
            query = self.session.query(Student).filter(Student.id == student_id)
            if for_update:
                query = query.with_for_update()
            student = query.first()
        except SQLAlchemyError as e:
            raise errors.StorageError("Could not load student.") from e
        if student is None:
            raise errors.NotFound(f"Student {student_id} not found.", student_id=student_id)
        return student_info(student)

    def get_ranks(self):
        # Reference data; one read per roster instance
        if self._ranks is None:
            try:
                self._ranks = [rank_info(r) for r in self.session.query(Rank).order_by(Rank.order).all()]
            except SQLAlchemyError as e:
                raise errors.StorageError("Could not load ranks.") from e
        return self._ranks

    def get_attendance_requirements(self):
        if self._requirements is None:
            try:
                self._requirements = {
                    (t.from_rank_id, t.to_rank_id): TransitionRequirement(
                        t.youth_required, t.adult_required, t.min_days)
                    for t in self.session.query(RankTransition).all()
                }
            except SQLAlchemyError as e:
                raise errors.StorageError("Could not load rank transitions.") from e
        return self._requirements

    def get_latest_promotion(self, student_id):
        try:
            promotion = (self.session.query(Promotion)
                         .filter(Promotion.student_id == student_id)
                         .order_by(Promotion.promoted_on.desc(), Promotion.id.desc())
                         .first())
        except SQLAlchemyError as e:
            raise errors.StorageError("Could not load promotion history.") from e
        return promotion_info(promotion) if promotion else None

    def count_attendance(self, student_id, since=None):
        try:
            query = self.session.query(AttendanceRecord).filter(
                AttendanceRecord.student_id == student_id,
                AttendanceRecord.is_present.is_(True),
            )
            if since is not None:
                query = query.filter(AttendanceRecord.date >= since)
            return query.count()
        except SQLAlchemyError as e:
            raise errors.StorageError("Could not count attendance.") from e

    def create_promotion(self, student_id, rank_id, degree, promoted_on, promoted_by=None, notes=None):
        student = self.session.get(Student, student_id)
        if student is None:
            raise errors.NotFound(f"Student {student_id} not found.", student_id=student_id)

        promotion = Promotion(student_id=student_id, rank_id=rank_id, degree=degree,
                              promoted_on=promoted_on, approved=True,
                              promoted_by_id=promoted_by, notes=notes)
        student.ledger_version = student.ledger_version + 1
        self.session.add(promotion)
        try:
            self.session.flush()
        except StaleDataError as e:
            raise errors.ConcurrentUpdate(
                "Student was promoted by another request; reload and try again.",
                student_id=student_id) from e
        except SQLAlchemyError as e:
            raise errors.StorageError("Could not record promotion.") from e
        return promotion_info(promotion)

    def get_account(self, account_id):
        user = self.session.get(User, account_id)
        if user is None:
            return None
        return AccountInfo(id=user.id, role=user.role)

    def update_account_role(self, account_id, role):
        user = self.session.get(User, account_id)
        if user is None:
            raise errors.NotFound(f"Account {account_id} not found.", account_id=account_id)
        user.role = role
        try:
            self.session.flush()
        except SQLAlchemyError as e:
            raise errors.StorageError("Could not update account role.") from e


def active_student_ids(class_id=None):
    query = db.session.query(Student.id).filter(Student.active.is_(True))
    if class_id is not None:
        query = query.join(ClassEnrollment, ClassEnrollment.student_id == Student.id) \
            .filter(ClassEnrollment.class_id == class_id)
    return [row.id for row in query.order_by(Student.id).all()]
