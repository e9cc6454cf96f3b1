# utils/promotion.py
"""
Belt promotion rules.

Works only against the Roster interface below so it can run without Flask
or a database. Dates are always passed in by the caller.
"""
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import date
from typing import Optional

from utils import errors

logger = logging.getLogger(__name__)

YOUTH = "youth"
ADULT = "adult"

YOUTH_AGE_LIMIT = 16
YOUTH_MAX_RANK_ORDER = 13
DEFAULT_REQUIRED_ATTENDANCE = 30
NEAR_PROMOTION_MARGIN = 5
MAX_DEGREE = 4

STUDENT_ROLE = "student"
STUDENT_INSTRUCTOR_ROLE = "student_instructor"

STATUS_READY = "ready"
STATUS_NEAR = "near"
STATUS_FAR = "far"
STATUS_NOT_APPLICABLE = "not-applicable"


@dataclass(frozen=True)
class RankInfo:
    id: int
    name: str
    order: int
    min_age: Optional[int] = None
    grants_instructor: bool = False


@dataclass(frozen=True)
class StudentInfo:
    id: int
    name: str
    birth_date: date
    reset_baseline_date: Optional[date] = None
    account_id: Optional[int] = None


@dataclass(frozen=True)
class AccountInfo:
    id: int
    role: str


@dataclass(frozen=True)
class PromotionInfo:
    id: int
    student_id: int
    rank_id: int
    degree: int
    promoted_on: date


@dataclass(frozen=True)
class TransitionRequirement:
    youth: int
    adult: int
    min_days: Optional[int] = None

    def for_track(self, track):
        return self.youth if track == YOUTH else self.adult


@dataclass
class EligibilityReport:
    student: StudentInfo
    age: int
    track: str
    current_rank: RankInfo
    next_rank: Optional[RankInfo]
    baseline: Optional[date]
    attendance: int
    required: Optional[int]
    near_margin: int = NEAR_PROMOTION_MARGIN
    days_since_promotion: Optional[int] = None
    min_days: Optional[int] = None

    @property
    def applicable(self):
        return self.next_rank is not None

    @property
    def eligible(self):
        return self.applicable and self.attendance >= self.required

    @property
    def time_ok(self):
        """False while the minimum interval since the last promotion is still running."""
        if self.min_days is None or self.days_since_promotion is None:
            return True
        return self.days_since_promotion >= self.min_days

    @property
    def missing(self):
        if not self.applicable:
            return None
        return max(0, self.required - self.attendance)

    @property
    def status(self):
        if not self.applicable:
            return STATUS_NOT_APPLICABLE
        if self.eligible and self.time_ok:
            return STATUS_READY
        if self.missing <= self.near_margin:
            return STATUS_NEAR
        return STATUS_FAR


@dataclass(frozen=True)
class PromotionGranted:
    promotion: PromotionInfo
    student: StudentInfo
    previous_rank: RankInfo
    rank: RankInfo
    promoted_by: Optional[int] = None


class Roster(ABC):
    """Storage the engine reads students, ranks and attendance from and writes promotions to."""

    @abstractmethod
    def get_student(self, student_id, for_update=False):
        """Return a StudentInfo or raise errors.NotFound."""

    @abstractmethod
    def get_ranks(self):
        """Return every RankInfo."""

    @abstractmethod
    def get_attendance_requirements(self):
        """Return {(from_rank_id, to_rank_id): TransitionRequirement}."""

    @abstractmethod
    def get_latest_promotion(self, student_id):
        """Return the newest PromotionInfo for the student, or None."""

    @abstractmethod
    def count_attendance(self, student_id, since=None):
        """Count present marks on or after `since` (all history when None)."""

    @abstractmethod
    def create_promotion(self, student_id, rank_id, degree, promoted_on, promoted_by=None, notes=None):
        """Append a ledger entry and return its PromotionInfo."""

    @abstractmethod
    def get_account(self, account_id):
        """Return an AccountInfo, or None."""

    @abstractmethod
    def update_account_role(self, account_id, role):
        """Change the role of a linked account."""


def calculate_age(birth_date, today):
    age = today.year - birth_date.year
    if (today.month, today.day) < (birth_date.month, birth_date.day):
        age -= 1
    return age


class PromotionEngine:
    """Evaluates eligibility and validates promotions for one roster."""

    def __init__(self, roster, youth_age_limit=YOUTH_AGE_LIMIT,
                 youth_max_rank_order=YOUTH_MAX_RANK_ORDER,
                 default_required=DEFAULT_REQUIRED_ATTENDANCE,
                 near_margin=NEAR_PROMOTION_MARGIN, max_degree=MAX_DEGREE,
                 listeners=None):
        self.roster = roster
        self.youth_age_limit = youth_age_limit
        self.youth_max_rank_order = youth_max_rank_order
        self.default_required = default_required
        self.near_margin = near_margin
        self.max_degree = max_degree
        self.listeners = list(listeners or [])

    @classmethod
    def from_config(cls, roster, config, listeners=None):
        return cls(
            roster,
            youth_age_limit=config.get('YOUTH_AGE_LIMIT', YOUTH_AGE_LIMIT),
            youth_max_rank_order=config.get('YOUTH_MAX_RANK_ORDER', YOUTH_MAX_RANK_ORDER),
            default_required=config.get('DEFAULT_REQUIRED_ATTENDANCE', DEFAULT_REQUIRED_ATTENDANCE),
            near_margin=config.get('NEAR_PROMOTION_MARGIN', NEAR_PROMOTION_MARGIN),
            max_degree=config.get('MAX_DEGREE', MAX_DEGREE),
            listeners=listeners,
        )

    def subscribe(self, listener):
        self.listeners.append(listener)

    # ----- tracks and ranks -----

    def track_for_age(self, age):
        return YOUTH if age < self.youth_age_limit else ADULT

    def in_track(self, rank, track):
        if track == YOUTH:
            return rank.order <= self.youth_max_rank_order
        return rank.order > self.youth_max_rank_order

    def _sorted_ranks(self):
        ranks = sorted(self.roster.get_ranks(), key=lambda r: r.order)
        if not ranks:
            raise errors.NotFound("No ranks are configured.")
        return ranks

    def _current_rank(self, student_id, ranks):
        """Rank and promotion the student currently holds; the base rank when the ledger is empty."""
        latest = self.roster.get_latest_promotion(student_id)
        if latest is None:
            return ranks[0], None
        for rank in ranks:
            if rank.id == latest.rank_id:
                return rank, latest
        raise errors.NotFound(f"Rank {latest.rank_id} of the latest promotion no longer exists.")

    def _next_rank(self, current, track, ranks):
        for rank in ranks:
            if rank.order > current.order and self.in_track(rank, track):
                return rank
        return None

    def _baseline(self, student, latest):
        if student.reset_baseline_date is not None:
            return student.reset_baseline_date
        if latest is not None:
            return latest.promoted_on
        return None

    def _requirement(self, current, target):
        return self.roster.get_attendance_requirements().get((current.id, target.id))

    def required_attendance(self, current, target, track):
        requirement = self._requirement(current, target)
        if requirement is None:
            return self.default_required
        return requirement.for_track(track)

    def minimum_days(self, current, target):
        requirement = self._requirement(current, target)
        return requirement.min_days if requirement else None

    # ----- operations -----

    def evaluate_eligibility(self, student_id, today):
        student = self.roster.get_student(student_id)
        return self._evaluate(student, self._sorted_ranks(), today)

    def evaluate_roster(self, student_ids, today):
        ranks = self._sorted_ranks()
        return [self._evaluate(self.roster.get_student(student_id), ranks, today)
                for student_id in student_ids]

    def _evaluate(self, student, ranks, today):
        age = calculate_age(student.birth_date, today)
        track = self.track_for_age(age)
        current, latest = self._current_rank(student.id, ranks)
        next_rank = self._next_rank(current, track, ranks)
        baseline = self._baseline(student, latest)
        required = min_days = None
        if next_rank is not None:
            required = self.required_attendance(current, next_rank, track)
            min_days = self.minimum_days(current, next_rank)

        return EligibilityReport(
            student, age, track, current, next_rank, baseline,
            attendance=self.roster.count_attendance(student.id, baseline),
            required=required,
            near_margin=self.near_margin,
            days_since_promotion=(today - latest.promoted_on).days if latest else None,
            min_days=min_days,
        )

    def promote(self, student_id, rank_id, degree, approved, today, promoted_by=None, notes=None):
        """
        Validate and record a promotion.

        Raises NotFound, ValidationError or RuleViolation without writing anything.
        On success the ledger entry is created through the roster and every
        listener receives the PromotionGranted event; committing is the caller's job.
        """
        student = self.roster.get_student(student_id, for_update=True)
        ranks = self._sorted_ranks()
        target = next((r for r in ranks if r.id == rank_id), None)
        if target is None:
            raise errors.NotFound(f"Rank {rank_id} not found.", rank_id=rank_id)

        if isinstance(degree, bool) or not isinstance(degree, int):
            raise errors.ValidationError("Degree must be an integer.", degree=degree)
        if degree < 0 or degree > self.max_degree:
            raise errors.ValidationError(
                f"Degree must be between 0 and {self.max_degree}.",
                degree=degree, max_degree=self.max_degree)
        if approved is not True:
            raise errors.ValidationError("approval required")

        current, latest = self._current_rank(student.id, ranks)
        age = calculate_age(student.birth_date, today)
        track = self.track_for_age(age)

        if track == YOUTH and not self.in_track(target, YOUTH):
            raise errors.RuleViolation(
                errors.TRACK_MISMATCH, "youth students may only hold youth-track ranks",
                age=age, target_order=target.order, youth_max_order=self.youth_max_rank_order)
        if track == ADULT and not self.in_track(target, ADULT):
            raise errors.RuleViolation(
                errors.TRACK_MISMATCH, "adult students may not hold youth-track ranks",
                age=age, target_order=target.order, youth_max_order=self.youth_max_rank_order)

        next_rank = self._next_rank(current, track, ranks)
        allowed_order = next_rank.order if next_rank else current.order
        if target.order > allowed_order:
            raise errors.RuleViolation(
                errors.SKIP_FORBIDDEN, "ranks cannot be skipped",
                current_order=current.order, target_order=target.order,
                next_order=next_rank.order if next_rank else None)

        # Same order passes: it records a new degree on the belt already held
        if target.order < current.order:
            raise errors.RuleViolation(
                errors.DEMOTION_FORBIDDEN, "promotion cannot lower the student's rank",
                current_order=current.order, target_order=target.order)

        if target.min_age is not None and age < target.min_age:
            raise errors.RuleViolation(
                errors.AGE_BELOW_MINIMUM,
                f"minimum age for {target.name} is {target.min_age}",
                age=age, min_age=target.min_age)

        baseline = self._baseline(student, latest)
        attendance = self.roster.count_attendance(student.id, baseline)
        required = self.required_attendance(current, target, track)
        if attendance < required:
            raise errors.RuleViolation(
                errors.ATTENDANCE_INSUFFICIENT,
                f"insufficient attendance: {attendance}/{required}",
                actual=attendance, required=required)

        min_days = self.minimum_days(current, target)
        if min_days is not None and latest is not None:
            elapsed = (today - latest.promoted_on).days
            if elapsed < min_days:
                raise errors.RuleViolation(
                    errors.INTERVAL_NOT_MET,
                    f"minimum interval not met: {elapsed}/{min_days} days",
                    days=elapsed, min_days=min_days)

        promotion = self.roster.create_promotion(
            student.id, target.id, degree, today, promoted_by=promoted_by, notes=notes)
        logger.info("Student %s promoted from %s to %s (degree %s)",
                    student.id, current.name, target.name, degree)

        event = PromotionGranted(promotion, student, current, target, promoted_by)
        for listener in self.listeners:
            listener(event)
        return event


class InstructorRoleGrant:
    """Turns a student's account into a student-instructor once they reach a teaching rank."""

    def __init__(self, roster):
        self.roster = roster

    def __call__(self, event):
        if not event.rank.grants_instructor or event.student.account_id is None:
            return
        account = self.roster.get_account(event.student.account_id)
        if account is None or account.role != STUDENT_ROLE:
            return
        self.roster.update_account_role(account.id, STUDENT_INSTRUCTOR_ROLE)
        logger.info("Account %s granted %s role", account.id, STUDENT_INSTRUCTOR_ROLE)
