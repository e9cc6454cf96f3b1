from flask_login import UserMixin
from werkzeug.security import generate_password_hash, check_password_hash
from datetime import datetime

from utils.extensions import db

ROLES = ('admin', 'coordinator', 'instructor', 'student', 'student_instructor')
STAFF_ROLES = ('admin', 'coordinator', 'instructor', 'student_instructor')
MANAGER_ROLES = ('admin', 'coordinator')


class User(db.Model, UserMixin):
    __tablename__ = 'user'

    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(100), unique=True, nullable=False)
    email = db.Column(db.String(120), unique=True, nullable=True)
    first_name = db.Column(db.String(100), nullable=False)
    last_name = db.Column(db.String(100), nullable=False)
    role = db.Column(db.String(20), nullable=False, default='student')
    password_hash = db.Column(db.String(200), nullable=False)
    active = db.Column(db.Boolean, default=True, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    def set_password(self, password: str):
        self.password_hash = generate_password_hash(password)

    def check_password(self, password: str) -> bool:
        return check_password_hash(self.password_hash, password)

    @property
    def is_active(self):
        return self.active

    @property
    def is_staff(self):
        return self.role in STAFF_ROLES

    @property
    def is_manager(self):
        return self.role in MANAGER_ROLES

    @property
    def full_name(self):
        return f"{self.first_name} {self.last_name}"


class Rank(db.Model):
    __tablename__ = 'rank'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), unique=True, nullable=False)
    order = db.Column(db.Integer, unique=True, nullable=False)
    image_url = db.Column(db.String(255), nullable=True)
    min_age = db.Column(db.Integer, nullable=True)
    # The rank at which a student becomes eligible to teach
    grants_instructor = db.Column(db.Boolean, default=False, nullable=False)

    def __repr__(self):
        return f"<Rank {self.order}:{self.name}>"


class RankTransition(db.Model):
    """Attendance (per age track) and minimum days needed to go from one rank to another."""
    __tablename__ = 'rank_transition'

    id = db.Column(db.Integer, primary_key=True)
    from_rank_id = db.Column(db.Integer, db.ForeignKey('rank.id', ondelete='CASCADE'), nullable=False)
    to_rank_id = db.Column(db.Integer, db.ForeignKey('rank.id', ondelete='CASCADE'), nullable=False)
    youth_required = db.Column(db.Integer, nullable=False)
    adult_required = db.Column(db.Integer, nullable=False)
    min_days = db.Column(db.Integer, nullable=True)  # since the last promotion

    from_rank = db.relationship('Rank', foreign_keys=[from_rank_id],
                                backref=db.backref('outgoing_transitions', cascade='all, delete-orphan'))
    to_rank = db.relationship('Rank', foreign_keys=[to_rank_id],
                              backref=db.backref('incoming_transitions', cascade='all, delete-orphan'))

    __table_args__ = (
        db.UniqueConstraint('from_rank_id', 'to_rank_id', name='uq_rank_transition'),
    )


class Student(db.Model):
    __tablename__ = 'student'

    id = db.Column(db.Integer, primary_key=True)
    first_name = db.Column(db.String(100), nullable=False)
    last_name = db.Column(db.String(100), nullable=False)
    birth_date = db.Column(db.Date, nullable=False)
    gender = db.Column(db.String(20))
    phone = db.Column(db.String(20))
    email = db.Column(db.String(120))
    attendance_reset_on = db.Column(db.Date, nullable=True)
    account_id = db.Column(db.Integer, db.ForeignKey('user.id'), unique=True, nullable=True)
    active = db.Column(db.Boolean, default=True, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    # Bumped by every promotion; concurrent promotions of one student collide on it
    ledger_version = db.Column(db.Integer, nullable=False, default=1)

    account = db.relationship('User', backref=db.backref('student_profile', uselist=False))
    guardians = db.relationship('Guardian', back_populates='student', cascade='all, delete-orphan')
    enrollments = db.relationship('ClassEnrollment', back_populates='student', cascade='all, delete-orphan')
    promotions = db.relationship('Promotion', back_populates='student',
                                 order_by='Promotion.promoted_on.desc()')

    __mapper_args__ = {
        'version_id_col': ledger_version,
        'version_id_generator': False,
    }

    @property
    def full_name(self):
        return f"{self.first_name} {self.last_name}"


class Guardian(db.Model):
    __tablename__ = 'guardian'

    id = db.Column(db.Integer, primary_key=True)
    student_id = db.Column(db.Integer, db.ForeignKey('student.id'), nullable=False)
    name = db.Column(db.String(150), nullable=False)
    relation = db.Column(db.String(50), nullable=False)  # e.g. Mother, Father, Guardian
    phone = db.Column(db.String(20))
    email = db.Column(db.String(120))

    student = db.relationship('Student', back_populates='guardians')


class TrainingClass(db.Model):
    __tablename__ = 'training_class'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    created_on = db.Column(db.Date, nullable=False, default=lambda: datetime.utcnow().date())
    min_age = db.Column(db.Integer, nullable=False)
    max_age = db.Column(db.Integer, nullable=False)
    total_sessions = db.Column(db.Integer, default=0)
    instructor_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=True)
    coordinator_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=True)
    active = db.Column(db.Boolean, default=True, nullable=False)

    instructor = db.relationship('User', foreign_keys=[instructor_id])
    coordinator = db.relationship('User', foreign_keys=[coordinator_id])
    enrollments = db.relationship('ClassEnrollment', back_populates='training_class',
                                  cascade='all, delete-orphan')
    attendance = db.relationship('AttendanceRecord', back_populates='training_class',
                                 cascade='all, delete-orphan')

    def __repr__(self):
        return f"<TrainingClass {self.name}>"


class ClassEnrollment(db.Model):
    __tablename__ = 'class_enrollment'

    id = db.Column(db.Integer, primary_key=True)
    class_id = db.Column(db.Integer, db.ForeignKey('training_class.id'), nullable=False)
    student_id = db.Column(db.Integer, db.ForeignKey('student.id'), nullable=False)
    enrolled_at = db.Column(db.DateTime, default=datetime.utcnow)

    training_class = db.relationship('TrainingClass', back_populates='enrollments')
    student = db.relationship('Student', back_populates='enrollments')

    __table_args__ = (
        db.UniqueConstraint('class_id', 'student_id', name='uq_class_enrollment'),
    )


class AttendanceRecord(db.Model):
    __tablename__ = 'attendance_record'

    id = db.Column(db.Integer, primary_key=True)
    student_id = db.Column(db.Integer, db.ForeignKey('student.id'), nullable=False)
    class_id = db.Column(db.Integer, db.ForeignKey('training_class.id'), nullable=False)
    date = db.Column(db.Date, nullable=False)
    is_present = db.Column(db.Boolean, default=False, nullable=False)
    recorded_by_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=True)

    student = db.relationship('Student')
    training_class = db.relationship('TrainingClass', back_populates='attendance')
    recorded_by = db.relationship('User')

    __table_args__ = (
        db.UniqueConstraint('class_id', 'student_id', 'date', name='uq_attendance_session'),
    )


class Promotion(db.Model):
    """Append-only ledger of granted ranks."""
    __tablename__ = 'promotion'

    id = db.Column(db.Integer, primary_key=True)
    student_id = db.Column(db.Integer, db.ForeignKey('student.id'), nullable=False, index=True)
    rank_id = db.Column(db.Integer, db.ForeignKey('rank.id'), nullable=False)
    degree = db.Column(db.Integer, nullable=False, default=0)
    promoted_on = db.Column(db.Date, nullable=False)
    approved = db.Column(db.Boolean, nullable=False, default=True)
    promoted_by_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=True)
    notes = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    student = db.relationship('Student', back_populates='promotions')
    rank = db.relationship('Rank', backref='promotions')
    promoted_by = db.relationship('User')


class Notification(db.Model):
    __tablename__ = 'notifications'

    id = db.Column(db.Integer, primary_key=True)
    type = db.Column(db.String(50), nullable=False)  # e.g. 'promotion', 'general'
    title = db.Column(db.String(200), nullable=False)
    message = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    sender_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=True)

    related_type = db.Column(db.String(50), nullable=True)  # link target type
    related_id = db.Column(db.Integer, nullable=True)        # target object id

    sender = db.relationship('User', foreign_keys=[sender_id])

    recipients = db.relationship(
        "NotificationRecipient",
        back_populates="notification",
        cascade="all, delete-orphan"
    )


class NotificationRecipient(db.Model):
    __tablename__ = 'notification_recipients'

    id = db.Column(db.Integer, primary_key=True)
    notification_id = db.Column(db.Integer, db.ForeignKey('notifications.id'), nullable=False)
    user_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False)

    is_read = db.Column(db.Boolean, default=False)
    read_at = db.Column(db.DateTime, nullable=True)

    notification = db.relationship('Notification', back_populates='recipients')
    user = db.relationship('User', backref='notifications_received')


class ActionLog(db.Model):
    """Audit trail of staff actions, e.g. one 'promotion' row per ledger entry."""
    __tablename__ = 'action_log'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=True)
    action = db.Column(db.String(50), nullable=False, index=True)
    description = db.Column(db.Text, nullable=False)
    related_type = db.Column(db.String(50), nullable=True)
    related_id = db.Column(db.Integer, nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    user = db.relationship('User')
