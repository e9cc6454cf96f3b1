from flask import Blueprint, current_app, jsonify, request
from flask_login import login_required
from sqlalchemy import or_

from forms import GuardianForm, GuardianUpdateForm, StudentForm, StudentUpdateForm
from models import db, ClassEnrollment, Guardian, Student, User
from utils import errors
from utils.helpers import int_arg, manager_required, raise_form_errors, submitted, today
from utils.serializers import serialize_guardian, serialize_student

student_bp = Blueprint('students', __name__)
guardian_bp = Blueprint('guardians', __name__)


def get_student_or_404(student_id):
    student = db.session.get(Student, student_id)
    if student is None:
        raise errors.NotFound(f"Student {student_id} not found.", student_id=student_id)
    return student


def _link_account(student, account_id):
    if account_id is None:
        return
    account = db.session.get(User, account_id)
    if account is None:
        raise errors.NotFound(f"Account {account_id} not found.", account_id=account_id)
    owner = Student.query.filter(Student.account_id == account_id, Student.id != student.id).first()
    if owner is not None:
        raise errors.ValidationError("Account already linked to another student.", account_id=account_id)
    student.account_id = account_id


@student_bp.route('', methods=['GET'])
@login_required
def list_students():
    query = Student.query.filter(Student.active.is_(True))

    q = (request.args.get('q') or '').strip()
    if q:
        pattern = f"%{q}%"
        query = query.filter(or_(Student.first_name.ilike(pattern), Student.last_name.ilike(pattern)))

    class_id = int_arg('class_id')
    if class_id is not None:
        query = query.join(ClassEnrollment).filter(ClassEnrollment.class_id == class_id)

    students = query.order_by(Student.first_name, Student.last_name).all()
    return jsonify([serialize_student(s) for s in students])


@student_bp.route('/<int:student_id>', methods=['GET'])
@login_required
def get_student(student_id):
    return jsonify(serialize_student(get_student_or_404(student_id), detail=True))


@student_bp.route('', methods=['POST'])
@manager_required
def create_student():
    form = StudentForm()
    if not form.validate():
        raise_form_errors(form)

    student = Student(
        first_name=form.first_name.data.strip(),
        last_name=form.last_name.data.strip(),
        birth_date=form.birth_date.data,
        gender=form.gender.data or None,
        phone=form.phone.data or None,
        email=form.email.data or None,
    )
    _link_account(student, form.account_id.data)
    db.session.add(student)
    db.session.commit()
    current_app.logger.info("Student %s registered", student.id)
    return jsonify(serialize_student(student)), 201


@student_bp.route('/<int:student_id>', methods=['PUT'])
@manager_required
def update_student(student_id):
    student = get_student_or_404(student_id)
    form = StudentUpdateForm()
    if not form.validate():
        raise_form_errors(form)

    for name in ('first_name', 'last_name'):
        field = getattr(form, name)
        if submitted(field):
            setattr(student, name, field.data.strip())
    if submitted(form.birth_date):
        student.birth_date = form.birth_date.data
    for name in ('gender', 'phone', 'email'):
        field = getattr(form, name)
        if submitted(field):
            setattr(student, name, field.data or None)
    if submitted(form.account_id):
        _link_account(student, form.account_id.data)

    db.session.commit()
    return jsonify(serialize_student(student))


@student_bp.route('/<int:student_id>', methods=['DELETE'])
@manager_required
def deactivate_student(student_id):
    # Promotion and attendance history stay; the student just leaves active lists
    student = get_student_or_404(student_id)
    student.active = False
    db.session.commit()
    return jsonify({'message': 'Student deactivated.'})


@student_bp.route('/<int:student_id>/reset-baseline', methods=['POST'])
@manager_required
def reset_baseline(student_id):
    """Count attendance toward the next belt from today."""
    student = get_student_or_404(student_id)
    student.attendance_reset_on = today()
    db.session.commit()
    current_app.logger.info("Attendance baseline of student %s reset", student.id)
    return jsonify(serialize_student(student))


@student_bp.route('/<int:student_id>/guardians', methods=['GET'])
@login_required
def list_guardians(student_id):
    student = get_student_or_404(student_id)
    guardians = sorted(student.guardians, key=lambda g: g.name.lower())
    return jsonify([serialize_guardian(g) for g in guardians])


@student_bp.route('/<int:student_id>/guardians', methods=['POST'])
@manager_required
def create_guardian(student_id):
    student = get_student_or_404(student_id)
    form = GuardianForm()
    if not form.validate():
        raise_form_errors(form)

    guardian = Guardian(
        student_id=student.id,
        name=form.name.data.strip(),
        relation=form.relation.data.strip(),
        phone=form.phone.data or None,
        email=form.email.data or None,
    )
    db.session.add(guardian)
    db.session.commit()
    return jsonify(serialize_guardian(guardian)), 201


def _get_guardian(guardian_id):
    guardian = db.session.get(Guardian, guardian_id)
    if guardian is None:
        raise errors.NotFound(f"Guardian {guardian_id} not found.", guardian_id=guardian_id)
    return guardian


@guardian_bp.route('/<int:guardian_id>', methods=['PUT'])
@manager_required
def update_guardian(guardian_id):
    guardian = _get_guardian(guardian_id)
    form = GuardianUpdateForm()
    if not form.validate():
        raise_form_errors(form)

    for name in ('name', 'relation'):
        field = getattr(form, name)
        if submitted(field):
            setattr(guardian, name, field.data.strip())
    for name in ('phone', 'email'):
        field = getattr(form, name)
        if submitted(field):
            setattr(guardian, name, field.data or None)

    db.session.commit()
    return jsonify(serialize_guardian(guardian))


@guardian_bp.route('/<int:guardian_id>', methods=['DELETE'])
@manager_required
def delete_guardian(guardian_id):
    guardian = _get_guardian(guardian_id)
    db.session.delete(guardian)
    db.session.commit()
    return jsonify({'message': 'Guardian removed.'})
