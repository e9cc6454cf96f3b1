from flask import Blueprint, current_app, jsonify, request
from flask_login import current_user, login_required
from werkzeug.datastructures import MultiDict

from forms import AttendanceMarkForm, EnrollmentForm, TrainingClassForm, TrainingClassUpdateForm
from models import db, AttendanceRecord, ClassEnrollment, Student, TrainingClass, User, STAFF_ROLES
from utils import errors
from utils.helpers import (int_arg, manager_required, parse_date, raise_form_errors,
                           staff_required, submitted)
from utils.serializers import serialize_attendance, serialize_class

class_bp = Blueprint('classes', __name__)
attendance_bp = Blueprint('attendance', __name__)


def _get_class(class_id):
    training_class = db.session.get(TrainingClass, class_id)
    if training_class is None:
        raise errors.NotFound(f"Class {class_id} not found.", class_id=class_id)
    return training_class


def _set_instructor(training_class, instructor_id):
    if instructor_id is None:
        return
    instructor = db.session.get(User, instructor_id)
    if instructor is None:
        raise errors.NotFound(f"Instructor {instructor_id} not found.", instructor_id=instructor_id)
    if instructor.role not in STAFF_ROLES:
        raise errors.ValidationError("Class instructor must be a staff member.", instructor_id=instructor_id)
    training_class.instructor_id = instructor.id


@class_bp.route('', methods=['GET'])
@login_required
def list_classes():
    query = TrainingClass.query.filter(TrainingClass.active.is_(True))
    q = (request.args.get('q') or '').strip()
    if q:
        query = query.filter(TrainingClass.name.ilike(f"%{q}%"))
    age = int_arg('age')
    if age is not None:
        query = query.filter(TrainingClass.min_age <= age, TrainingClass.max_age >= age)
    return jsonify([serialize_class(c) for c in query.order_by(TrainingClass.name).all()])


@class_bp.route('/<int:class_id>', methods=['GET'])
@login_required
def get_class(class_id):
    training_class = _get_class(class_id)
    data = serialize_class(training_class)
    data['students'] = [{'id': e.student.id, 'name': e.student.full_name}
                        for e in training_class.enrollments]
    return jsonify(data)


@class_bp.route('', methods=['POST'])
@manager_required
def create_class():
    form = TrainingClassForm()
    if not form.validate():
        raise_form_errors(form)

    training_class = TrainingClass(
        name=form.name.data.strip(),
        min_age=form.min_age.data,
        max_age=form.max_age.data,
        total_sessions=form.total_sessions.data or 0,
        coordinator_id=current_user.id,
    )
    if form.created_on.data:
        training_class.created_on = form.created_on.data
    _set_instructor(training_class, form.instructor_id.data)

    db.session.add(training_class)
    db.session.commit()
    current_app.logger.info("Class %s created by %s", training_class.name, current_user.username)
    return jsonify(serialize_class(training_class)), 201


@class_bp.route('/<int:class_id>', methods=['PUT'])
@manager_required
def update_class(class_id):
    training_class = _get_class(class_id)
    form = TrainingClassUpdateForm()
    if not form.validate():
        raise_form_errors(form)

    if submitted(form.name):
        training_class.name = form.name.data.strip()
    if submitted(form.created_on):
        training_class.created_on = form.created_on.data
    if submitted(form.min_age):
        training_class.min_age = form.min_age.data
    if submitted(form.max_age):
        training_class.max_age = form.max_age.data
    if training_class.max_age < training_class.min_age:
        raise errors.ValidationError("Maximum age must not be lower than minimum age.")
    if submitted(form.total_sessions):
        training_class.total_sessions = form.total_sessions.data
    if submitted(form.instructor_id):
        _set_instructor(training_class, form.instructor_id.data)

    db.session.commit()
    return jsonify(serialize_class(training_class))


@class_bp.route('/<int:class_id>', methods=['DELETE'])
@manager_required
def delete_class(class_id):
    training_class = _get_class(class_id)
    # Enrollments and attendance go with the class
    db.session.delete(training_class)
    db.session.commit()
    current_app.logger.info("Class %s deleted", class_id)
    return jsonify({'message': 'Class deleted.'})


@class_bp.route('/<int:class_id>/students', methods=['POST'])
@manager_required
def enroll_student(class_id):
    training_class = _get_class(class_id)
    form = EnrollmentForm()
    if not form.validate():
        raise_form_errors(form)

    student = db.session.get(Student, form.student_id.data)
    if student is None:
        raise errors.NotFound(f"Student {form.student_id.data} not found.", student_id=form.student_id.data)
    if ClassEnrollment.query.filter_by(class_id=training_class.id, student_id=student.id).first():
        raise errors.ValidationError("Student already enrolled in this class.", student_id=student.id)

    db.session.add(ClassEnrollment(class_id=training_class.id, student_id=student.id))
    db.session.commit()
    return jsonify({'message': 'Student enrolled.'}), 201


@class_bp.route('/<int:class_id>/students/<int:student_id>', methods=['DELETE'])
@manager_required
def unenroll_student(class_id, student_id):
    training_class = _get_class(class_id)
    enrollment = ClassEnrollment.query.filter_by(class_id=training_class.id, student_id=student_id).first()
    if enrollment is None:
        raise errors.NotFound("Student is not enrolled in this class.", student_id=student_id)
    db.session.delete(enrollment)
    db.session.commit()
    return jsonify({'message': 'Student removed from class.'})


@class_bp.route('/<int:class_id>/attendance', methods=['POST'])
@staff_required
def record_attendance(class_id):
    """
    Body: {"date": "YYYY-MM-DD", "marks": [{"student_id": 1, "present": true}, ...]}

    Marks for the same student and date replace the earlier ones. Students
    not enrolled in the class are skipped and reported back.
    """
    training_class = _get_class(class_id)
    payload = request.get_json(silent=True) or {}
    marks = payload.get('marks')
    if not isinstance(marks, list) or not marks:
        raise errors.ValidationError("Payload must contain 'date' and a non-empty 'marks' list.")
    session_date = parse_date(payload.get('date'))

    enrolled = {e.student_id for e in training_class.enrollments}
    created = updated = 0
    skipped = []
    for mark in marks:
        if not isinstance(mark, dict):
            raise errors.ValidationError("Each mark must be an object.")
        form = AttendanceMarkForm(formdata=MultiDict(mark))
        if not form.validate():
            raise_form_errors(form)
        student_id = form.student_id.data
        if student_id not in enrolled:
            skipped.append(student_id)
            continue

        record = AttendanceRecord.query.filter_by(
            class_id=training_class.id, student_id=student_id, date=session_date).first()
        if record is None:
            db.session.add(AttendanceRecord(
                class_id=training_class.id,
                student_id=student_id,
                date=session_date,
                is_present=form.present.data,
                recorded_by_id=current_user.id
            ))
            created += 1
        else:
            record.is_present = form.present.data
            record.recorded_by_id = current_user.id
            updated += 1

    db.session.commit()
    current_app.logger.info("Attendance for class %s on %s: %s new, %s updated",
                            class_id, session_date, created, updated)
    return jsonify({'created': created, 'updated': updated, 'skipped': skipped}), 201


@attendance_bp.route('', methods=['GET'])
@staff_required
def list_attendance():
    page = int_arg('page', 1, minimum=1)
    limit = min(int_arg('limit', 50, minimum=1), 200)

    query = AttendanceRecord.query
    class_id = int_arg('class_id')
    if class_id is not None:
        _get_class(class_id)
        query = query.filter(AttendanceRecord.class_id == class_id)
    student_id = int_arg('student_id')
    if student_id is not None:
        query = query.filter(AttendanceRecord.student_id == student_id)

    total = query.count()
    records = (query.order_by(AttendanceRecord.date.desc(), AttendanceRecord.id.desc())
               .offset((page - 1) * limit).limit(limit).all())
    return jsonify({
        'total': total,
        'page': page,
        'limit': limit,
        'records': [serialize_attendance(r) for r in records]
    })
