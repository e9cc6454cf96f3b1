from datetime import date

from flask import Blueprint, current_app, jsonify, request, send_from_directory
from sqlalchemy import func

from models import db, AttendanceRecord, Student, TrainingClass, User
from promotion_routes import build_engine
from utils.audit import recent_actions
from utils.backup import export_roster_csv
from utils.helpers import int_arg, manager_required, staff_required, today
from utils.promotion import calculate_age
from utils.roster import SqlRoster, active_student_ids
from utils.serializers import serialize_action

report_bp = Blueprint('reports', __name__)

RANKING_SIZE = 3


def name_sort_key(full_name):
    """First name, then last name, then the whole name; all case-insensitive."""
    parts = (full_name or '').strip().split()
    first = parts[0].lower() if parts else ''
    last = parts[-1].lower() if parts else ''
    return first, last, (full_name or '').lower()


def next_birthday(birth_date, reference):
    try:
        candidate = birth_date.replace(year=reference.year)
    except ValueError:
        # 29 February outside a leap year
        candidate = date(reference.year, 3, 1)
    if candidate < reference:
        try:
            candidate = birth_date.replace(year=reference.year + 1)
        except ValueError:
            candidate = date(reference.year + 1, 3, 1)
    return candidate


@report_bp.route('/metrics')
@staff_required
def metrics():
    def count_users(*roles):
        return User.query.filter(User.role.in_(roles), User.active.is_(True)).count()

    sessions = (db.session.query(AttendanceRecord.class_id, AttendanceRecord.date)
                .distinct().count())

    return jsonify({
        'total_students': Student.query.filter(Student.active.is_(True)).count(),
        'total_instructors': count_users('instructor', 'student_instructor'),
        'total_coordinators': count_users('coordinator'),
        'total_classes': TrainingClass.query.filter(TrainingClass.active.is_(True)).count(),
        'total_users': User.query.filter(User.active.is_(True)).count(),
        'total_sessions': sessions
    })


@report_bp.route('/attendance-ranking')
@staff_required
def attendance_ranking():
    """Top students by classes attended; ties broken by name."""
    query = (db.session.query(AttendanceRecord.student_id, func.count(AttendanceRecord.id))
             .filter(AttendanceRecord.is_present.is_(True)))
    class_id = int_arg('class_id')
    if class_id is not None:
        query = query.filter(AttendanceRecord.class_id == class_id)
    counts = dict(query.group_by(AttendanceRecord.student_id).all())

    students = Student.query.filter(Student.id.in_(list(counts))).all() if counts else []
    ranking = sorted(
        ({'student_id': s.id, 'name': s.full_name, 'total_classes': counts[s.id]} for s in students),
        key=lambda row: (-row['total_classes'],) + name_sort_key(row['name'])
    )
    return jsonify(ranking[:RANKING_SIZE])


@report_bp.route('/birthdays')
@staff_required
def birthdays():
    """Active students with a birthday in the current month."""
    reference = today()
    month = int_arg('month', reference.month)
    if not 1 <= month <= 12:
        month = reference.month

    rows = []
    for student in Student.query.filter(Student.active.is_(True)).all():
        if student.birth_date.month != month:
            continue
        upcoming = next_birthday(student.birth_date, reference)
        rows.append({
            'student_id': student.id,
            'name': student.full_name,
            'birth_date': student.birth_date.isoformat(),
            'day': student.birth_date.day,
            'age': calculate_age(student.birth_date, reference),
            'is_today': (student.birth_date.month, student.birth_date.day) == (reference.month, reference.day),
            'next_birthday': upcoming.isoformat()
        })
    rows.sort(key=lambda r: (r['day'], name_sort_key(r['name'])))
    return jsonify(rows)


@report_bp.route('/students/export')
@manager_required
def export_students():
    """CSV snapshot of every active student's promotion standing."""
    reports = build_engine(SqlRoster()).evaluate_roster(active_student_ids(), today())
    folder = current_app.config['BACKUP_FOLDER']
    filename = export_roster_csv(reports, backup_dir=folder)
    current_app.logger.info("Roster exported to %s", filename)
    return send_from_directory(directory=folder, path=filename, as_attachment=True)


@report_bp.route('/actions')
@manager_required
def actions():
    """Newest audit entries first; `action` narrows to one kind."""
    limit = min(int_arg('limit', 50, minimum=1), 200)
    entries = recent_actions(request.args.get('action') or None, limit)
    return jsonify([serialize_action(e) for e in entries])
