from flask import Blueprint, current_app, jsonify, request
from flask_login import current_user, login_required

from forms import PromotionForm
from models import db, Promotion, Rank, Student
from utils import errors
from utils.audit import PromotionAuditLog
from utils.email_utils import send_promotion_emails
from utils.helpers import int_arg, manager_required, raise_form_errors, staff_required, today
from utils.notifications import PromotionNotifier
from utils.promotion import InstructorRoleGrant, PromotionEngine, STATUS_NEAR, STATUS_READY
from utils.roster import SqlRoster, active_student_ids
from utils.serializers import serialize_eligibility, serialize_promotion, serialize_rank

promotion_bp = Blueprint('promotion', __name__)


def build_engine(roster, listeners=None):
    return PromotionEngine.from_config(roster, current_app.config, listeners=listeners)


def _get_student(student_id):
    student = db.session.get(Student, student_id)
    if student is None:
        raise errors.NotFound(f"Student {student_id} not found.", student_id=student_id)
    return student


@promotion_bp.route('/eligibility/<int:student_id>')
@staff_required
def eligibility(student_id):
    report = build_engine(SqlRoster()).evaluate_eligibility(student_id, today())
    return jsonify(serialize_eligibility(report))


@promotion_bp.route('/eligible')
@staff_required
def eligible_students():
    """Students ready for (or close to) their next belt."""
    only = request.args.get('only')
    if only not in (None, '', STATUS_READY, STATUS_NEAR):
        raise errors.ValidationError("Parameter 'only' must be 'ready' or 'near'.", only=only)
    wanted = {only} if only else {STATUS_READY, STATUS_NEAR}

    class_id = int_arg('class_id')
    reports = build_engine(SqlRoster()).evaluate_roster(active_student_ids(class_id), today())
    return jsonify([serialize_eligibility(r) for r in reports if r.status in wanted])


@promotion_bp.route('/<int:student_id>', methods=['POST'])
@manager_required
def promote(student_id):
    form = PromotionForm()
    if not form.validate():
        raise_form_errors(form)

    roster = SqlRoster()
    engine = build_engine(roster, listeners=[
        InstructorRoleGrant(roster), PromotionNotifier(), PromotionAuditLog()])
    try:
        event = engine.promote(
            student_id,
            form.rank_id.data,
            form.degree.data,
            form.approved.data,
            today(),
            promoted_by=current_user.id,
            notes=form.notes.data or None,
        )
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    current_app.logger.info("User %s promoted student %s to %s",
                            current_user.username, student_id, event.rank.name)

    promotion = db.session.get(Promotion, event.promotion.id)
    student = promotion.student
    emailed = send_promotion_emails(student, promotion.rank, promotion)

    return jsonify({
        'message': 'Promotion recorded.',
        'promotion': serialize_promotion(promotion),
        'previous_rank': {'id': event.previous_rank.id, 'name': event.previous_rank.name},
        'account_role': student.account.role if student.account else None,
        'guardians_notified': emailed,
    }), 201


@promotion_bp.route('/history/<int:student_id>')
@login_required
def history(student_id):
    student = _get_student(student_id)
    promotions = (Promotion.query.filter_by(student_id=student.id)
                  .order_by(Promotion.promoted_on.desc(), Promotion.id.desc())
                  .all())
    return jsonify([serialize_promotion(p) for p in promotions])


@promotion_bp.route('/current/<int:student_id>')
@login_required
def current_rank(student_id):
    student = _get_student(student_id)
    latest = (Promotion.query.filter_by(student_id=student.id)
              .order_by(Promotion.promoted_on.desc(), Promotion.id.desc())
              .first())
    if latest is not None:
        return jsonify({'rank': serialize_rank(latest.rank), 'degree': latest.degree,
                        'promoted_on': latest.promoted_on.isoformat()})

    base = Rank.query.order_by(Rank.order.asc()).first()
    if base is None:
        raise errors.NotFound("No ranks are configured.")
    return jsonify({'rank': serialize_rank(base), 'degree': 0, 'promoted_on': None})
