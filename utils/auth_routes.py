from flask import Blueprint, current_app, jsonify
from flask_login import current_user, login_required, login_user, logout_user

from forms import LoginForm, UserForm
from models import db, NotificationRecipient, User
from utils import errors
from utils.helpers import raise_form_errors, role_required
from utils.notifications import mark_read, unread_notifications
from utils.serializers import serialize_user

auth_bp = Blueprint('auth', __name__)


@auth_bp.route('/login', methods=['POST'])
def login():
    form = LoginForm()
    if not form.validate():
        raise_form_errors(form)

    user = User.query.filter(db.func.lower(User.username) == form.username.data.strip().lower()).first()
    if user is None or not user.check_password(form.password.data) or not user.active:
        current_app.logger.warning("Failed login for %s", form.username.data)
        return jsonify({'error': 'Invalid login credentials.'}), 401

    login_user(user)
    return jsonify(serialize_user(user))


@auth_bp.route('/logout', methods=['POST'])
@login_required
def logout():
    logout_user()
    return jsonify({'message': 'You have been logged out.'})


@auth_bp.route('/me')
@login_required
def me():
    return jsonify(serialize_user(current_user))


@auth_bp.route('/users', methods=['POST'])
@role_required('admin', 'coordinator')
def create_user():
    form = UserForm()
    if not form.validate():
        raise_form_errors(form)
    if form.role.data in ('admin', 'coordinator') and current_user.role != 'admin':
        raise errors.ValidationError("Only administrators can create staff managers.", role=form.role.data)

    username = form.username.data.strip()
    if User.query.filter(db.func.lower(User.username) == username.lower()).first():
        raise errors.ValidationError("Username already taken.", username=username)
    email = (form.email.data or '').strip().lower() or None
    if email and User.query.filter_by(email=email).first():
        raise errors.ValidationError("Email already registered.", email=email)

    user = User(username=username, email=email, first_name=form.first_name.data.strip(),
                last_name=form.last_name.data.strip(), role=form.role.data)
    user.set_password(form.password.data)
    db.session.add(user)
    db.session.commit()
    current_app.logger.info("User %s created with role %s", user.username, user.role)
    return jsonify(serialize_user(user)), 201


@auth_bp.route('/notifications')
@login_required
def notifications():
    return jsonify([{
        'id': r.id,
        'type': r.notification.type,
        'title': r.notification.title,
        'message': r.notification.message,
        'created_at': r.notification.created_at.isoformat()
    } for r in unread_notifications(current_user.id)])


@auth_bp.route('/notifications/<int:recipient_id>/read', methods=['POST'])
@login_required
def read_notification(recipient_id):
    recipient = NotificationRecipient.query.filter_by(id=recipient_id, user_id=current_user.id).first()
    if recipient is None:
        raise errors.NotFound("Notification not found.", notification_id=recipient_id)
    mark_read(recipient)
    db.session.commit()
    return jsonify({'message': 'Notification marked as read.'})
