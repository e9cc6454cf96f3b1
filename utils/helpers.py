# utils/helpers.py
from datetime import datetime
from functools import wraps

from flask import abort, current_app, request
from flask_login import current_user, login_required

from models import MANAGER_ROLES, STAFF_ROLES
from utils import errors


def role_required(*roles):
    """login_required plus a role check; 403 for the wrong role."""
    def decorator(view):
        @wraps(view)
        @login_required
        def wrapped(*args, **kwargs):
            if getattr(current_user, 'role', None) not in roles:
                abort(403)
            return view(*args, **kwargs)
        return wrapped
    return decorator


manager_required = role_required(*MANAGER_ROLES)
staff_required = role_required(*STAFF_ROLES)


def today():
    return datetime.utcnow().date()


def parse_date(value, field='date'):
    try:
        return datetime.strptime(value, '%Y-%m-%d').date()
    except (TypeError, ValueError):
        raise errors.ValidationError(f"Invalid {field}; expected YYYY-MM-DD.", **{field: value})


def int_arg(name, default=None, minimum=None):
    raw = request.args.get(name)
    if raw in (None, ''):
        return default
    try:
        value = int(raw)
    except ValueError:
        raise errors.ValidationError(f"Query parameter '{name}' must be an integer.", **{name: raw})
    if minimum is not None and value < minimum:
        value = minimum
    return value


def raise_form_errors(form):
    raise errors.ValidationError("Invalid data.", fields=form.errors)


def submitted(field):
    """True when the request body carried a value for the form field."""
    return bool(field.raw_data)


