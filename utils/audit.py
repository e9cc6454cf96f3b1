# utils/audit.py
from datetime import datetime

from models import db, ActionLog

PROMOTION_ACTION = 'promotion'


def record_action(action, description, user_id=None, related_type=None, related_id=None, session=None):
    session = session if session is not None else db.session
    entry = ActionLog(
        user_id=user_id,
        action=action,
        description=description,
        related_type=related_type,
        related_id=related_id,
        created_at=datetime.utcnow()
    )
    session.add(entry)
    return entry


class PromotionAuditLog:
    """PromotionGranted listener: writes the audit row inside the promotion transaction."""

    def __init__(self, session=None):
        self.session = session

    def __call__(self, event):
        return record_action(
            PROMOTION_ACTION,
            f"Promoted student {event.student.id} ({event.student.name}) from "
            f"{event.previous_rank.name} to {event.rank.name}, degree {event.promotion.degree}",
            user_id=event.promoted_by,
            related_type='promotion',
            related_id=event.promotion.id,
            session=self.session
        )


def recent_actions(action=None, limit=50):
    query = ActionLog.query
    if action:
        query = query.filter(ActionLog.action == action)
    return query.order_by(ActionLog.created_at.desc(), ActionLog.id.desc()).limit(limit).all()
