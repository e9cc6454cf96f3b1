# utils/notifications.py
from datetime import datetime
from models import db, Notification, NotificationRecipient, User


class PromotionNotifier:
    """
    PromotionGranted listener: posts an in-app notice to the promoted student's
    account and to every coordinator. Runs inside the promotion transaction.
    """

    def __init__(self, session=None):
        self.session = session if session is not None else db.session

    def __call__(self, event):
        degree = f", degree {event.promotion.degree}" if event.promotion.degree else ""
        notice = Notification(
            type='promotion',
            title=f"Promotion: {event.student.name}",
            message=(
                f"{event.student.name} was promoted from {event.previous_rank.name} "
                f"to {event.rank.name}{degree} on {event.promotion.promoted_on.strftime('%d %B %Y')}."
            ),
            created_at=datetime.utcnow(),
            related_type='promotion',
            related_id=event.promotion.id,
            sender_id=event.promoted_by
        )
        self.session.add(notice)
        self.session.flush()  # get notice.id

        user_ids = {u.id for u in User.query.filter_by(role='coordinator', active=True).all()}
        if event.student.account_id:
            user_ids.add(event.student.account_id)

        recipients = [
            NotificationRecipient(notification_id=notice.id, user_id=user_id)
            for user_id in sorted(user_ids)
        ]
        if recipients:
            self.session.add_all(recipients)
        return notice


def unread_notifications(user_id):
    return (NotificationRecipient.query
            .filter_by(user_id=user_id, is_read=False)
            .join(Notification)
            .order_by(Notification.created_at.desc())
            .all())


def mark_read(recipient):
    recipient.is_read = True
    recipient.read_at = datetime.utcnow()
