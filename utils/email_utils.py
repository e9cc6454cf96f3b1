from flask import current_app
from flask_mailman import EmailMessage


def send_email(to_email, subject, body):
    """
    Send one plain-text email using Flask-Mailman.

    Used for the guardian promotion notices. Mail errors propagate;
    send_promotion_emails logs them so a failed notice never undoes a promotion.
    """
    msg = EmailMessage(
        subject=subject,
        body=body,
        from_email=current_app.config['MAIL_DEFAULT_SENDER'],
        to=[to_email]
    )
    msg.send()


def send_promotion_emails(student, rank, promotion):
    """Tell every guardian with an e-mail address about the promotion. Returns how many were sent."""
    if not current_app.config.get('SEND_PROMOTION_EMAILS', True):
        return 0

    subject = f"{student.full_name} has been promoted to {rank.name}"
    sent = 0
    for guardian in student.guardians:
        if not guardian.email:
            continue
        body = f"""
    Hello {guardian.name},

    We are happy to let you know that {student.full_name} was promoted
    to the {rank.name} belt (degree {promotion.degree}) on {promotion.promoted_on.strftime('%d %B %Y')}.

    Congratulations and see you on the mat!
    """
        try:
            send_email(guardian.email, subject, body)
            sent += 1
        except Exception as e:
            current_app.logger.exception(f"Failed to send promotion email to {guardian.email}: {e}")
    return sent
