import logging
from datetime import datetime, timezone
import smtplib
from email.message import EmailMessage
from sqlalchemy.orm import Session
import uuid
import requests

from tourism.core.config import settings
from tourism.models.email_log import EmailLog
from tourism.models.booking import Booking
from tourism.models.user import User

logger = logging.getLogger(__name__)


def queue_email(db: Session, to_email: str, subject: str, body: str, related_booking_code: str = "") -> str:
    """Queue and attempt immediate send. Body is stored so the worker can retry on failure."""
    eid = str(uuid.uuid4())
    log = EmailLog(
        id=eid,
        to_email=to_email,
        subject=subject,
        body=body,
        status="queued" if settings.EMAIL_ENABLED else "skipped",
        attempts=0,
        related_booking_code=related_booking_code,
    )
    db.add(log)
    db.commit()

    if settings.EMAIL_ENABLED:
        _attempt(log)
        db.commit()
    return eid


def _attempt(log: EmailLog) -> bool:
    log.attempts = (log.attempts or 0) + 1
    try:
        send_email(log.to_email, log.subject, log.body or "")
    except Exception as e:
        # Worker will retry via process_email_queue
        logger.warning("Email %s to %s failed (attempt %s): %s", log.id, log.to_email, log.attempts, e)
        log.status = "failed"
        log.last_error = str(e)[:500]
        return False
    log.status = "sent"
    log.sent_at = datetime.now(timezone.utc)
    log.last_error = None
    return True


def send_email(to_email: str, subject: str, body: str):
    """Send email via SendGrid if configured, otherwise SMTP (MailHog recommended for local)."""

    if settings.SENDGRID_API_KEY:
        _send_via_sendgrid(to_email, subject, body)
        return

    msg = EmailMessage()
    msg["From"] = settings.SMTP_FROM
    msg["To"] = to_email
    msg["Subject"] = subject
    msg.set_content(body)

    with smtplib.SMTP(settings.SMTP_HOST, settings.SMTP_PORT, timeout=10) as smtp:
        if settings.SMTP_USERNAME:
            smtp.login(settings.SMTP_USERNAME, settings.SMTP_PASSWORD)
        smtp.send_message(msg)


def _send_via_sendgrid(to_email: str, subject: str, body: str):
    payload = {
        "personalizations": [{"to": [{"email": to_email}]}],
        "from": {"email": settings.SENDGRID_FROM_EMAIL or settings.SMTP_FROM},
        "subject": subject,
        "content": [{"type": "text/plain", "value": body}],
    }
    r = requests.post(
        "https://api.sendgrid.com/v3/mail/send",
        json=payload,
        headers={"Authorization": f"Bearer {settings.SENDGRID_API_KEY}"},
        timeout=20,
    )
    if r.status_code >= 400:
        raise RuntimeError(f"SendGrid error {r.status_code}: {r.text}")


def process_pending_emails(db: Session, limit: int = 50, max_attempts: int = 5) -> dict:
    """Retry up to `limit` queued or failed emails. Returns counts."""
    pending = (
        db.query(EmailLog)
        .filter(
            EmailLog.status.in_(["queued", "failed"]),
            EmailLog.attempts < max_attempts,
            EmailLog.body.isnot(None),
            EmailLog.body != "",
        )
        .order_by(EmailLog.created_at.asc())
        .limit(limit)
        .all()
    )
    sent = sum(1 for log in pending if _attempt(log))
    if pending:
        db.commit()
    return {"processed": len(pending), "sent": sent, "failed": len(pending) - sent}


# -------------------------
# Booking notices
# -------------------------
_SUBJECTS = {
    "created": "Booking {code} received",
    "confirmed": "Booking {code} confirmed",
    "cancelled": "Booking {code} cancelled",
    "status": "Booking {code} is now {status}",
}


def _booking_link(booking: Booking) -> str:
    if not settings.CLIENT_BASE_URL:
        return ""
    return f"\nView it at {settings.CLIENT_BASE_URL.rstrip('/')}/bookings/{booking.id}\n"


def notify_booking_event(db: Session, booking: Booking, event: str, extra: str = "") -> list[str]:
    """Email the registered parties of a booking. Guests have no address and are skipped."""
    subject = _SUBJECTS[event].format(code=booking.booking_code, status=booking.status)
    body = (
        f"Booking {booking.booking_code}\n"
        f"Status: {booking.status}\n"
        f"Payment: {booking.payment_status}\n"
        f"Start: {booking.start_date.date().isoformat()}\n"
        f"Total: {booking.total_amount} {booking.currency}\n"
        f"{extra}"
        f"{_booking_link(booking)}"
    )
    ids = [i for i in (booking.tourist_id, booking.seller_id) if i]
    if not ids:
        return []
    users = db.query(User).filter(User.id.in_(ids), User.is_active.is_(True)).all()
    return [queue_email(db, u.email, subject, body, related_booking_code=booking.booking_code) for u in users]
