import logging

from sqlalchemy.exc import ProgrammingError
from sqlalchemy.orm import Session

from tourism.db.session import SessionLocal
from tourism.services.email_service import process_pending_emails
from tourism.tasks.celery_app import celery

logger = logging.getLogger(__name__)


def run_email_queue(limit: int = 50) -> dict:
    db: Session = SessionLocal()
    try:
        try:
            return process_pending_emails(db, limit=limit)
        except ProgrammingError:
            # DB not migrated yet; don't crash the worker.
            db.rollback()
            logger.warning("email_logs table missing, skipping queue run")
            return {"skipped": True, "reason": "missing_tables"}
    finally:
        db.close()


@celery.task(name="tourism.tasks.jobs.process_email_queue")
def process_email_queue(limit: int = 50):
    return run_email_queue(limit=limit)
