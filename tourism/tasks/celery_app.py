from urllib.parse import urlparse, urlunparse, parse_qs, urlencode

from celery import Celery
from celery.signals import after_setup_logger

from tourism.core.config import settings
from tourism.core.logging import configure_logging


def _redis_url_for_celery(url: str) -> str:
    """Celery requires ssl_cert_reqs for rediss:// (managed Redis over TLS)."""
    if not url or not url.strip().lower().startswith("rediss://"):
        return url
    parsed = urlparse(url)
    qs = parse_qs(parsed.query)
    if "ssl_cert_reqs" not in qs:
        qs["ssl_cert_reqs"] = ["CERT_NONE"]
        return urlunparse(parsed._replace(query=urlencode(qs, doseq=True)))
    return url


_redis_url = _redis_url_for_celery(settings.REDIS_URL)

celery = Celery(
    "tourism",
    broker=_redis_url,
    backend=_redis_url,
    include=["tourism.tasks.jobs"],
)

celery.conf.timezone = "Asia/Kolkata"


@after_setup_logger.connect
def _setup_logging(logger, **kwargs):
    configure_logging()


celery.conf.beat_schedule = {
    "process-email-queue-every-2-minutes": {
        "task": "tourism.tasks.jobs.process_email_queue",
        "schedule": 120.0,
        "kwargs": {"limit": 50},
    },
}
