from celery import Celery
from celery.signals import setup_logging

from app.core.config import settings
from app.core.logging import configure_logging

celery_app = Celery(
    "sheetsync",
    broker=settings.REDIS_URL,
    backend=settings.REDIS_URL,
    include=["app.worker.tasks"],
)

celery_app.conf.update(
    task_track_started=True,
    result_expires=3600,
    broker_connection_retry_on_startup=True,
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    task_always_eager=settings.CELERY_TASK_ALWAYS_EAGER,
)


@setup_logging.connect
def configure_worker_logging(**kwargs):
    configure_logging(settings.ENV, settings.LOG_LEVEL)
