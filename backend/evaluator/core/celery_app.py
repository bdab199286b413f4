from celery import Celery
from celery.signals import setup_logging as celery_setup_logging

from evaluator.core.config import settings
from evaluator.core.logging import setup_logging

celery_app = Celery(
    "evaluator",
    broker=settings.CELERY_BROKER_URL,
    backend=settings.CELERY_RESULT_BACKEND,
    include=["evaluator.tasks.evaluation_tasks"],
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    task_routes={
        "evaluator.tasks.evaluation_tasks.*": {"queue": settings.EVALUATION_QUEUE},
    },
    # One evaluation at a time, acknowledged only after its terminal state is written
    worker_concurrency=1,
    worker_prefetch_multiplier=1,
    task_acks_late=True,
    task_reject_on_worker_lost=False,
)


@celery_setup_logging.connect
def configure_worker_logging(**kwargs):
    """Use the application's logging config instead of Celery's"""
    setup_logging()
