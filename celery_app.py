from celery import Celery

from utils.logging import configure_logging
from utils.settings import get_settings

settings = get_settings()
configure_logging(settings.log_level)

app = Celery(
    "sheet_analyzer",
    broker=settings.celery_broker_url,
    backend=settings.celery_result_backend,
    include=["tasks"],
)

app.conf.update(
    task_serializer="json",
    result_serializer="json",
    accept_content=["json"],
    result_expires=3600,
    task_track_started=True,
    task_always_eager=settings.celery_task_always_eager,
    task_store_eager_result=settings.celery_task_always_eager,
)
