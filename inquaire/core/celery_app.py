from celery import Celery

from inquaire.core.config import get_settings

settings = get_settings()

celery_app = Celery(
    "inquaire_api",
    broker=settings.redis_url,
    backend=settings.redis_url,
    include=["inquaire.tasks"],
)
celery_app.conf.update(
    task_serializer="json",
    result_serializer="json",
    accept_content=["json"],
    task_acks_late=True,
)
