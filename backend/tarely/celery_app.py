from celery import Celery

from tarely.config import settings

celery_app = Celery(
    "tarely",
    broker=settings.REDIS_URL,
    backend=settings.REDIS_URL,
    include=["tarely.tasks.email_tasks"],
)

celery_app.conf.task_acks_late = True
