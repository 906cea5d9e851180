# Celery configuration for side-effect tasks

from celery import Celery

from config.app_config import CELERY_BROKER_URL, CELERY_RESULT_BACKEND, CELERY_TASK_ALWAYS_EAGER

celery_app = Celery(
    "collabmart",
    broker=CELERY_BROKER_URL,
    backend=CELERY_RESULT_BACKEND,
    include=["tasks.side_effects"],
)

celery_app.conf.update(
    task_serializer='json',
    accept_content=['json'],
    result_serializer='json',
    enable_utc=True,
    # at-least-once: ack after the task body ran, redeliver if the worker dies
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    task_default_queue='side_effects',
    task_always_eager=CELERY_TASK_ALWAYS_EAGER,
    task_ignore_result=True,
)
