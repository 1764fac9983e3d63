from celery import Celery
from reelforge.config import get_settings

settings = get_settings()

celery_app = Celery(
    "reelforge",
    broker=settings.CELERY_BROKER_URL,
    backend=settings.CELERY_RESULT_BACKEND,
    include=['reelforge.workers.tasks']
)

celery_app.conf.update(
    task_serializer='json',
    accept_content=['json'],
    result_serializer='json',
    timezone='UTC',
    enable_utc=True,
    # SoftTimeLimitExceeded is raised inside run_job, which marks the job failed
    task_soft_time_limit=int(settings.JOB_TIMEOUT_SECONDS),
    task_time_limit=int(settings.JOB_TIMEOUT_SECONDS) + 60,
)
