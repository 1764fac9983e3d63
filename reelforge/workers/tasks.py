from functools import lru_cache
from reelforge.workers.celery_app import celery_app
from reelforge.config import get_settings
from reelforge.errors import JobNotFoundError, InvalidTransitionError
from reelforge.services.registry import Services, build_services
import logging

logger = logging.getLogger(__name__)


@lru_cache()
def worker_services() -> Services:
    """One service graph per worker process"""
    settings = get_settings()
    logging.basicConfig(
        level=settings.LOG_LEVEL,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    return build_services(settings)


@celery_app.task
def render_job_task(job_id: str):
    """
    Render one queued job.
    Failures are recorded on the job row; nothing here retries automatically.
    """
    executor = worker_services().executor
    try:
        result = executor.run_job(job_id)
    except (JobNotFoundError, InvalidTransitionError) as e:
        logger.warning(f"Render task skipped job {job_id}: {e}")
        return {"jobId": job_id, "success": False, "error": str(e)}

    if result.success:
        logger.info(f"Render task finished job {job_id}: {result.output_url}")
    else:
        logger.error(f"Render task failed job {job_id}: {result.error}")
    return result.to_dict()
