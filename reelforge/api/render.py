from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from typing import List, Optional
from reelforge.api.deps import get_services
from reelforge.errors import JobNotFoundError, InvalidTransitionError
from reelforge.services.registry import Services
import logging

logger = logging.getLogger(__name__)
router = APIRouter()


class ProcessJobRequest(BaseModel):
    job_id: str = Field(..., alias="jobId")

    class Config:
        populate_by_name = True


class ProcessQueueRequest(BaseModel):
    job_ids: Optional[List[str]] = Field(None, alias="jobIds")
    limit: Optional[int] = Field(None, ge=1)

    class Config:
        populate_by_name = True


@router.post("/process")
def process_job(request: ProcessJobRequest, services: Services = Depends(get_services)):
    """Run a single queued job synchronously"""
    try:
        result = services.executor.run_job(request.job_id)
    except JobNotFoundError:
        raise HTTPException(status_code=404, detail="Job not found")
    except InvalidTransitionError as e:
        raise HTTPException(status_code=400, detail=str(e))

    if not result.success:
        raise HTTPException(status_code=500, detail=result.error)
    return result.to_dict()


@router.post("/process-queue")
def process_queue(request: Optional[ProcessQueueRequest] = None, services: Services = Depends(get_services)):
    """Run the given jobs, or the next batch of queued jobs, one after another"""
    request = request or ProcessQueueRequest()
    limit = request.limit or services.settings.PROCESS_QUEUE_LIMIT
    results = services.executor.run_jobs(job_ids=request.job_ids, limit=limit)

    if not results:
        return {"success": True, "message": "No queued jobs to process", "processed": 0}

    successful = sum(1 for r in results if r.success)
    return {
        "success": True,
        "processed": len(results),
        "successful": successful,
        "failed": len(results) - successful,
        "results": [r.to_dict() for r in results],
    }


@router.post("/dispatch")
def dispatch_jobs(request: Optional[ProcessQueueRequest] = None, services: Services = Depends(get_services)):
    """Hand queued jobs to Celery workers instead of running them in the request"""
    from reelforge.workers.tasks import render_job_task

    request = request or ProcessQueueRequest()
    if request.job_ids is not None:
        job_ids = request.job_ids
    else:
        limit = request.limit or services.settings.PROCESS_QUEUE_LIMIT
        job_ids = [job.id for job in services.store.list_runnable(limit=limit)]

    tasks = []
    for job_id in job_ids:
        task = render_job_task.delay(job_id)
        logger.info(f"Render queued for job {job_id}, task_id: {task.id}")
        tasks.append({"jobId": job_id, "taskId": task.id})

    return {"success": True, "dispatched": len(tasks), "tasks": tasks}
