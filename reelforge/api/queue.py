from fastapi import APIRouter, Depends, HTTPException
from typing import Optional
from reelforge.api.deps import get_services
from reelforge.errors import JobNotFoundError, JobConflictError, InvalidTransitionError
from reelforge.models.render_job import RenderJobStatus, RenderJobPriority
from reelforge.services.registry import Services
import logging

logger = logging.getLogger(__name__)
router = APIRouter()


def _parse_filter(enum_cls, value: Optional[str], name: str):
    if not value or value == "all":
        return None
    try:
        return enum_cls(value)
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Invalid {name}: {value}")


@router.get("")
def list_jobs(
    status: Optional[str] = None,
    priority: Optional[str] = None,
    ideaId: Optional[str] = None,
    services: Services = Depends(get_services)
):
    """List render jobs, newest first. "all" disables a filter."""
    jobs = services.store.list(
        status=_parse_filter(RenderJobStatus, status, "status"),
        priority=_parse_filter(RenderJobPriority, priority, "priority"),
        idea_id=ideaId or None,
    )
    return {
        "success": True,
        "count": len(jobs),
        "jobs": [job.to_dict() for job in jobs],
    }


@router.get("/{job_id}")
def get_job(job_id: str, services: Services = Depends(get_services)):
    try:
        return services.store.get(job_id).to_dict()
    except JobNotFoundError:
        raise HTTPException(status_code=404, detail="Job not found")


@router.delete("/{job_id}")
def delete_job(job_id: str, services: Services = Depends(get_services)):
    """Delete a job unless it is in progress"""
    try:
        services.executor.delete(job_id)
    except JobNotFoundError:
        raise HTTPException(status_code=404, detail="Job not found")
    except JobConflictError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return {"success": True}


@router.post("/{job_id}/retry")
def retry_job(job_id: str, run: bool = False, services: Services = Depends(get_services)):
    """Reset a complete or failed job to queued, optionally running it right away"""
    try:
        job = services.executor.retry(job_id)
    except JobNotFoundError:
        raise HTTPException(status_code=404, detail="Job not found")
    except InvalidTransitionError as e:
        raise HTTPException(status_code=400, detail=str(e))

    if run:
        services.executor.run_jobs([job_id])
        job = services.store.get(job_id)

    return {"success": True, "job": job.to_dict()}
