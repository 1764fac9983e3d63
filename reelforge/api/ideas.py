from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from typing import Optional
from reelforge.api.deps import get_services
from reelforge.errors import IdeaNotFoundError, ValidationError
from reelforge.models.render_job import RenderJobPriority
from reelforge.services.registry import Services
import logging

logger = logging.getLogger(__name__)
router = APIRouter()


class GenerateJobsRequest(BaseModel):
    priority: Optional[RenderJobPriority] = None
    batch_id: Optional[str] = Field(None, alias="batchId")
    force: bool = False

    class Config:
        populate_by_name = True


@router.post("/{idea_id}/generate-jobs")
def generate_jobs(
    idea_id: str,
    request: Optional[GenerateJobsRequest] = None,
    services: Services = Depends(get_services)
):
    """Queue render jobs for every persona/country/post combination of an idea"""
    request = request or GenerateJobsRequest()
    try:
        result = services.scheduler.create_jobs_for_idea(
            idea_id,
            priority=request.priority,
            batch_id=request.batch_id,
            force=request.force,
        )
    except IdeaNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return result.to_dict()
