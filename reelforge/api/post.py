from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
from typing import List
from reelforge.api.deps import get_services
from reelforge.services.registry import Services
from reelforge.services.social_posting import PostingRequest, PostingStatus

router = APIRouter()


class PostVideoRequest(BaseModel):
    platform: str
    video_url: str = Field(..., alias="videoUrl")
    caption: str = ""
    hashtags: List[str] = []

    class Config:
        populate_by_name = True


@router.get("")
def posting_status(services: Services = Depends(get_services)):
    """Configuration status for each social platform"""
    return {"platforms": services.publisher.config_status()}


@router.post("")
def post_video(request: PostVideoRequest, services: Services = Depends(get_services)):
    result = services.publisher.post(PostingRequest(
        platform=request.platform,
        video_url=request.video_url,
        caption=request.caption,
        hashtags=request.hashtags,
    ))

    if result.success:
        return {"success": True, "postId": result.post_id, "postUrl": result.post_url}

    return JSONResponse(
        status_code=503 if result.status == PostingStatus.NOT_CONFIGURED else 500,
        content={"success": False, "error": result.error, "status": result.status.value},
    )
