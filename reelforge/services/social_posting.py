"""
Social media posting.

TikTok (Content Posting API) and Instagram (Graph API, Reels) both need
business verification before videos can be published, so neither poster
publishes yet. Each one reports NOT_CONFIGURED instead of raising.
"""
from dataclasses import dataclass, field
from typing import Dict, List, Optional
import enum
from reelforge.config import Settings
import logging

logger = logging.getLogger(__name__)


class SocialPlatform(str, enum.Enum):
    TIKTOK = "tiktok"
    INSTAGRAM = "instagram"


class PostingStatus(str, enum.Enum):
    NOT_CONFIGURED = "not_configured"
    PENDING = "pending"
    UPLOADING = "uploading"
    PROCESSING = "processing"
    PUBLISHED = "published"
    FAILED = "failed"


@dataclass
class PostingRequest:
    platform: str
    video_url: str
    caption: str = ""
    hashtags: List[str] = field(default_factory=list)


@dataclass
class PostingResult:
    success: bool
    platform: str
    status: PostingStatus
    post_id: Optional[str] = None
    post_url: Optional[str] = None
    error: Optional[str] = None


class SocialPoster:
    platform: SocialPlatform
    name: str = ""
    setup_url: str = ""

    def is_configured(self) -> bool:
        raise NotImplementedError

    def post(self, request: PostingRequest) -> PostingResult:
        raise NotImplementedError

    def _not_configured(self, error: str) -> PostingResult:
        return PostingResult(
            success=False,
            platform=self.platform.value,
            status=PostingStatus.NOT_CONFIGURED,
            error=error,
        )


class TikTokPoster(SocialPoster):
    platform = SocialPlatform.TIKTOK
    name = "TikTok"
    setup_url = "https://developers.tiktok.com/"

    def __init__(self, client_key: Optional[str], client_secret: Optional[str]):
        self.client_key = client_key
        self.client_secret = client_secret

    def is_configured(self) -> bool:
        return bool(self.client_key and self.client_secret)

    def post(self, request: PostingRequest) -> PostingResult:
        if not self.is_configured():
            return self._not_configured("TikTok API not configured. Set TIKTOK_CLIENT_KEY and TIKTOK_CLIENT_SECRET")
        return self._not_configured("TikTok posting not yet implemented. API approval required.")


class InstagramPoster(SocialPoster):
    platform = SocialPlatform.INSTAGRAM
    name = "Instagram"
    setup_url = "https://developers.facebook.com/docs/instagram-api/"

    def __init__(self, access_token: Optional[str], business_account_id: Optional[str]):
        self.access_token = access_token
        self.business_account_id = business_account_id

    def is_configured(self) -> bool:
        return bool(self.access_token and self.business_account_id)

    def post(self, request: PostingRequest) -> PostingResult:
        if not self.is_configured():
            return self._not_configured(
                "Instagram API not configured. Set INSTAGRAM_ACCESS_TOKEN and INSTAGRAM_BUSINESS_ACCOUNT_ID"
            )
        return self._not_configured("Instagram posting not yet implemented. API approval required.")


class SocialPublisher:
    """Routes posting requests to the poster for their platform"""

    def __init__(self, posters: List[SocialPoster]):
        self.posters: Dict[str, SocialPoster] = {p.platform.value: p for p in posters}

    @classmethod
    def from_settings(cls, settings: Settings) -> "SocialPublisher":
        return cls([
            TikTokPoster(settings.TIKTOK_CLIENT_KEY, settings.TIKTOK_CLIENT_SECRET),
            InstagramPoster(settings.INSTAGRAM_ACCESS_TOKEN, settings.INSTAGRAM_BUSINESS_ACCOUNT_ID),
        ])

    def config_status(self) -> Dict[str, dict]:
        return {
            platform: {"configured": p.is_configured(), "name": p.name, "setupUrl": p.setup_url}
            for platform, p in self.posters.items()
        }

    def post(self, request: PostingRequest) -> PostingResult:
        poster = self.posters.get(request.platform)
        if not poster:
            return PostingResult(
                success=False,
                platform=request.platform,
                status=PostingStatus.FAILED,
                error=f"Unknown platform: {request.platform}",
            )
        result = poster.post(request)
        logger.info(f"Posting to {request.platform}: {result.status.value}")
        return result
