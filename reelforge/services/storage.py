from pathlib import Path
from urllib.parse import quote
from reelforge.config import Settings
from reelforge.errors import UploadError
import logging

logger = logging.getLogger(__name__)


class ObjectStorage:
    """Durable storage for compiled videos. Uploads overwrite (upsert) an existing path."""

    def upload(self, path: str, data: bytes, content_type: str = "video/mp4") -> str:
        """Store bytes at path. Returns the stored path; raises UploadError on failure."""
        raise NotImplementedError

    def get_public_url(self, path: str) -> str:
        raise NotImplementedError


class LocalStorage(ObjectStorage):
    """Files under BASE_STORAGE_PATH, served by the app's /storage mount"""

    def __init__(self, base_path: Path, public_base_url: str):
        self.base_path = Path(base_path)
        self.public_base_url = public_base_url.rstrip("/")

    def upload(self, path: str, data: bytes, content_type: str = "video/mp4") -> str:
        path = path.strip("/")
        target = (self.base_path / path).resolve()
        if self.base_path.resolve() not in target.parents:
            raise UploadError(f"Failed to upload video: path escapes storage root: {path}")

        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            with open(target, "wb") as f:
                f.write(data)
        except OSError as e:
            logger.error(f"Failed to save {path}: {e}")
            raise UploadError(f"Failed to upload video: {e}") from e

        logger.info(f"Saved {path} ({len(data)} bytes)")
        return path

    def get_public_url(self, path: str) -> str:
        encoded = "/".join(quote(part, safe="") for part in path.strip("/").split("/"))
        return f"{self.public_base_url}/{encoded}"


class SupabaseStorage(ObjectStorage):
    """Supabase storage bucket via supabase-py"""

    def __init__(self, supabase_url: str, supabase_key: str, bucket_name: str):
        from supabase import create_client

        self.bucket_name = bucket_name
        self.client = create_client(supabase_url, supabase_key)

    def upload(self, path: str, data: bytes, content_type: str = "video/mp4") -> str:
        path = path.strip("/")
        logger.info(f"Uploading {len(data)} bytes to {self.bucket_name}/{path}")
        try:
            self.client.storage.from_(self.bucket_name).upload(
                path=path,
                file=data,
                file_options={"content-type": content_type, "upsert": "true"},
            )
        except Exception as e:
            logger.error(f"Supabase upload failed for {path}: {e}")
            raise UploadError(f"Failed to upload video: {e}") from e
        return path

    def get_public_url(self, path: str) -> str:
        return self.client.storage.from_(self.bucket_name).get_public_url(path)


def build_storage(settings: Settings) -> ObjectStorage:
    backend = settings.STORAGE_BACKEND.lower()
    if backend == "supabase":
        if not settings.SUPABASE_URL or not settings.SUPABASE_SERVICE_ROLE_KEY:
            raise ValueError("STORAGE_BACKEND=supabase requires SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY")
        return SupabaseStorage(settings.SUPABASE_URL, settings.SUPABASE_SERVICE_ROLE_KEY, settings.SLIDE_ASSETS_BUCKET)
    if backend == "local":
        return LocalStorage(settings.BASE_STORAGE_PATH, settings.PUBLIC_BASE_URL)
    raise ValueError(f"Unknown STORAGE_BACKEND: {settings.STORAGE_BACKEND}")
