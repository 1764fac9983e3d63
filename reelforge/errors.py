"""
Error taxonomy for the render queue.

Scheduler and executor errors surface to API callers as structured
responses; compiler errors are folded into a failed CompileResult and end
up as the job's error_message.
"""
from typing import Optional


class ReelforgeError(Exception):
    """Base class for every error raised by the render queue"""


class ValidationError(ReelforgeError):
    """Input to the scheduler is malformed or leaves nothing to schedule"""


class JobNotFoundError(ReelforgeError):
    def __init__(self, job_id: str):
        super().__init__(f"Job not found: {job_id}")
        self.job_id = job_id


class JobConflictError(ReelforgeError):
    """A delete was attempted while the job is in flight"""

    def __init__(self, job_id: str, status: str):
        super().__init__(f"cannot delete job with status: {status}")
        self.job_id = job_id
        self.status = status


class InvalidTransitionError(ReelforgeError):
    def __init__(self, job_id: str, status: str, message: Optional[str] = None):
        super().__init__(message or f"invalid transition for job with status: {status}")
        self.job_id = job_id
        self.status = status


class DownloadError(ReelforgeError):
    def __init__(self, slide_number: int, cause: str):
        super().__init__(f"failed to download slide {slide_number}: {cause}")
        self.slide_number = slide_number
        self.cause = cause


class EncodeError(ReelforgeError):
    """The encoder exited non-zero; stderr holds the raw ffmpeg diagnostic"""

    def __init__(self, message: str, stderr: str = ""):
        super().__init__(message)
        self.stderr = stderr


class CompileTimeoutError(EncodeError):
    pass


class UploadError(ReelforgeError):
    pass


class IdeaNotFoundError(ReelforgeError):
    def __init__(self, idea_id: str):
        super().__init__(f"Idea not found: {idea_id}")
        self.idea_id = idea_id
