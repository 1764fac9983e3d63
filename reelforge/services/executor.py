"""
Drives render jobs through their lifecycle:

    queued -> generating -> encoding -> uploading -> complete
                   \____________\___________\______-> failed

complete and failed both accept a retry back to queued. Deletion is refused
while a job is generating, encoding or uploading.
"""
from dataclasses import dataclass
from typing import Iterable, List, Optional
import time
from reelforge.errors import (
    ReelforgeError,
    InvalidTransitionError,
    ValidationError,
)
from reelforge.models.render_job import (
    RenderJob,
    RenderJobStatus,
    IN_FLIGHT_STATUSES,
    TERMINAL_STATUSES,
)
from reelforge.services.frame_source import FrameSource
from reelforge.services.job_store import JobStore
from reelforge.services.video_compiler import CompileRequest, VideoCompiler
import logging

logger = logging.getLogger(__name__)

# Status a compiler phase moves into, and the status it must come from
PHASE_TRANSITIONS = {
    "encoding": (RenderJobStatus.ENCODING, RenderJobStatus.GENERATING),
    "uploading": (RenderJobStatus.UPLOADING, RenderJobStatus.ENCODING),
}


@dataclass
class JobRunResult:
    job_id: str
    success: bool
    status: Optional[str] = None
    output_url: Optional[str] = None
    storage_path: Optional[str] = None
    slides_rendered: int = 0
    error: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "jobId": self.job_id,
            "success": self.success,
            "status": self.status,
            "videoUrl": self.output_url,
            "storagePath": self.storage_path,
            "slidesRendered": self.slides_rendered,
            "error": self.error,
        }


class JobExecutor:
    def __init__(
        self,
        store: JobStore,
        compiler: VideoCompiler,
        frame_source: FrameSource,
        job_timeout: Optional[float] = None,
        slide_duration: Optional[float] = None,
    ):
        self.store = store
        self.compiler = compiler
        self.frame_source = frame_source
        self.job_timeout = job_timeout
        self.slide_duration = slide_duration

    def run_job(self, job_id: str, timeout: Optional[float] = None) -> JobRunResult:
        """
        Execute one queued job to a terminal status.

        Raises JobNotFoundError / InvalidTransitionError if the job cannot be
        started; once started, every failure ends in status failed.
        """
        job = self.store.get(job_id)
        if job.status != RenderJobStatus.QUEUED:
            raise InvalidTransitionError(job_id, job.status.value, f"Job is not queued (status: {job.status.value})")

        job = self.store.transition(job_id, RenderJobStatus.GENERATING, [RenderJobStatus.QUEUED])
        timeout = timeout or self.job_timeout
        started = time.monotonic()
        slides_rendered = 0

        try:
            frames = self.frame_source.get_frames(job)
            if not frames:
                raise ValidationError("No slides to render")
            slides_rendered = len(frames)

            remaining = None
            if timeout:
                remaining = timeout - (time.monotonic() - started)
                if remaining <= 0:
                    raise ReelforgeError(f"Job timed out after {timeout:.0f}s")

            result = self.compiler.compile_video(
                CompileRequest(
                    frames=frames,
                    output_filename=self.output_filename(job),
                    idea_id=job.idea_id,
                    persona=job.persona_type,
                    country=job.country,
                    slide_duration=self.slide_duration,
                ),
                on_phase=lambda phase: self._advance(job_id, phase),
                timeout=remaining,
            )
            if not result.success:
                return self._fail(job_id, result.error or "Video compilation failed", slides_rendered)

            job = self.store.transition(
                job_id,
                RenderJobStatus.COMPLETE,
                [RenderJobStatus.UPLOADING],
                output_url=result.public_url,
            )
        except Exception as e:
            logger.error(f"Render failed for job {job_id}: {e}")
            return self._fail(job_id, str(e) or e.__class__.__name__, slides_rendered)

        duration = time.monotonic() - started
        logger.info(f"Job {job_id} completed in {duration:.2f}s: {result.public_url}")
        return JobRunResult(
            job_id=job_id,
            success=True,
            status=job.status.value,
            output_url=result.public_url,
            storage_path=result.storage_path,
            slides_rendered=slides_rendered,
        )

    def run_jobs(self, job_ids: Optional[Iterable[str]] = None, limit: Optional[int] = None) -> List[JobRunResult]:
        """
        Run the given jobs, or the queued ones in priority order.
        Each job runs on its own; one failure never stops the rest.
        """
        if job_ids is not None:
            ids = list(dict.fromkeys(job_ids))
        else:
            ids = [job.id for job in self.store.list_runnable(limit=limit)]

        results = []
        for job_id in ids:
            try:
                results.append(self.run_job(job_id))
            except ReelforgeError as e:
                logger.warning(f"Skipping job {job_id}: {e}")
                results.append(JobRunResult(job_id=job_id, success=False, error=str(e)))
        return results

    def retry(self, job_id: str) -> RenderJob:
        """Reset a complete or failed job to queued, clearing its output and error"""
        try:
            job = self.store.transition(job_id, RenderJobStatus.QUEUED, TERMINAL_STATUSES)
        except InvalidTransitionError as e:
            raise InvalidTransitionError(job_id, e.status, f"cannot retry job with status: {e.status}") from e
        logger.info(f"Job {job_id} reset for retry")
        return job

    def delete(self, job_id: str) -> None:
        self.store.delete(job_id)

    @staticmethod
    def output_filename(job: RenderJob) -> str:
        return f"{job.persona_type}-{job.country}-{job.post_index}.mp4"

    def _advance(self, job_id: str, phase: str) -> None:
        status, previous = PHASE_TRANSITIONS[phase]
        self.store.transition(job_id, status, [previous])

    def _fail(self, job_id: str, error: str, slides_rendered: int = 0) -> JobRunResult:
        try:
            self.store.transition(job_id, RenderJobStatus.FAILED, IN_FLIGHT_STATUSES, error_message=error)
        except ReelforgeError as e:
            logger.error(f"Could not mark job {job_id} as failed: {e}")
        return JobRunResult(
            job_id=job_id,
            success=False,
            status=RenderJobStatus.FAILED.value,
            slides_rendered=slides_rendered,
            error=error,
        )
