"""
Render job persistence.
Every mutation touches a single row and commits on its own; status changes
are compare-and-set so two writers can never both win the same transition.
"""
from typing import Iterable, List, Optional
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import sessionmaker
from reelforge.errors import JobNotFoundError, JobConflictError, InvalidTransitionError
from reelforge.models.render_job import (
    RenderJob,
    RenderJobStatus,
    RenderJobPriority,
    DELETABLE_STATUSES,
    utcnow,
)
import logging

logger = logging.getLogger(__name__)

PRIORITY_ORDER = {
    RenderJobPriority.HIGH: 0,
    RenderJobPriority.NORMAL: 1,
    RenderJobPriority.LOW: 2,
}

# Forced creates racing each other on the same key retry with a fresh revision
MAX_REVISION_ATTEMPTS = 5


class JobStore:
    """Data access for render_jobs"""

    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    def create(self, **fields) -> RenderJob:
        db = self.session_factory()
        try:
            job = RenderJob(**fields)
            db.add(job)
            db.commit()
            db.refresh(job)
            return job
        finally:
            db.close()

    def create_unique(
        self,
        idea_id: str,
        persona_type: str,
        country: str,
        post_index: int,
        **fields
    ) -> Optional[RenderJob]:
        """
        Compare-and-create for a natural key.

        Returns the new job, or None when any job (regular or forced) already
        exists for the key. The unique constraint on revision 0 settles races
        between concurrent callers: the loser gets None instead of a duplicate.
        """
        db = self.session_factory()
        try:
            exists = db.query(RenderJob.id).filter(
                RenderJob.idea_id == idea_id,
                RenderJob.persona_type == persona_type,
                RenderJob.country == country,
                RenderJob.post_index == post_index,
            ).first()
            if exists:
                return None

            job = RenderJob(
                idea_id=idea_id,
                persona_type=persona_type,
                country=country,
                post_index=post_index,
                revision=0,
                **fields
            )
            db.add(job)
            try:
                db.commit()
            except IntegrityError:
                db.rollback()
                logger.info(f"Job for {idea_id}/{persona_type}-{country}#{post_index} created concurrently, skipping")
                return None
            db.refresh(job)
            return job
        finally:
            db.close()

    def create_forced(
        self,
        idea_id: str,
        persona_type: str,
        country: str,
        post_index: int,
        **fields
    ) -> RenderJob:
        """Always add a new job for the key, next to whatever already exists"""
        db = self.session_factory()
        try:
            for _ in range(MAX_REVISION_ATTEMPTS):
                latest = db.query(func.max(RenderJob.revision)).filter(
                    RenderJob.idea_id == idea_id,
                    RenderJob.persona_type == persona_type,
                    RenderJob.country == country,
                    RenderJob.post_index == post_index,
                ).scalar()
                job = RenderJob(
                    idea_id=idea_id,
                    persona_type=persona_type,
                    country=country,
                    post_index=post_index,
                    revision=0 if latest is None else latest + 1,
                    **fields
                )
                db.add(job)
                try:
                    db.commit()
                except IntegrityError:
                    db.rollback()
                    continue
                db.refresh(job)
                return job
            raise RuntimeError(
                f"Could not allocate a revision for {idea_id}/{persona_type}-{country}#{post_index}"
            )
        finally:
            db.close()

    def get(self, job_id: str) -> RenderJob:
        db = self.session_factory()
        try:
            job = db.query(RenderJob).filter(RenderJob.id == job_id).first()
            if not job:
                raise JobNotFoundError(job_id)
            return job
        finally:
            db.close()

    def list(
        self,
        status: Optional[RenderJobStatus] = None,
        priority: Optional[RenderJobPriority] = None,
        idea_id: Optional[str] = None,
        job_ids: Optional[Iterable[str]] = None,
    ) -> List[RenderJob]:
        """Jobs matching every given filter, newest first"""
        db = self.session_factory()
        try:
            query = db.query(RenderJob)
            if status:
                query = query.filter(RenderJob.status == status)
            if priority:
                query = query.filter(RenderJob.priority == priority)
            if idea_id:
                query = query.filter(RenderJob.idea_id == idea_id)
            if job_ids is not None:
                query = query.filter(RenderJob.id.in_(list(job_ids)))
            return query.order_by(RenderJob.created_at.desc()).all()
        finally:
            db.close()

    def list_runnable(self, limit: Optional[int] = None) -> List[RenderJob]:
        """Queued jobs in run order: high priority first, then oldest first"""
        jobs = self.list(status=RenderJobStatus.QUEUED)
        jobs.sort(key=lambda j: (PRIORITY_ORDER[j.priority], j.created_at))
        return jobs[:limit] if limit else jobs

    def update(self, job_id: str, **patch) -> RenderJob:
        """
        Unconditional patch, for fixtures and administrative fixes.

        Ignores the transition rules but still keeps error_message only on
        failed jobs and output_url only on complete ones.
        """
        db = self.session_factory()
        try:
            job = db.query(RenderJob).filter(RenderJob.id == job_id).first()
            if not job:
                raise JobNotFoundError(job_id)
            for key, value in patch.items():
                setattr(job, key, value)
            if job.status != RenderJobStatus.FAILED:
                job.error_message = None
            if job.status != RenderJobStatus.COMPLETE:
                job.output_url = None
            job.updated_at = utcnow()
            db.commit()
            db.refresh(job)
            return job
        finally:
            db.close()

    def transition(
        self,
        job_id: str,
        status: RenderJobStatus,
        allowed_from: Iterable[RenderJobStatus],
        error_message: Optional[str] = None,
        output_url: Optional[str] = None,
    ) -> RenderJob:
        """
        Move a job to `status` only if it is currently in one of `allowed_from`.

        error_message is kept only on failed jobs and output_url only on
        complete ones; every other status clears both.
        """
        allowed_from = list(allowed_from)
        db = self.session_factory()
        try:
            updated = db.query(RenderJob).filter(
                RenderJob.id == job_id,
                RenderJob.status.in_(allowed_from),
            ).update(
                {
                    RenderJob.status: status,
                    RenderJob.error_message: error_message if status == RenderJobStatus.FAILED else None,
                    RenderJob.output_url: output_url if status == RenderJobStatus.COMPLETE else None,
                    RenderJob.updated_at: utcnow(),
                },
                synchronize_session=False,
            )
            db.commit()

            job = db.query(RenderJob).filter(RenderJob.id == job_id).first()
            if not job:
                raise JobNotFoundError(job_id)
            if not updated:
                raise InvalidTransitionError(
                    job_id,
                    job.status.value,
                    f"cannot move job from {job.status.value} to {status.value}",
                )
            logger.info(f"Job {job_id} -> {status.value}")
            return job
        finally:
            db.close()

    def delete(self, job_id: str) -> None:
        """Delete a queued or finished job; in-flight jobs raise JobConflictError"""
        db = self.session_factory()
        try:
            deleted = db.query(RenderJob).filter(
                RenderJob.id == job_id,
                RenderJob.status.in_(DELETABLE_STATUSES),
            ).delete(synchronize_session=False)
            db.commit()
            if deleted:
                logger.info(f"Deleted job {job_id}")
                return

            job = db.query(RenderJob).filter(RenderJob.id == job_id).first()
            if not job:
                raise JobNotFoundError(job_id)
            raise JobConflictError(job_id, job.status.value)
        finally:
            db.close()
