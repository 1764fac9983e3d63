"""
Creates render jobs for every (persona, country, post) combination of an idea.
"""
from dataclasses import dataclass
from typing import List, Optional
from sqlalchemy.orm import sessionmaker, selectinload
from reelforge.errors import ValidationError, IdeaNotFoundError
from reelforge.models.idea import Idea, PersonaVariant
from reelforge.models.render_job import RenderJob, RenderJobPriority
from reelforge.services.job_store import JobStore
import time
import logging

logger = logging.getLogger(__name__)


@dataclass
class ScheduleResult:
    jobs_created: int
    jobs: List[RenderJob]
    batch_id: str
    skipped: int = 0
    combinations: int = 0

    def to_dict(self) -> dict:
        return {
            "success": True,
            "jobsCreated": self.jobs_created,
            "jobs": [job.to_dict() for job in self.jobs],
            "batchId": self.batch_id,
            "skipped": self.skipped,
        }


class JobScheduler:
    def __init__(self, session_factory: sessionmaker, store: JobStore, posts_per_combination: int = 7):
        self.session_factory = session_factory
        self.store = store
        self.posts_per_combination = posts_per_combination

    def _load_combinations(self, idea_id: str) -> List[tuple]:
        db = self.session_factory()
        try:
            idea = db.query(Idea).options(
                selectinload(Idea.personas).selectinload(PersonaVariant.countries)
            ).filter(Idea.id == idea_id).first()
            if not idea:
                raise IdeaNotFoundError(idea_id)

            if not idea.personas or not idea.combinations:
                raise ValidationError("Idea must have at least one persona and country configured")
            return idea.combinations
        finally:
            db.close()

    def create_jobs_for_idea(
        self,
        idea_id: str,
        priority: Optional[RenderJobPriority] = None,
        batch_id: Optional[str] = None,
        force: bool = False,
    ) -> ScheduleResult:
        """
        Queue one job per persona x country x post index.

        Without force, keys that already have a job are skipped. With force a
        new job is always added and existing ones are left untouched.
        """
        combinations = self._load_combinations(idea_id)
        batch_id = batch_id or f"{idea_id}-{int(time.time() * 1000)}"
        priority = priority or RenderJobPriority.NORMAL

        fields = {"priority": priority, "batch_id": batch_id}
        jobs = []
        total = 0
        for persona_type, country in combinations:
            for post_index in range(1, self.posts_per_combination + 1):
                total += 1
                if force:
                    job = self.store.create_forced(idea_id, persona_type, country, post_index, **fields)
                else:
                    job = self.store.create_unique(idea_id, persona_type, country, post_index, **fields)
                if job:
                    jobs.append(job)

        skipped = 0 if force else total - len(jobs)
        logger.info(
            f"Scheduled {len(jobs)} jobs for idea {idea_id} (batch {batch_id}, "
            f"force={force}, skipped={skipped})"
        )
        return ScheduleResult(
            jobs_created=len(jobs),
            jobs=jobs,
            batch_id=batch_id,
            skipped=skipped,
            combinations=total,
        )
