"""
Render Job Model
One row per short video being produced for an (idea, persona, country, post) combination
"""
from sqlalchemy import Column, String, Integer, JSON, Text, DateTime, Enum as SQLEnum, UniqueConstraint, Index
from reelforge.database import Base
from datetime import datetime, timezone
import uuid
import enum


def utcnow():
    return datetime.now(timezone.utc)


class RenderJobStatus(str, enum.Enum):
    QUEUED = "queued"
    GENERATING = "generating"
    ENCODING = "encoding"
    UPLOADING = "uploading"
    COMPLETE = "complete"
    FAILED = "failed"


class RenderJobPriority(str, enum.Enum):
    HIGH = "high"
    NORMAL = "normal"
    LOW = "low"


IN_FLIGHT_STATUSES = (RenderJobStatus.GENERATING, RenderJobStatus.ENCODING, RenderJobStatus.UPLOADING)
TERMINAL_STATUSES = (RenderJobStatus.COMPLETE, RenderJobStatus.FAILED)
DELETABLE_STATUSES = (RenderJobStatus.QUEUED,) + TERMINAL_STATUSES


class RenderJob(Base):
    __tablename__ = "render_jobs"
    __table_args__ = (
        # revision 0 is the regular job; forced re-creates take revision 1, 2, ...
        UniqueConstraint("idea_id", "persona_type", "country", "post_index", "revision",
                         name="uq_render_jobs_natural_key"),
        Index("idx_render_jobs_status", "status"),
        Index("idx_render_jobs_batch_id", "batch_id"),
    )

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    idea_id = Column(String(36), nullable=False, index=True)
    persona_type = Column(String(20), nullable=False)
    country = Column(String(10), nullable=False)
    post_index = Column(Integer, nullable=False, default=1)
    revision = Column(Integer, nullable=False, default=0)

    status = Column(SQLEnum(RenderJobStatus), nullable=False, default=RenderJobStatus.QUEUED)
    priority = Column(SQLEnum(RenderJobPriority), nullable=False, default=RenderJobPriority.NORMAL)
    batch_id = Column(String, nullable=True)
    tags = Column(JSON, default=list)

    output_url = Column(Text, nullable=True)  # set only when complete
    error_message = Column(Text, nullable=True)  # set only when failed

    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    @property
    def natural_key(self):
        return (self.idea_id, self.persona_type, self.country, self.post_index)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "idea_id": self.idea_id,
            "persona_type": self.persona_type,
            "country": self.country,
            "post_index": self.post_index,
            "revision": self.revision,
            "status": self.status.value,
            "priority": self.priority.value,
            "batch_id": self.batch_id,
            "tags": self.tags or [],
            "output_url": self.output_url,
            "error_message": self.error_message,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

    def __repr__(self):
        return f"<RenderJob {self.id} {self.persona_type}-{self.country}#{self.post_index} {self.status.value}>"
