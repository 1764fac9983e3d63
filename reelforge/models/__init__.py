"""
Database models for the render queue.
"""
from reelforge.models.render_job import (
    RenderJob,
    RenderJobStatus,
    RenderJobPriority,
    IN_FLIGHT_STATUSES,
    TERMINAL_STATUSES,
    DELETABLE_STATUSES,
)
from reelforge.models.idea import (
    Idea,
    PersonaVariant,
    CountryVariant,
    SlideContent,
    PERSONAS,
    COUNTRIES,
)

__all__ = [
    "RenderJob",
    "RenderJobStatus",
    "RenderJobPriority",
    "IN_FLIGHT_STATUSES",
    "TERMINAL_STATUSES",
    "DELETABLE_STATUSES",
    "Idea",
    "PersonaVariant",
    "CountryVariant",
    "SlideContent",
    "PERSONAS",
    "COUNTRIES",
]
