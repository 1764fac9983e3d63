"""
Builds the service graph from a Settings object.
Entry points (the FastAPI app, the Celery worker) each build their own.
"""
from dataclasses import dataclass
from typing import Optional
from sqlalchemy.orm import sessionmaker
from reelforge.config import Settings
from reelforge.database import build_engine, build_session_factory, init_db
from reelforge.services.executor import JobExecutor
from reelforge.services.frame_source import FrameSource, TextCardFrameSource
from reelforge.services.job_store import JobStore
from reelforge.services.scheduler import JobScheduler
from reelforge.services.social_posting import SocialPublisher
from reelforge.services.storage import ObjectStorage, build_storage
from reelforge.services.video_compiler import FfmpegEncoder, VideoCompiler


@dataclass
class Services:
    settings: Settings
    session_factory: sessionmaker
    store: JobStore
    scheduler: JobScheduler
    compiler: VideoCompiler
    executor: JobExecutor
    publisher: SocialPublisher


def build_services(
    settings: Settings,
    session_factory: Optional[sessionmaker] = None,
    storage: Optional[ObjectStorage] = None,
    encoder: Optional[FfmpegEncoder] = None,
    frame_source: Optional[FrameSource] = None,
) -> Services:
    if session_factory is None:
        engine = build_engine(settings)
        init_db(engine)
        session_factory = build_session_factory(engine)

    store = JobStore(session_factory)
    compiler = VideoCompiler.from_settings(settings, storage or build_storage(settings))
    if encoder is not None:
        compiler.encoder = encoder

    executor = JobExecutor(
        store=store,
        compiler=compiler,
        frame_source=frame_source or TextCardFrameSource(
            session_factory, width=settings.VIDEO_WIDTH, height=settings.VIDEO_HEIGHT
        ),
        job_timeout=settings.JOB_TIMEOUT_SECONDS,
        slide_duration=settings.SLIDE_DURATION_SECONDS,
    )

    return Services(
        settings=settings,
        session_factory=session_factory,
        store=store,
        scheduler=JobScheduler(session_factory, store, posts_per_combination=settings.POSTS_PER_COMBINATION),
        compiler=compiler,
        executor=executor,
        publisher=SocialPublisher.from_settings(settings),
    )
