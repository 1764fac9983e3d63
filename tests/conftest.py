import pytest
from pathlib import Path
from fastapi.testclient import TestClient

from reelforge.config import Settings
from reelforge.database import build_engine, build_session_factory, init_db
from reelforge.errors import EncodeError, UploadError
from reelforge.main import create_app
from reelforge.models.idea import Idea, PersonaVariant, CountryVariant, SlideContent
from reelforge.services.executor import JobExecutor
from reelforge.services.frame_source import FrameSource
from reelforge.services.job_store import JobStore
from reelforge.services.registry import build_services
from reelforge.services.scheduler import JobScheduler
from reelforge.services.storage import ObjectStorage
from reelforge.services.video_compiler import SlideFrame, VideoCompiler


class FakeStorage(ObjectStorage):
    def __init__(self):
        self.objects = {}
        self.fail = False
        self.observer = None

    def upload(self, path, data, content_type="video/mp4"):
        if self.observer:
            self.observer(path)
        if self.fail:
            raise UploadError("Failed to upload video: bucket rejected the object")
        self.objects[path] = data
        return path

    def get_public_url(self, path):
        return f"https://cdn.example.com/{path}"


class FakeEncoder:
    """Stands in for ffmpeg: records the descriptor and writes a tiny file"""

    def __init__(self):
        self.calls = []
        self.fail = False
        self.observer = None

    def encode(self, concat_path, output_path, timeout=None):
        concat = Path(concat_path)
        self.calls.append({
            "workspace": concat.parent,
            "descriptor": concat.read_text(),
            "files": sorted(p.name for p in concat.parent.iterdir()),
            "timeout": timeout,
        })
        if self.observer:
            self.observer(concat_path)
        if self.fail:
            raise EncodeError("ffmpeg exited with code 1", stderr="Invalid data found when processing input")
        Path(output_path).write_bytes(b"fake-mp4-bytes")


class FakeFrameSource(FrameSource):
    def __init__(self, slide_count=3):
        self.slide_count = slide_count
        self.error = None

    def get_frames(self, job):
        if self.error:
            raise self.error
        return [SlideFrame(slide_number=n, image=f"png-{n}".encode()) for n in range(1, self.slide_count + 1)]


@pytest.fixture
def settings(tmp_path):
    return Settings(
        _env_file=None,
        DATABASE_URL="sqlite://",
        STORAGE_BACKEND="local",
        BASE_STORAGE_PATH=tmp_path / "storage",
        TEMP_DIR=tmp_path / "scratch",
        JOB_TIMEOUT_SECONDS=30,
    )


@pytest.fixture
def session_factory(settings):
    engine = build_engine(settings)
    init_db(engine)
    yield build_session_factory(engine)
    engine.dispose()


@pytest.fixture
def store(session_factory):
    return JobStore(session_factory)


@pytest.fixture
def scheduler(session_factory, store):
    return JobScheduler(session_factory, store, posts_per_combination=7)


@pytest.fixture
def storage():
    return FakeStorage()


@pytest.fixture
def encoder():
    return FakeEncoder()


@pytest.fixture
def frame_source():
    return FakeFrameSource()


@pytest.fixture
def compiler(settings, storage, encoder):
    return VideoCompiler(storage=storage, encoder=encoder, temp_dir=settings.TEMP_DIR, slide_duration=4)


@pytest.fixture
def executor(store, compiler, frame_source):
    return JobExecutor(store=store, compiler=compiler, frame_source=frame_source, job_timeout=30)


@pytest.fixture
def make_idea(session_factory):
    def _make_idea(config=None, slides=("Hook", "Problem", "Call to action"), title="Morning routine"):
        """config maps persona_type -> list of countries"""
        config = {"main": ["us", "uk"]} if config is None else config
        db = session_factory()
        try:
            idea = Idea(title=title, category="lifestyle")
            for persona_type, countries in config.items():
                persona = PersonaVariant(persona_type=persona_type)
                for country in countries:
                    variant = CountryVariant(country=country)
                    variant.slides = [
                        SlideContent(slide_number=i, slide_type="generic", content=text)
                        for i, text in enumerate(slides, start=1)
                    ]
                    persona.countries.append(variant)
                idea.personas.append(persona)
            db.add(idea)
            db.commit()
            return idea.id
        finally:
            db.close()

    return _make_idea


@pytest.fixture
def client(settings, session_factory, storage, encoder):
    services = build_services(
        settings,
        session_factory=session_factory,
        storage=storage,
        encoder=encoder,
    )
    with TestClient(create_app(settings, services)) as test_client:
        yield test_client
