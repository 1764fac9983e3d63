import pytest

from reelforge.config import Settings
from reelforge.errors import UploadError
from reelforge.services.storage import LocalStorage, build_storage


def test_local_upload_overwrites_existing_object(tmp_path):
    storage = LocalStorage(tmp_path, "http://localhost:8000/storage/")

    storage.upload("videos/idea-1/main-us/main-us-1.mp4", b"first")
    path = storage.upload("/videos/idea-1/main-us/main-us-1.mp4", b"second")

    assert path == "videos/idea-1/main-us/main-us-1.mp4"
    assert (tmp_path / path).read_bytes() == b"second"


def test_local_public_url_is_encoded(tmp_path):
    storage = LocalStorage(tmp_path, "http://localhost:8000/storage")

    assert storage.get_public_url("videos/idea 1/main-us.mp4") == (
        "http://localhost:8000/storage/videos/idea%201/main-us.mp4"
    )


def test_local_upload_refuses_paths_outside_root(tmp_path):
    storage = LocalStorage(tmp_path / "root", "http://localhost:8000/storage")

    with pytest.raises(UploadError):
        storage.upload("../escape.mp4", b"data")


def test_build_storage_requires_supabase_credentials(tmp_path):
    settings = Settings(_env_file=None, STORAGE_BACKEND="supabase", SUPABASE_URL=None, SUPABASE_SERVICE_ROLE_KEY=None)

    with pytest.raises(ValueError):
        build_storage(settings)


def test_build_storage_defaults_to_local(settings):
    assert isinstance(build_storage(settings), LocalStorage)
