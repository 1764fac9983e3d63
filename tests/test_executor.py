import time
import pytest
from celery.exceptions import SoftTimeLimitExceeded

from reelforge.errors import InvalidTransitionError, JobConflictError, JobNotFoundError, ValidationError
from reelforge.models.render_job import RenderJobStatus
from reelforge.services.executor import JobExecutor


def _job(store, post_index=1, **fields):
    return store.create(idea_id="idea-1", persona_type="main", country="us", post_index=post_index, **fields)


def test_run_job_walks_every_phase_to_complete(executor, store, encoder, storage):
    job = _job(store)
    seen = []
    encoder.observer = lambda path: seen.append(store.get(job.id).status)
    storage.observer = lambda path: seen.append(store.get(job.id).status)

    result = executor.run_job(job.id)

    assert result.success
    assert seen == [RenderJobStatus.ENCODING, RenderJobStatus.UPLOADING]
    finished = store.get(job.id)
    assert finished.status == RenderJobStatus.COMPLETE
    assert finished.output_url == "https://cdn.example.com/videos/idea-1/main-us/main-us-1.mp4"
    assert finished.error_message is None
    assert result.slides_rendered == 3


def test_frame_source_failure_marks_job_failed(executor, store, frame_source, encoder):
    job = _job(store)
    frame_source.error = ValidationError('Country "us" not found for persona "main"')

    result = executor.run_job(job.id)

    assert not result.success
    assert encoder.calls == []
    failed = store.get(job.id)
    assert failed.status == RenderJobStatus.FAILED
    assert failed.error_message == 'Country "us" not found for persona "main"'


def test_no_frames_marks_job_failed(executor, store, frame_source):
    job = _job(store)
    frame_source.slide_count = 0

    executor.run_job(job.id)

    assert store.get(job.id).error_message == "No slides to render"


def test_encoder_failure_marks_job_failed_with_cause(executor, store, encoder):
    job = _job(store)
    encoder.fail = True

    result = executor.run_job(job.id)

    failed = store.get(job.id)
    assert failed.status == RenderJobStatus.FAILED
    assert "ffmpeg exited with code 1" in failed.error_message
    assert failed.output_url is None
    assert result.error == failed.error_message


def test_upload_failure_marks_job_failed(executor, store, storage):
    job = _job(store)
    storage.fail = True

    executor.run_job(job.id)

    failed = store.get(job.id)
    assert failed.status == RenderJobStatus.FAILED
    assert failed.error_message.startswith("Failed to upload video")


def test_exceeding_the_time_limit_fails_the_job(store, compiler, frame_source, encoder, settings):
    class SlowFrameSource:
        def get_frames(self, job):
            time.sleep(0.05)
            return frame_source.get_frames(job)

    executor = JobExecutor(store=store, compiler=compiler, frame_source=SlowFrameSource(), job_timeout=0.01)
    job = _job(store)

    result = executor.run_job(job.id)

    assert not result.success
    assert "timed out" in result.error
    assert store.get(job.id).status == RenderJobStatus.FAILED
    assert encoder.calls == []


def test_upload_past_the_time_limit_fails_the_job(store, compiler, frame_source, storage):
    storage.observer = lambda path: time.sleep(0.3)
    executor = JobExecutor(store=store, compiler=compiler, frame_source=frame_source, job_timeout=0.1)
    job = _job(store)

    result = executor.run_job(job.id)

    assert not result.success
    assert "timed out" in result.error
    failed = store.get(job.id)
    assert failed.status == RenderJobStatus.FAILED
    assert failed.output_url is None
    assert "timed out" in failed.error_message


def test_soft_time_limit_in_frame_source_fails_the_job(executor, store, frame_source, encoder):
    frame_source.error = SoftTimeLimitExceeded()
    job = _job(store)

    result = executor.run_job(job.id)

    assert not result.success
    assert encoder.calls == []
    failed = store.get(job.id)
    assert failed.status == RenderJobStatus.FAILED
    assert failed.error_message


def test_only_queued_jobs_can_run(executor, store):
    job = _job(store)
    store.update(job.id, status=RenderJobStatus.COMPLETE)

    with pytest.raises(InvalidTransitionError):
        executor.run_job(job.id)
    assert store.get(job.id).status == RenderJobStatus.COMPLETE


def test_run_unknown_job_raises(executor):
    with pytest.raises(JobNotFoundError):
        executor.run_job("missing")


def test_run_jobs_keeps_going_after_a_failure(executor, store, encoder):
    ok = _job(store, post_index=1)
    broken = _job(store, post_index=2)
    calls = {"n": 0}

    def fail_second(path):
        calls["n"] += 1
        encoder.fail = calls["n"] == 2

    encoder.observer = fail_second

    results = executor.run_jobs([ok.id, broken.id, "missing"])

    assert [r.success for r in results] == [True, False, False]
    assert store.get(ok.id).status == RenderJobStatus.COMPLETE
    assert store.get(broken.id).status == RenderJobStatus.FAILED
    assert "missing" in results[2].error


def test_run_jobs_without_ids_runs_queued_jobs(executor, store):
    first = _job(store, post_index=1)
    second = _job(store, post_index=2)
    done = _job(store, post_index=3)
    store.update(done.id, status=RenderJobStatus.COMPLETE, output_url="https://cdn.example.com/old.mp4")

    results = executor.run_jobs()

    assert {r.job_id for r in results} == {first.id, second.id}
    assert store.get(done.id).output_url == "https://cdn.example.com/old.mp4"


def test_run_jobs_respects_limit(executor, store):
    for i in range(1, 5):
        _job(store, post_index=i)

    results = executor.run_jobs(limit=2)

    assert len(results) == 2
    assert len(store.list(status=RenderJobStatus.QUEUED)) == 2


@pytest.mark.parametrize("status", [RenderJobStatus.COMPLETE, RenderJobStatus.FAILED])
def test_retry_resets_finished_job(executor, store, status):
    job = _job(store)
    store.update(job.id, status=status, error_message="old error", output_url="https://cdn.example.com/old.mp4")

    retried = executor.retry(job.id)

    assert retried.status == RenderJobStatus.QUEUED
    assert retried.error_message is None
    assert retried.output_url is None


@pytest.mark.parametrize("status", [
    RenderJobStatus.QUEUED,
    RenderJobStatus.GENERATING,
    RenderJobStatus.ENCODING,
    RenderJobStatus.UPLOADING,
])
def test_retry_rejects_unfinished_job(executor, store, status):
    job = _job(store)
    store.update(job.id, status=status)

    with pytest.raises(InvalidTransitionError) as exc:
        executor.retry(job.id)

    assert str(exc.value) == f"cannot retry job with status: {status.value}"
    assert store.get(job.id).status == status


def test_retried_job_can_run_again(executor, store, encoder):
    job = _job(store)
    encoder.fail = True
    executor.run_job(job.id)

    encoder.fail = False
    executor.retry(job.id)
    result = executor.run_job(job.id)

    assert result.success
    assert store.get(job.id).status == RenderJobStatus.COMPLETE


def test_delete_guards_in_flight_jobs(executor, store):
    job = _job(store)
    store.update(job.id, status=RenderJobStatus.ENCODING)

    with pytest.raises(JobConflictError):
        executor.delete(job.id)
    assert store.get(job.id).status == RenderJobStatus.ENCODING

    store.update(job.id, status=RenderJobStatus.FAILED)
    executor.delete(job.id)
    with pytest.raises(JobNotFoundError):
        store.get(job.id)


def test_output_filename_includes_post_index(store):
    job = _job(store, post_index=5)
    assert JobExecutor.output_filename(job) == "main-us-5.mp4"
