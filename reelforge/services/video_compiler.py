"""
Slide-to-video compilation.
Writes rendered slide frames into a scratch directory, concatenates them with
ffmpeg into a 1080x1920 H.264 MP4 and uploads the result to object storage.
"""
import ffmpeg
import shutil
import subprocess
import tempfile
import time
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Iterator, List, Optional
import requests
from reelforge.config import Settings
from reelforge.errors import CompileTimeoutError, DownloadError, EncodeError, ValidationError
from reelforge.services.storage import ObjectStorage
import logging

logger = logging.getLogger(__name__)

PhaseCallback = Callable[[str], None]


@dataclass
class SlideFrame:
    slide_number: int
    image: bytes


@dataclass
class SlideUrl:
    slide_number: int
    url: str


@dataclass
class CompileRequest:
    frames: List[SlideFrame]
    output_filename: str
    idea_id: str
    persona: str
    country: str
    slide_duration: Optional[float] = None


@dataclass
class UrlCompileRequest:
    slide_urls: List[SlideUrl]
    output_filename: str
    idea_id: str
    persona: str
    country: str
    slide_duration: Optional[float] = None


@dataclass
class CompileResult:
    success: bool
    video_bytes: Optional[bytes] = None
    storage_path: Optional[str] = None
    public_url: Optional[str] = None
    error: Optional[str] = None


@dataclass
class ConcatEntry:
    path: str
    duration: Optional[float] = None


def video_storage_path(idea_id: str, persona: str, country: str, output_filename: str) -> str:
    return f"videos/{idea_id}/{persona}-{country}/{output_filename}"


def build_concat_entries(frame_paths: List[str], duration: float) -> List[ConcatEntry]:
    """
    One timed entry per frame plus an untimed repeat of the last frame.

    The concat demuxer applies `duration` to the gap before the next entry,
    so without the trailing repeat the final slide would get no screen time.
    """
    if not frame_paths:
        return []
    entries = [ConcatEntry(path=p, duration=duration) for p in frame_paths]
    entries.append(ConcatEntry(path=frame_paths[-1]))
    return entries


def _format_duration(duration: float) -> str:
    return str(int(duration)) if float(duration).is_integer() else str(duration)


def render_concat_file(entries: List[ConcatEntry]) -> str:
    lines = []
    for entry in entries:
        # concat demuxer quoting: close the quote, escape it, reopen
        escaped = entry.path.replace("\\", "/").replace("'", "'\\''")
        lines.append(f"file '{escaped}'")
        if entry.duration is not None:
            lines.append(f"duration {_format_duration(entry.duration)}")
    return "\n".join(lines) + "\n"


class FfmpegEncoder:
    """Runs ffmpeg over a concat descriptor with fixed portrait output settings"""

    def __init__(
        self,
        ffmpeg_binary: str = "ffmpeg",
        width: int = 1080,
        height: int = 1920,
        fps: int = 30,
        crf: int = 23,
        preset: str = "fast",
    ):
        self.ffmpeg_binary = ffmpeg_binary
        self.width = width
        self.height = height
        self.fps = fps
        self.crf = crf
        self.preset = preset

    @classmethod
    def from_settings(cls, settings: Settings) -> "FfmpegEncoder":
        return cls(
            ffmpeg_binary=settings.FFMPEG_BINARY,
            width=settings.VIDEO_WIDTH,
            height=settings.VIDEO_HEIGHT,
            fps=settings.VIDEO_FPS,
            crf=settings.VIDEO_CRF,
            preset=settings.VIDEO_PRESET,
        )

    def build(self, concat_path: str, output_path: str):
        w, h = self.width, self.height
        return ffmpeg.input(concat_path, format="concat", safe=0).output(
            output_path,
            # Fit inside the canvas, then letterbox to the exact size
            vf=f"scale={w}:{h}:force_original_aspect_ratio=decrease,pad={w}:{h}:(ow-iw)/2:(oh-ih)/2",
            vcodec="libx264",
            preset=self.preset,
            crf=self.crf,
            pix_fmt="yuv420p",
            r=self.fps,
            movflags="+faststart",  # Enable streaming
        )

    def command(self, concat_path: str, output_path: str) -> List[str]:
        return self.build(concat_path, output_path).compile(cmd=self.ffmpeg_binary, overwrite_output=True)

    def encode(self, concat_path: str, output_path: str, timeout: Optional[float] = None) -> None:
        logger.info(f"Encoding {concat_path} -> {output_path}")
        try:
            process = self.build(concat_path, output_path).run_async(
                cmd=self.ffmpeg_binary,
                pipe_stdout=True,
                pipe_stderr=True,
                overwrite_output=True,
            )
        except OSError as e:
            raise EncodeError(f"Failed to start ffmpeg: {e}") from e

        try:
            _, stderr = process.communicate(timeout=timeout)
        except subprocess.TimeoutExpired:
            process.kill()
            _, stderr = process.communicate()
            raise CompileTimeoutError(
                f"Video encoding timed out after {timeout:.1f}s",
                stderr=stderr.decode(errors="replace") if stderr else "",
            )

        if process.returncode != 0:
            error_msg = stderr.decode(errors="replace") if stderr else ""
            logger.error(f"ffmpeg exited with {process.returncode}: {error_msg[-2000:]}")
            raise EncodeError(f"ffmpeg exited with code {process.returncode}", stderr=error_msg)


class VideoCompiler:
    """Service that turns ordered slide frames into an uploaded video"""

    def __init__(
        self,
        storage: ObjectStorage,
        encoder: FfmpegEncoder,
        temp_dir: Optional[Path] = None,
        slide_duration: float = 4,
        http: Optional[requests.Session] = None,
        download_timeout: float = 60,
    ):
        self.storage = storage
        self.encoder = encoder
        self.temp_dir = Path(temp_dir) if temp_dir else Path(tempfile.gettempdir())
        self.slide_duration = slide_duration
        self.http = http or requests.Session()
        self.download_timeout = download_timeout

    @classmethod
    def from_settings(cls, settings: Settings, storage: ObjectStorage) -> "VideoCompiler":
        return cls(
            storage=storage,
            encoder=FfmpegEncoder.from_settings(settings),
            temp_dir=settings.TEMP_DIR,
            slide_duration=settings.SLIDE_DURATION_SECONDS,
            download_timeout=settings.DOWNLOAD_TIMEOUT_SECONDS,
        )

    @contextmanager
    def scratch_workspace(self) -> Iterator[Path]:
        """A fresh directory that is removed on every exit path"""
        self.temp_dir.mkdir(parents=True, exist_ok=True)
        workspace = Path(tempfile.mkdtemp(prefix="video-", dir=self.temp_dir))
        try:
            yield workspace
        finally:
            try:
                shutil.rmtree(workspace)
            except OSError as e:
                logger.warning(f"Failed to clean up {workspace}: {e}")

    def write_frames(self, workspace: Path, frames: List[SlideFrame]) -> List[str]:
        """Write frames in slide order; returns their paths"""
        paths = []
        for position, frame in enumerate(sorted(frames, key=lambda f: f.slide_number)):
            path = workspace / f"frame-{position:04d}-slide-{frame.slide_number:03d}.png"
            with open(path, "wb") as f:
                f.write(frame.image)
            paths.append(str(path))
        return paths

    def compile_video(
        self,
        request: CompileRequest,
        on_phase: Optional[PhaseCallback] = None,
        timeout: Optional[float] = None,
    ) -> CompileResult:
        """
        Encode and upload one video.

        on_phase is called with "encoding" before ffmpeg starts and with
        "uploading" before the upload. Never raises: every failure comes back
        as CompileResult(success=False).
        """
        deadline = time.monotonic() + timeout if timeout else None
        duration = request.slide_duration or self.slide_duration

        try:
            if not request.frames:
                raise ValidationError("No frames to compile")

            with self.scratch_workspace() as workspace:
                frame_paths = self.write_frames(workspace, request.frames)

                concat_path = workspace / "concat.txt"
                with open(concat_path, "w") as f:
                    f.write(render_concat_file(build_concat_entries(frame_paths, duration)))

                output_path = workspace / request.output_filename
                if on_phase:
                    on_phase("encoding")
                self.encoder.encode(str(concat_path), str(output_path), timeout=_remaining(deadline))

                with open(output_path, "rb") as f:
                    video_bytes = f.read()
                logger.info(f"Compiled {len(frame_paths)} slides into {len(video_bytes)} bytes")

                if deadline is not None and time.monotonic() >= deadline:
                    raise CompileTimeoutError(f"Video compilation timed out after {timeout:.1f}s")

                if on_phase:
                    on_phase("uploading")
                path = video_storage_path(request.idea_id, request.persona, request.country, request.output_filename)
                stored_path = self.storage.upload(path, video_bytes, content_type="video/mp4")
                public_url = self.storage.get_public_url(stored_path)

                if deadline is not None and time.monotonic() >= deadline:
                    raise CompileTimeoutError(f"Video upload timed out after {timeout:.1f}s")

            logger.info(f"Video uploaded: {public_url}")
            return CompileResult(
                success=True,
                video_bytes=video_bytes,
                storage_path=stored_path,
                public_url=public_url,
            )

        except Exception as e:
            logger.error(f"Video compilation failed: {e}")
            return CompileResult(success=False, error=str(e) or "Video compilation failed")

    def download_frames(self, slide_urls: List[SlideUrl]) -> List[SlideFrame]:
        """Fetch slides one at a time, stopping at the first failure"""
        frames = []
        for slide in slide_urls:
            try:
                response = self.http.get(slide.url, timeout=self.download_timeout)
            except requests.RequestException as e:
                raise DownloadError(slide.slide_number, str(e)) from e
            if not response.ok:
                raise DownloadError(slide.slide_number, response.reason or f"HTTP {response.status_code}")
            frames.append(SlideFrame(slide_number=slide.slide_number, image=response.content))
        return frames

    def compile_video_from_urls(
        self,
        request: UrlCompileRequest,
        on_phase: Optional[PhaseCallback] = None,
        timeout: Optional[float] = None,
    ) -> CompileResult:
        try:
            frames = self.download_frames(request.slide_urls)
        except DownloadError as e:
            logger.error(str(e))
            return CompileResult(success=False, error=str(e))

        return self.compile_video(
            CompileRequest(
                frames=frames,
                output_filename=request.output_filename,
                idea_id=request.idea_id,
                persona=request.persona,
                country=request.country,
                slide_duration=request.slide_duration,
            ),
            on_phase=on_phase,
            timeout=timeout,
        )


def _remaining(deadline: Optional[float]) -> Optional[float]:
    if deadline is None:
        return None
    remaining = deadline - time.monotonic()
    if remaining <= 0:
        raise CompileTimeoutError("Video compilation timed out")
    return remaining
