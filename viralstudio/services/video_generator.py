"""Image-to-video generation using Google Veo.

Veo runs as a long-running operation: a job is started with the scene image
and its motion prompt, then polled on a fixed interval until it is done.
"""

import logging
import re
import time
from pathlib import Path
from typing import Callable, Optional

from viralstudio.config import Config, config as default_config
from viralstudio.errors import (
    MISSING_VIDEO_INPUT_MESSAGE,
    ErrorKind,
    GenerationError,
    InputValidationError,
    classify_provider_error,
)
from viralstudio.models.schemas import ImageForVideo, VideoJobStatus
from viralstudio.services.image_generator import decode_data_uri

logger = logging.getLogger(__name__)

VIDEO_MODELS = {
    "veo-2.0-generate-001": "Veo 2",
    "veo-3.0-generate-001": "Veo 3",
    "veo-3.0-fast-generate-001": "Veo 3 Fast",
}

DEFAULT_DURATION = 4
MIN_DURATION = 1
MAX_DURATION = 20

RESULT_MISSING_MESSAGE = "Video berhasil dibuat, tetapi gagal mengambil data. Coba lagi."

_DURATION_PATTERN = re.compile(r"(\d+)\s*[sd]?\s*-\s*(\d+)\s*[sd]?")


def parse_timeline_duration(label: Optional[str]) -> int:
    """Clip length for a scene's "0s - 5s" label, clamped to 1-20 seconds."""
    if not label:
        return DEFAULT_DURATION
    match = _DURATION_PATTERN.search(label)
    if not match:
        return DEFAULT_DURATION
    duration = int(match.group(2)) - int(match.group(1))
    return max(MIN_DURATION, min(MAX_DURATION, duration))


class VideoJob:
    """Handle for one running Veo operation."""

    def __init__(self, operation, model: str, prompt: str):
        self.operation = operation
        self.model = model
        self.prompt = prompt
        self.polls = 0

    @property
    def done(self) -> bool:
        return bool(getattr(self.operation, "done", False))


class VideoGenerator:
    """Animate scene images with Veo."""

    def __init__(self, config: Optional[Config] = None):
        self.config = config or default_config
        self._client = None

    def _get_client(self):
        """Lazy load Gemini client."""
        if self._client is None:
            from google import genai

            self._client = genai.Client(api_key=self.config.google_api_key)
        return self._client

    def start_video_job(
        self,
        prompt: str,
        image_bytes: bytes,
        mime_type: str,
        model_id: Optional[str] = None,
    ) -> VideoJob:
        """
        Start generating a video from an image and a motion prompt.

        Returns:
            VideoJob to pass to poll_video_job

        Raises:
            InputValidationError: Missing image or prompt
            GenerationError: The provider refused to start the job
        """
        from google.genai import types

        if not image_bytes or not prompt or not prompt.strip():
            raise InputValidationError(MISSING_VIDEO_INPUT_MESSAGE)

        client = self._get_client()
        model_id = model_id or self.config.video.model
        logger.info(f"Starting video job (model={model_id}): {prompt[:100]}")

        try:
            operation = client.models.generate_videos(
                model=model_id,
                prompt=prompt,
                image=types.Image(image_bytes=image_bytes, mime_type=mime_type),
                config=types.GenerateVideosConfig(
                    number_of_videos=1,
                    aspect_ratio=self.config.video.aspect_ratio,
                ),
            )
        except Exception as e:
            logger.error(f"Error starting video generation: {e}", exc_info=True)
            raise GenerationError(
                "Failed to start video generation process.",
                kind=classify_provider_error(e),
                provider_message=str(e),
            ) from e

        return VideoJob(operation, model_id, prompt)

    def poll_video_job(self, job: VideoJob) -> VideoJobStatus:
        """Refresh the job once and report whether it is done."""
        client = self._get_client()
        try:
            job.operation = client.operations.get(job.operation)
        except Exception as e:
            logger.error(f"Error checking video operation status: {e}")
            raise GenerationError(
                "Failed to check video generation status.",
                kind=classify_provider_error(e),
                provider_message=str(e),
            ) from e
        job.polls += 1

        if not job.done:
            return VideoJobStatus(done=False)

        operation_error = getattr(job.operation, "error", None)
        if operation_error:
            return VideoJobStatus(done=True, error=str(operation_error))

        response = getattr(job.operation, "response", None)
        videos = getattr(response, "generated_videos", None) if response else None
        uri = videos[0].video.uri if videos and videos[0].video else None
        if not uri:
            return VideoJobStatus(done=True, error=RESULT_MISSING_MESSAGE)
        return VideoJobStatus(done=True, result_uri=uri)

    def wait_for_video(
        self,
        job: VideoJob,
        sleep: Callable[[float], None] = time.sleep,
        progress_callback: Optional[Callable[[str, float], None]] = None,
    ) -> VideoJobStatus:
        """
        Poll on the configured fixed interval until the job is done.

        Raises:
            GenerationError: With kind TIMEOUT after max_polls polls, or the
                job's own error once it is done
        """
        interval = self.config.video.poll_interval
        max_polls = self.config.video.max_polls

        status = VideoJobStatus(done=job.done)
        while not status.done:
            if job.polls >= max_polls:
                raise GenerationError(
                    f"Video generation timed out after {max_polls * interval:g}s",
                    kind=ErrorKind.TIMEOUT,
                )
            sleep(interval)
            status = self.poll_video_job(job)
            if progress_callback:
                progress_callback(
                    f"Generating video... ({job.polls * interval:g}s elapsed)",
                    min(job.polls / max_polls, 0.95),
                )

        if status.error:
            raise GenerationError(status.error, kind=ErrorKind.NO_RESULT)
        logger.info(f"Video ready after {job.polls} polls: {status.result_uri}")
        return status

    def download_video(self, job: VideoJob, output_path: Path) -> Path:
        """Download the finished video of a job to output_path."""
        client = self._get_client()
        video = job.operation.response.generated_videos[0]
        client.files.download(file=video.video)

        output_path.parent.mkdir(parents=True, exist_ok=True)
        video.video.save(str(output_path))
        logger.info(f"Video saved to: {output_path}")
        return output_path

    def generate_from_scene(
        self,
        scene: ImageForVideo,
        output_path: Optional[Path] = None,
        model_id: Optional[str] = None,
        prompt: Optional[str] = None,
        sleep: Callable[[float], None] = time.sleep,
        progress_callback: Optional[Callable[[str, float], None]] = None,
    ) -> Path:
        """
        Animate one finished timeline scene end to end.

        Args:
            scene: Scene handed over from the narration stage
            output_path: Where to save the clip (default: videos_dir)
            model_id: Veo model override
            prompt: Motion prompt override (default: the scene's video prompt)

        Returns:
            Path to the saved video
        """
        try:
            image_bytes, mime_type = decode_data_uri(scene.image_url)
        except ValueError as e:
            raise InputValidationError(MISSING_VIDEO_INPUT_MESSAGE) from e

        duration = parse_timeline_duration(scene.time_range)
        logger.info(f"Animating scene '{scene.scene_label[:60]}' ({scene.time_range}, ~{duration}s)")

        job = self.start_video_job(prompt or scene.video_prompt, image_bytes, mime_type, model_id)
        self.wait_for_video(job, sleep=sleep, progress_callback=progress_callback)

        if output_path is None:
            stem = re.sub(r"[^\w]+", "_", scene.time_range).strip("_") or "scene"
            output_path = self.config.videos_dir / f"{stem}.mp4"
        return self.download_video(job, output_path)
