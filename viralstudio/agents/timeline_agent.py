"""Timeline Agent: split narration into 5-8 second scenes with prompts."""

import logging
from typing import Optional, Sequence

from pydantic import ValidationError

from viralstudio.agents.parsing import load_json_array
from viralstudio.config import Config, config as default_config
from viralstudio.errors import (
    TIMELINE_FAILED_MESSAGE,
    ErrorKind,
    GenerationError,
    classify_provider_error,
)
from viralstudio.models.schemas import SceneDescriptor

logger = logging.getLogger(__name__)

MIN_SCENE_SECONDS = 5
MAX_SCENE_SECONDS = 8

STYLE_SUFFIX = ", in a consistent cinematic, hyper-realistic art style, dramatic lighting"

TIMELINE_PROMPT = """Analisis narasi berikut untuk video berdurasi total {duration} detik dan pecah menjadi tabel timeline adegan yang detail.

Narasi:
"{narration}"

ATURAN PENTING: Setiap adegan HARUS memiliki durasi antara {min_seconds} hingga {max_seconds} detik. Distribusikan total waktu {duration} detik ke dalam adegan-adegan yang memenuhi aturan durasi ini.

Berikan output dalam format JSON berupa array objek. Setiap objek harus memiliki properti:
1. "timeline": (string) Estimasi rentang waktu untuk adegan ini. Format: "0s - 5s". Pastikan durasi (waktu akhir - waktu mulai) antara {min_seconds} dan {max_seconds} detik.
2. "adegan": (string) Deskripsi visual singkat untuk adegan tersebut.
3. "narasiAdegan": (string) Kutipan narasi yang relevan untuk adegan ini.
4. "promptGambar": (string) Prompt deskriptif untuk generator gambar AI. PENTING: Untuk menjaga konsistensi visual, tambahkan frasa "{style_suffix}" di akhir setiap prompt gambar.
5. "promptVideo": (string) Prompt singkat untuk generator video AI yang menganimasikan gambar tersebut."""


def build_timeline_prompt(narration: str, duration: int) -> str:
    return TIMELINE_PROMPT.format(
        duration=duration,
        narration=narration,
        min_seconds=MIN_SCENE_SECONDS,
        max_seconds=MAX_SCENE_SECONDS,
        style_suffix=STYLE_SUFFIX,
    )


def validate_timeline(scenes: Sequence[SceneDescriptor], target_duration: int) -> None:
    """
    Check the scene durations the model produced.

    Every scene must last 5 to 8 seconds and together they must add up to
    the target duration.

    Raises:
        GenerationError: With kind MALFORMED_RESPONSE when a rule is broken
    """
    if not scenes:
        raise GenerationError("Timeline has no scenes", kind=ErrorKind.NO_RESULT)

    total = 0
    for i, scene in enumerate(scenes):
        duration = scene.duration
        if duration is None:
            raise GenerationError(
                f"Scene {i + 1} has an unreadable time range '{scene.time_range}'",
                kind=ErrorKind.MALFORMED_RESPONSE,
            )
        if not MIN_SCENE_SECONDS <= duration <= MAX_SCENE_SECONDS:
            raise GenerationError(
                f"Scene {i + 1} lasts {duration}s, outside {MIN_SCENE_SECONDS}-{MAX_SCENE_SECONDS}s",
                kind=ErrorKind.MALFORMED_RESPONSE,
            )
        total += duration

    if total != target_duration:
        raise GenerationError(
            f"Scenes add up to {total}s instead of {target_duration}s",
            kind=ErrorKind.MALFORMED_RESPONSE,
        )


class TimelineAgent:
    """Break narration into a scene timeline."""

    def __init__(self, config: Optional[Config] = None):
        self.config = config or default_config
        self._client = None

    def _get_client(self):
        """Lazy load Gemini client."""
        if self._client is None:
            from google import genai

            self._client = genai.Client(api_key=self.config.google_api_key)
        return self._client

    def _response_schema(self):
        from google.genai import types

        def text(description: str):
            return types.Schema(type=types.Type.STRING, description=description)

        return types.Schema(
            type=types.Type.ARRAY,
            items=types.Schema(
                type=types.Type.OBJECT,
                properties={
                    "timeline": text("Estimasi waktu adegan dalam format 'Xs - Ys'."),
                    "adegan": text("Deskripsi visual untuk adegan tersebut."),
                    "narasiAdegan": text("Bagian narasi yang sesuai untuk adegan ini."),
                    "promptGambar": text("Prompt untuk menghasilkan gambar adegan dengan gaya yang konsisten."),
                    "promptVideo": text("Prompt untuk menganimasikan gambar adegan."),
                },
                required=["timeline", "adegan", "narasiAdegan", "promptGambar", "promptVideo"],
            ),
        )

    def generate_timeline(self, narration: str, target_duration: int) -> list[SceneDescriptor]:
        """
        Generate the scene timeline for a narration.

        Args:
            narration: Full narration text
            target_duration: Total video duration in seconds

        Returns:
            Scenes in playback order

        Raises:
            GenerationError: On provider failure, malformed JSON or scene
                durations that break the 5-8 second rule
        """
        from google.genai import types

        client = self._get_client()
        prompt = build_timeline_prompt(narration, target_duration)

        logger.info("=" * 60)
        logger.info(f"TIMELINE PROMPT (model={self.config.text.model}, {target_duration}s):")
        logger.info("-" * 60)
        logger.info(narration[:300])
        logger.info("=" * 60)

        try:
            response = client.models.generate_content(
                model=self.config.text.model,
                contents=prompt,
                config=types.GenerateContentConfig(
                    response_mime_type="application/json",
                    response_schema=self._response_schema(),
                ),
            )
        except Exception as e:
            logger.error(f"Error generating scene timeline: {e}")
            raise GenerationError(
                TIMELINE_FAILED_MESSAGE, kind=classify_provider_error(e), provider_message=str(e)
            ) from e

        try:
            scenes = [
                SceneDescriptor.model_validate(item)
                for item in load_json_array(response.text, "timeline")
            ]
            validate_timeline(scenes, target_duration)
        except GenerationError as e:
            logger.error(f"Rejected scene timeline: {e}")
            raise GenerationError(TIMELINE_FAILED_MESSAGE, kind=e.kind, provider_message=str(e)) from e
        except ValidationError as e:
            logger.error(f"Scene missing required fields: {e}")
            raise GenerationError(
                TIMELINE_FAILED_MESSAGE, kind=ErrorKind.MALFORMED_RESPONSE, provider_message=str(e)
            ) from e

        logger.info(f"Timeline: {len(scenes)} scenes")
        return scenes
