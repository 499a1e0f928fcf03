"""Idea Agent: viral video ideas for a topic via Gemini structured output."""

import logging
from typing import Optional, Sequence

from pydantic import ValidationError

from viralstudio.agents.parsing import load_json_array
from viralstudio.config import Config, config as default_config
from viralstudio.errors import (
    IDEAS_FAILED_MESSAGE,
    ErrorKind,
    GenerationError,
    classify_provider_error,
)
from viralstudio.models.schemas import ViralIdea

logger = logging.getLogger(__name__)


MORE_IDEAS_PROMPT = (
    "Buatkan saya list {count} judul dan tema BARU untuk video berdurasi "
    "{duration} detik dengan topik {topic}.{exclusion}\n\n"
    "Buat dalam format JSON dengan struktur array of objects, di mana setiap "
    "object memiliki properti 'nomor' (number), 'judul' (string), dan "
    "'deskripsi' (string). Pastikan judulnya clickbait, menarik, dan relevan "
    "dengan topik."
)

EXCLUSION_PROMPT = (
    "\n\nPENTING: Jangan membuat ulang ide dengan judul yang mirip dengan yang "
    "ada di daftar ini:\n- {titles}"
)


def build_idea_prompt(template: str, number_of_ideas: int, video_duration: int, topic: str) -> str:
    """Fill the user-editable idea prompt template."""
    return (
        template.replace("{numberOfIdeas}", str(number_of_ideas))
        .replace("{videoDuration}", str(video_duration))
        .replace("{viralTopic}", topic)
    )


def build_more_ideas_prompt(
    topic: str,
    video_duration: int,
    existing_titles: Sequence[str],
    count: int = 10,
) -> str:
    """Prompt for additional ideas that avoid repeating the existing titles."""
    exclusion = ""
    if existing_titles:
        exclusion = EXCLUSION_PROMPT.format(titles="\n- ".join(existing_titles))
    return MORE_IDEAS_PROMPT.format(
        count=count, duration=video_duration, topic=topic, exclusion=exclusion
    )


class IdeaAgent:
    """Generate numbered viral video ideas."""

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

        return types.Schema(
            type=types.Type.ARRAY,
            items=types.Schema(
                type=types.Type.OBJECT,
                properties={
                    "nomor": types.Schema(type=types.Type.NUMBER, description="Nomor urut ide"),
                    "judul": types.Schema(type=types.Type.STRING, description="Judul video yang menarik"),
                    "deskripsi": types.Schema(
                        type=types.Type.STRING,
                        description="Deskripsi singkat tentang ide konten",
                    ),
                },
                required=["nomor", "judul", "deskripsi"],
            ),
        )

    def generate_ideas(self, prompt_text: str) -> list[ViralIdea]:
        """
        Ask Gemini for a JSON list of ideas.

        Args:
            prompt_text: Fully rendered idea prompt

        Returns:
            Ideas in the order the model produced them

        Raises:
            GenerationError: On provider failure or a malformed reply
        """
        from google.genai import types

        client = self._get_client()
        logger.info(f"Requesting ideas (model={self.config.text.model}): {prompt_text[:120]}...")

        try:
            response = client.models.generate_content(
                model=self.config.text.model,
                contents=prompt_text,
                config=types.GenerateContentConfig(
                    response_mime_type="application/json",
                    response_schema=self._response_schema(),
                ),
            )
        except Exception as e:
            logger.error(f"Error generating viral ideas: {e}")
            raise GenerationError(
                IDEAS_FAILED_MESSAGE, kind=classify_provider_error(e), provider_message=str(e)
            ) from e

        try:
            raw_ideas = load_json_array(response.text, "ideas")
            ideas = [ViralIdea.model_validate(item) for item in raw_ideas]
        except GenerationError as e:
            logger.error(f"Error parsing viral ideas: {e}")
            raise GenerationError(IDEAS_FAILED_MESSAGE, kind=e.kind, provider_message=str(e)) from e
        except ValidationError as e:
            logger.error(f"Idea missing required fields: {e}")
            raise GenerationError(
                IDEAS_FAILED_MESSAGE, kind=ErrorKind.MALFORMED_RESPONSE, provider_message=str(e)
            ) from e

        logger.info(f"Generated {len(ideas)} ideas")
        return ideas
