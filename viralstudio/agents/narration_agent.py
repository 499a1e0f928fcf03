"""Narration Agent for short storytelling scripts."""

import logging
from typing import Optional

from viralstudio.config import Config, config as default_config
from viralstudio.errors import (
    NARRATION_FAILED_MESSAGE,
    ErrorKind,
    GenerationError,
    classify_provider_error,
)
from viralstudio.models.schemas import ViralIdea

logger = logging.getLogger(__name__)


STORY_PROMPT = (
    'Buatkan saya cerita pendek dari tema: "{title} - {description}". Cerita harus '
    "maksimal {min_words}–{max_words} kata, intens, bikin nagih, dan penuh emosi seperti "
    "karya manusia yang cocok untuk video pendek, konten storytelling, atau narasi "
    "dramatis berdurasi maksimal {duration} detik dengan struktur format: "
    "HOOK (Kalimat pertama – maksimal 2 kalimat) Buat pembuka yang nge-hook, bisa "
    "berupa pertanyaan mencurigakan, pernyataan aneh, atau situasi ekstrem. "
    "KONFLIK (isi tengah) Bangun ketegangan secara bertahap. Fokus pada emosi, "
    "tindakan dan dilema. Buat pembaca merasa seperti didalam cerita. Gunakan kalimat "
    "pendek dan ritme yang cepat jika ingin membangun intensitas. "
    "TWIST Ubah arah cerita dengan cara tak terduga. Hindari ending klise. Lebih baik "
    "jika pembaca harus membacanya dua kali untuk benar-benar paham. "
    "CTA (Call to Action & Pertanyaan Interaktif - 1 kalimat di akhir) Ajak penonton "
    "untuk berinteraksi. Buat pertanyaan singkat yang memancing diskusi atau komentar "
    "terkait cerita. "
    "SUARA PENULIS/NUANSA (optional) Tambahkan gaya bahasa unik, nyeleneh atau puitis "
    "untuk memberi rasa manusia. "
    "Aturan tambahan: Gunakan bahasa Indonesia yang hidup dan santai. Hindari terlalu "
    "baku. Cerita harus punya ketegangan emosional tinggi (tekanan batin, rahasia besar, "
    "pertaruhan hidup mati, dll). Gunakan format 3 paragraf atau maksimal 6 baris."
)

# Spoken words per second of video
WORDS_PER_SECOND_MIN = 3.5
WORDS_PER_SECOND_MAX = 4.2


def word_budget(video_duration: int) -> tuple[int, int]:
    """Narration length range that fits the video duration."""
    return (
        round(video_duration * WORDS_PER_SECOND_MIN),
        round(video_duration * WORDS_PER_SECOND_MAX),
    )


def build_story_prompt(idea: ViralIdea, video_duration: int) -> str:
    min_words, max_words = word_budget(video_duration)
    return STORY_PROMPT.format(
        title=idea.title,
        description=idea.description,
        min_words=min_words,
        max_words=max_words,
        duration=video_duration,
    )


class NarrationAgent:
    """Write the narration text for an idea."""

    def __init__(self, config: Optional[Config] = None):
        self.config = config or default_config
        self._client = None

    def _get_client(self):
        """Lazy load Gemini client."""
        if self._client is None:
            from google import genai

            self._client = genai.Client(api_key=self.config.google_api_key)
        return self._client

    def generate_narration(self, prompt: str) -> str:
        """
        Generate narration text from a story prompt.

        Raises:
            GenerationError: On provider failure or an empty reply
        """
        from google.genai import types

        client = self._get_client()
        logger.info(f"Generating narration (model={self.config.text.model})")

        try:
            response = client.models.generate_content(
                model=self.config.text.model,
                contents=prompt,
                config=types.GenerateContentConfig(
                    temperature=self.config.text.temperature,
                    top_p=self.config.text.top_p,
                ),
            )
        except Exception as e:
            logger.error(f"Error generating narration: {e}")
            raise GenerationError(
                NARRATION_FAILED_MESSAGE, kind=classify_provider_error(e), provider_message=str(e)
            ) from e

        text = (response.text or "").strip()
        if not text:
            raise GenerationError(NARRATION_FAILED_MESSAGE, kind=ErrorKind.NO_RESULT)

        logger.info(f"Narration: {len(text.split())} words")
        return text
