"""Image generation service using Google Imagen.

Images are returned as data URIs so they can be stored on the timeline and
shown or exported without touching the filesystem.
"""

import asyncio
import base64
import logging
import re
from typing import Optional

from viralstudio.config import Config, config as default_config
from viralstudio.errors import (
    EMPTY_BATCH_MESSAGE,
    ErrorKind,
    GenerationError,
    InputValidationError,
    to_generation_error,
)
from viralstudio.models.schemas import GeneratedImage

logger = logging.getLogger(__name__)

DATA_URI_PATTERN = re.compile(r"^data:(?P<mime>[\w/+.-]+);base64,(?P<data>.*)$", re.DOTALL)

ASPECT_RATIOS = ("1:1", "9:16", "16:9", "4:3", "3:4")


def to_data_uri(image_bytes: bytes, mime_type: str = "image/png") -> str:
    return f"data:{mime_type};base64,{base64.b64encode(image_bytes).decode('ascii')}"


def decode_data_uri(uri: str) -> tuple[bytes, str]:
    """Split a base64 data URI into (bytes, mime type)."""
    match = DATA_URI_PATTERN.match(uri or "")
    if not match:
        raise ValueError("Not a base64 data URI")
    return base64.b64decode(match.group("data")), match.group("mime")


def split_prompts(text: str) -> list[str]:
    """One prompt per non-blank line."""
    return [line.strip() for line in text.splitlines() if line.strip()]


class ImageGenerator:
    """Generate images using the Google Imagen API."""

    def __init__(self, config: Optional[Config] = None):
        self.config = config or default_config
        self._client = None

    def _get_client(self):
        """Lazy load Gemini client."""
        if self._client is None:
            from google import genai

            self._client = genai.Client(api_key=self.config.google_api_key)
        return self._client

    async def generate_image(self, prompt: str, aspect_ratio: str = "1:1") -> str:
        """
        Generate a single image.

        Args:
            prompt: Image description
            aspect_ratio: One of ASPECT_RATIOS

        Returns:
            The image as a data URI

        Raises:
            GenerationError: Classified so quota exhaustion can be told
                apart from ordinary failures
        """
        from google.genai import types

        if aspect_ratio not in ASPECT_RATIOS:
            raise ValueError(f"Unsupported aspect ratio {aspect_ratio}")

        client = self._get_client()
        model_name = self.config.image.model
        mime_type = self.config.image.output_mime_type

        logger.info(f"IMAGEN PROMPT (model={model_name}, ratio={aspect_ratio}): {prompt[:200]}")

        try:
            response = await client.aio.models.generate_images(
                model=model_name,
                prompt=prompt,
                config=types.GenerateImagesConfig(
                    number_of_images=1,
                    output_mime_type=mime_type,
                    aspect_ratio=aspect_ratio,
                ),
            )
        except Exception as e:
            logger.error(f"Error generating image for prompt \"{prompt[:80]}\": {e}")
            raise to_generation_error(e, f"Failed to generate image for prompt: \"{prompt}\"") from e

        if not response.generated_images:
            raise GenerationError("No image was generated.", kind=ErrorKind.NO_RESULT)

        image_bytes = response.generated_images[0].image.image_bytes
        if not image_bytes:
            raise GenerationError("No image was generated.", kind=ErrorKind.NO_RESULT)
        if isinstance(image_bytes, str):
            # Already base64 encoded
            return f"data:{mime_type};base64,{image_bytes}"
        return to_data_uri(image_bytes, mime_type)

    async def _generate_one(self, prompt: str, aspect_ratio: str) -> GeneratedImage:
        try:
            image_url = await self.generate_image(prompt, aspect_ratio)
        except GenerationError as e:
            logger.error(f"Batch image failed for \"{prompt[:80]}\": {e}")
            return GeneratedImage(prompt=prompt, error=f"Gagal membuat gambar untuk: \"{prompt}\"")
        return GeneratedImage(prompt=prompt, image_url=image_url)

    async def generate_batch(
        self,
        prompts: list[str],
        aspect_ratio: Optional[str] = None,
    ) -> list[GeneratedImage]:
        """
        Generate one image per prompt concurrently.

        Failures are reported per prompt; results keep the prompt order.
        """
        if not prompts:
            raise InputValidationError(EMPTY_BATCH_MESSAGE)
        ratio = aspect_ratio or self.config.image.batch_aspect_ratio
        results = await asyncio.gather(*(self._generate_one(p, ratio) for p in prompts))
        failed = sum(1 for r in results if r.error)
        logger.info(f"Image batch: {len(results) - failed}/{len(results)} generated")
        return list(results)
