"""Configuration management for Viral Studio."""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

# Load environment variables (override=True to ensure .env takes precedence)
load_dotenv(override=True)


DEFAULT_IDEA_PROMPT_TEMPLATE = (
    "Buatkan saya list {numberOfIdeas} judul dan tema untuk video berdurasi "
    "{videoDuration} detik dengan topik {viralTopic}. Buat dalam format JSON "
    "dengan struktur array of objects, di mana setiap object memiliki properti "
    "'nomor' (number), 'judul' (string), dan 'deskripsi' (string). Pastikan "
    "judulnya clickbait, menarik, dan relevan dengan topik."
)

DEFAULT_TOPIC = (
    "sejarah, fakta yang jarang di ketauhi, informasi tertutup yang bocor "
    "ke publik seputar"
)


@dataclass
class TextConfig:
    """Gemini text generation configuration (ideas, narration, timeline)."""

    model: str = field(
        default_factory=lambda: os.getenv("TEXT_MODEL", "gemini-2.5-flash")
    )
    temperature: float = 0.7
    top_p: float = 0.95


@dataclass
class ImageConfig:
    """Image generation configuration."""

    # Imagen models (text-to-image only):
    # - imagen-4.0-generate-001: Standard quality
    # - imagen-4.0-ultra-generate-001: Highest quality
    # - imagen-4.0-fast-generate-001: Fast generation
    model: str = field(
        default_factory=lambda: os.getenv("IMAGE_MODEL", "imagen-4.0-generate-001")
    )
    # Scene images are always portrait for shorts
    timeline_aspect_ratio: str = "9:16"
    batch_aspect_ratio: str = "1:1"
    output_mime_type: str = "image/png"


@dataclass
class VideoConfig:
    """Image-to-video generation configuration."""

    model: str = field(
        default_factory=lambda: os.getenv("VIDEO_MODEL", "veo-2.0-generate-001")
    )
    aspect_ratio: str = "9:16"
    poll_interval: float = field(
        default_factory=lambda: float(os.getenv("VIDEO_POLL_INTERVAL", "10"))
    )
    max_polls: int = field(
        default_factory=lambda: int(os.getenv("VIDEO_MAX_POLLS", "60"))
    )


@dataclass
class RateLimitConfig:
    """Sliding-window limits for scene image requests."""

    quota: int = 25  # Images per window
    window_seconds: float = 60.0


@dataclass
class IdeaConfig:
    """Defaults for viral idea generation."""

    number_of_ideas: int = 20
    more_ideas_count: int = 10
    video_duration: int = 90
    default_topic: str = DEFAULT_TOPIC
    prompt_template: str = DEFAULT_IDEA_PROMPT_TEMPLATE


@dataclass
class Config:
    """Main application configuration."""

    google_api_key: str = field(
        default_factory=lambda: os.getenv("GOOGLE_API_KEY") or os.getenv("API_KEY", "")
    )

    # Sub-configurations
    text: TextConfig = field(default_factory=TextConfig)
    image: ImageConfig = field(default_factory=ImageConfig)
    video: VideoConfig = field(default_factory=VideoConfig)
    rate_limit: RateLimitConfig = field(default_factory=RateLimitConfig)
    ideas: IdeaConfig = field(default_factory=IdeaConfig)

    # Paths
    project_root: Path = field(
        default_factory=lambda: Path(__file__).parent.parent
    )

    @property
    def output_dir(self) -> Path:
        return self.project_root / os.getenv("OUTPUT_DIR", "output")

    @property
    def images_dir(self) -> Path:
        return self.output_dir / "images"

    @property
    def videos_dir(self) -> Path:
        return self.output_dir / "videos"

    @property
    def exports_dir(self) -> Path:
        return self.output_dir / "exports"

    def validate(self) -> list[str]:
        """Validate configuration and return list of errors."""
        errors = []
        if not self.google_api_key:
            errors.append("GOOGLE_API_KEY is not set")
        if self.rate_limit.quota <= 0:
            errors.append("Rate limit quota must be positive")
        if self.rate_limit.window_seconds <= 0:
            errors.append("Rate limit window must be positive")
        return errors

    def ensure_directories(self) -> None:
        """Create output directories if they don't exist."""
        for path in [
            self.images_dir,
            self.videos_dir,
            self.exports_dir,
        ]:
            path.mkdir(parents=True, exist_ok=True)


def configure_logging(level: int = logging.INFO) -> None:
    """Configure logging to show our services, with third-party noise reduced."""
    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("google_genai").setLevel(logging.WARNING)


# Global config instance
config = Config()
