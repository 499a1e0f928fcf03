"""Services for Viral Studio."""

from viralstudio.services.image_generator import ImageGenerator
from viralstudio.services.video_generator import VideoGenerator

__all__ = [
    "ImageGenerator",
    "VideoGenerator",
]
