"""Data models for Viral Studio."""

from viralstudio.models.schemas import (
    BatchResult,
    BatchStatus,
    GeneratedImage,
    ImageForVideo,
    SceneDescriptor,
    TimelineItem,
    VideoJobStatus,
    ViralIdea,
    parse_time_range,
)

__all__ = [
    "BatchResult",
    "BatchStatus",
    "GeneratedImage",
    "ImageForVideo",
    "SceneDescriptor",
    "TimelineItem",
    "VideoJobStatus",
    "ViralIdea",
    "parse_time_range",
]
