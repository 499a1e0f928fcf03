"""Data models for Viral Studio."""

import re
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


TIME_RANGE_PATTERN = re.compile(r"(\d+)\s*s\s*-\s*(\d+)\s*s")


def parse_time_range(label: Optional[str]) -> Optional[tuple[int, int]]:
    """Parse a "0s - 5s" style label into (start, end) seconds."""
    if not label:
        return None
    match = TIME_RANGE_PATTERN.search(label)
    if not match:
        return None
    return int(match.group(1)), int(match.group(2))


class ViralIdea(BaseModel):
    """A candidate video concept, optionally expanded into narration and a timeline."""

    model_config = ConfigDict(populate_by_name=True)

    id: int = Field(alias="nomor")
    title: str = Field(alias="judul")
    description: str = Field(alias="deskripsi")
    narration: Optional[str] = None
    timeline: list["TimelineItem"] = Field(default_factory=list)
    # Bumped every time the timeline is replaced wholesale
    timeline_version: int = 0


class SceneDescriptor(BaseModel):
    """One time-boxed scene as produced by the timeline generator."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    time_range: str = Field(alias="timeline")
    scene_label: str = Field(alias="adegan")
    narration_excerpt: str = Field(alias="narasiAdegan")
    image_prompt: str = Field(alias="promptGambar")
    video_prompt: str = Field(alias="promptVideo")

    @property
    def bounds(self) -> Optional[tuple[int, int]]:
        return parse_time_range(self.time_range)

    @property
    def duration(self) -> Optional[int]:
        bounds = self.bounds
        if bounds is None:
            return None
        return bounds[1] - bounds[0]


class TimelineItem(SceneDescriptor):
    """A scene plus its image generation state."""

    image_url: Optional[str] = None
    is_generating: bool = False
    generation_error: Optional[str] = None

    @model_validator(mode="after")
    def _check_generation_state(self) -> "TimelineItem":
        if self.is_generating and self.image_url:
            raise ValueError("A scene cannot be generating while holding an image")
        return self

    @classmethod
    def from_scene(cls, scene: SceneDescriptor) -> "TimelineItem":
        return cls(**scene.model_dump())

    @property
    def has_failed(self) -> bool:
        return bool(self.generation_error) and not self.image_url

    @property
    def is_pending(self) -> bool:
        return not self.image_url and not self.is_generating

    def to_scene(self) -> SceneDescriptor:
        return SceneDescriptor(**self.model_dump(include=set(SceneDescriptor.model_fields)))


ViralIdea.model_rebuild()


class ImageForVideo(BaseModel):
    """A finished scene handed to the image-to-video stage."""

    model_config = ConfigDict(populate_by_name=True)

    image_url: str = Field(alias="imageUrl")
    video_prompt: str = Field(alias="promptVideo")
    scene_label: str = Field(alias="adegan")
    time_range: str = Field(alias="timeline")


class GeneratedImage(BaseModel):
    """Result of one prompt in a free-form image batch."""

    prompt: str
    image_url: str = ""
    error: Optional[str] = None


class VideoJobStatus(BaseModel):
    """Snapshot of a long-running video generation job."""

    done: bool = False
    result_uri: Optional[str] = None
    error: Optional[str] = None


class BatchStatus(str, Enum):
    """Outcome of one batch submission."""

    COMPLETED = "completed"
    NOTHING_TO_DO = "nothing_to_do"
    QUOTA_BLOCKED = "quota_blocked"
    RATE_LIMITED = "rate_limited"
    BUSY = "busy"


class BatchResult(BaseModel):
    """Aggregate result of a scene image batch."""

    status: BatchStatus
    message: str = ""
    wait_seconds: int = 0
    # The batch alone is larger than the quota and can never be admitted
    exceeds_quota: bool = False
    dispatched: list[int] = Field(default_factory=list)
    succeeded: list[int] = Field(default_factory=list)
    failed: list[int] = Field(default_factory=list)
    skipped: list[int] = Field(default_factory=list)
    # Responses that arrived after their timeline was replaced
    discarded: list[int] = Field(default_factory=list)
