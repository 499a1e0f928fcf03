"""Shared fakes for the studio tests."""

import asyncio

import pytest

from viralstudio.errors import GenerationError
from viralstudio.models.schemas import SceneDescriptor, ViralIdea
from viralstudio.pipeline.timeline_store import TimelineStore

TOPIC = "sejarah yang jarang diketahui"


def make_scenes(count: int, seconds: int = 5) -> list[SceneDescriptor]:
    return [
        SceneDescriptor(
            time_range=f"{i * seconds}s - {(i + 1) * seconds}s",
            scene_label=f"Scene {i}",
            narration_excerpt=f"Narration {i}",
            image_prompt=f"prompt {i}",
            video_prompt=f"motion {i}",
        )
        for i in range(count)
    ]


def make_idea(idea_id: int, title: str = "") -> ViralIdea:
    return ViralIdea(id=idea_id, title=title or f"Idea {idea_id}", description="desc")


class FakeClock:
    def __init__(self, now: float = 0.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


class FakeImageGenerator:
    """Async stand-in for ImageGenerator.

    failures maps a prompt to the exception its request raises. When hold is
    set, requests wait for release() before answering.
    """

    def __init__(self, failures=None, hold: bool = False):
        self.failures = failures or {}
        self.calls: list[tuple[str, str]] = []
        self._release = asyncio.Event() if hold else None
        self.on_request = None

    def release(self) -> None:
        self._release.set()

    async def generate_image(self, prompt: str, aspect_ratio: str = "1:1") -> str:
        self.calls.append((prompt, aspect_ratio))
        if self.on_request is not None:
            self.on_request(prompt)
        if self._release is not None:
            await self._release.wait()
        else:
            await asyncio.sleep(0)
        if prompt in self.failures:
            raise self.failures[prompt]
        return f"data:image/png;base64,{prompt.replace(' ', '_')}"

    @property
    def prompts(self) -> list[str]:
        return [prompt for prompt, _ in self.calls]


class FakeIdeaAgent:
    def __init__(self, batches=None, error=None):
        self.batches = list(batches or [])
        self.error = error
        self.prompts: list[str] = []

    def generate_ideas(self, prompt_text: str) -> list[ViralIdea]:
        self.prompts.append(prompt_text)
        if self.error:
            raise self.error
        return self.batches.pop(0)


class FakeNarrationAgent:
    def __init__(self, text: str = "Sebuah cerita.", error=None):
        self.text = text
        self.error = error
        self.prompts: list[str] = []

    def generate_narration(self, prompt: str) -> str:
        self.prompts.append(prompt)
        if self.error:
            raise self.error
        return self.text


class FakeTimelineAgent:
    def __init__(self, scene_count: int = 3, error=None):
        self.scene_count = scene_count
        self.error = error
        self.calls: list[tuple[str, int]] = []

    def generate_timeline(self, narration: str, target_duration: int):
        self.calls.append((narration, target_duration))
        if self.error:
            raise self.error
        return make_scenes(self.scene_count)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store():
    """Store with an active idea holding a four-scene timeline."""
    store = TimelineStore()
    store.append_ideas(TOPIC, [make_idea(1), make_idea(2)])
    store.select_topic(TOPIC)
    store.replace_timeline(TOPIC, 1, "narration", make_scenes(4))
    store.select_idea(1)
    return store


@pytest.fixture
def daily_quota_error():
    return GenerationError(
        "Quota exceeded for quota metric 'Generate requests' and limit "
        "'Generate requests per day per project'"
    )
