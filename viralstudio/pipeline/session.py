"""Studio session: the narration-to-images workflow and the state it owns.

One session replaces what used to be ambient global state (idea history,
request timestamps, quota flag). Create one per user workflow and drop it
when the workflow ends; nothing here outlives the session object.
"""

import logging
import time
from pathlib import Path
from typing import Callable, Optional

from viralstudio.agents.idea_agent import IdeaAgent, build_idea_prompt, build_more_ideas_prompt
from viralstudio.agents.narration_agent import NarrationAgent, build_story_prompt
from viralstudio.agents.timeline_agent import TimelineAgent
from viralstudio.config import Config, config as default_config
from viralstudio.errors import (
    EMPTY_PROMPT_MESSAGE,
    EMPTY_TOPIC_MESSAGE,
    IDEA_NOT_FOUND_MESSAGE,
    GenerationError,
    InputValidationError,
)
from viralstudio.models.schemas import (
    BatchResult,
    GeneratedImage,
    ImageForVideo,
    TimelineItem,
    ViralIdea,
)
from viralstudio.pipeline.gate import GateState
from viralstudio.pipeline.notices import StudioNotices
from viralstudio.pipeline.orchestrator import BatchOrchestrator
from viralstudio.pipeline.quota_breaker import DailyQuotaBreaker
from viralstudio.pipeline.rate_limiter import SlidingWindowRateLimiter
from viralstudio.pipeline.timeline_store import TimelineStore
from viralstudio.services import exporter
from viralstudio.services.image_generator import ImageGenerator, split_prompts
from viralstudio.services.video_generator import VideoGenerator

logger = logging.getLogger(__name__)


class StudioSession:
    """Everything one user's narration workflow needs, wired together.

    Methods mirror the actions of the studio front end. User-facing problems
    are reported through self.notices rather than raised.
    """

    def __init__(
        self,
        config: Optional[Config] = None,
        idea_agent=None,
        narration_agent=None,
        timeline_agent=None,
        image_generator=None,
        video_generator=None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.config = config or default_config
        self.clock = clock

        self.ideas = idea_agent or IdeaAgent(self.config)
        self.narration = narration_agent or NarrationAgent(self.config)
        self.timelines = timeline_agent or TimelineAgent(self.config)
        self.images = image_generator or ImageGenerator(self.config)
        self._video_generator = video_generator

        self.store = TimelineStore()
        self.notices = StudioNotices()
        self.rate_limiter = SlidingWindowRateLimiter(
            quota=self.config.rate_limit.quota,
            window_seconds=self.config.rate_limit.window_seconds,
        )
        self.quota_breaker = DailyQuotaBreaker()
        self.orchestrator = BatchOrchestrator(
            store=self.store,
            image_generator=self.images,
            rate_limiter=self.rate_limiter,
            quota_breaker=self.quota_breaker,
            notices=self.notices,
            clock=clock,
            aspect_ratio=self.config.image.timeline_aspect_ratio,
        )

        # Generator settings, editable from the configuration dialog
        self.topic = self.config.ideas.default_topic
        self.number_of_ideas = self.config.ideas.number_of_ideas
        self.video_duration = self.config.ideas.video_duration
        self.idea_prompt_template = self.config.ideas.prompt_template

        # Story prompt behind the active timeline
        self.prompt = ""

    @property
    def video(self) -> VideoGenerator:
        if self._video_generator is None:
            self._video_generator = VideoGenerator(self.config)
        return self._video_generator

    def configure(
        self,
        number_of_ideas: Optional[int] = None,
        video_duration: Optional[int] = None,
        idea_prompt_template: Optional[str] = None,
    ) -> None:
        """Apply the generator configuration dialog."""
        if number_of_ideas is not None:
            if number_of_ideas < 1:
                raise InputValidationError("Number of ideas must be at least 1")
            self.number_of_ideas = number_of_ideas
        if video_duration is not None:
            if video_duration < 5:
                raise InputValidationError("Video duration must be at least 5 seconds")
            self.video_duration = video_duration
        if idea_prompt_template is not None:
            if not idea_prompt_template.strip():
                raise InputValidationError("Idea prompt template must not be empty")
            self.idea_prompt_template = idea_prompt_template

    # Ideas

    def generate_ideas(self, topic: Optional[str] = None) -> list[ViralIdea]:
        """
        Generate ideas for a topic and append them to the topic's history.

        Returns:
            The newly stored ideas (empty on error, see notices.idea_error)
        """
        if topic is not None:
            self.topic = topic
        if not self.topic.strip():
            self.notices.idea_error = EMPTY_TOPIC_MESSAGE
            return []

        self.notices.idea_error = ""
        self.store.select_idea(None)

        prompt = build_idea_prompt(
            self.idea_prompt_template, self.number_of_ideas, self.video_duration, self.topic
        )
        try:
            ideas = self.ideas.generate_ideas(prompt)
        except GenerationError as e:
            self.notices.idea_error = str(e)
            return []

        stored = self.store.append_ideas(self.topic, ideas)
        self.store.select_topic(self.topic)
        return stored

    def generate_more_ideas(self) -> list[ViralIdea]:
        """Ten more ideas for the active topic, numbered after the existing ones."""
        topic = self.store.active_topic
        if topic is None:
            return []

        self.notices.idea_error = ""
        existing_titles = [idea.title for idea in self.store.ideas(topic)]
        prompt = build_more_ideas_prompt(
            topic,
            self.video_duration,
            existing_titles,
            count=self.config.ideas.more_ideas_count,
        )
        try:
            ideas = self.ideas.generate_ideas(prompt)
        except GenerationError as e:
            self.notices.idea_error = str(e)
            return []

        return self.store.append_ideas(topic, ideas, renumber=True)

    def select_topic_from_history(self, topic: str) -> None:
        self.topic = topic
        self.store.select_topic(topic)

    def show_results(self, idea_id: int) -> Optional[ViralIdea]:
        """Re-open an idea whose narration and timeline were generated earlier."""
        try:
            self.store.select_idea(idea_id)
        except InputValidationError:
            self.notices.timeline_error = IDEA_NOT_FOUND_MESSAGE.format(idea_id=idea_id)
            return None
        idea = self.store.active_idea()
        self.prompt = (idea.narration or "") if idea else ""
        return idea

    # Narration and timeline

    def create_story_and_timeline(self, idea_id: int) -> bool:
        """Write the story prompt for an idea and generate its full timeline."""
        if self.store.active_topic is None:
            self.notices.timeline_error = EMPTY_PROMPT_MESSAGE
            return False
        idea = self.store.get_idea(self.store.active_topic, idea_id)
        if idea is None:
            self.notices.timeline_error = IDEA_NOT_FOUND_MESSAGE.format(idea_id=idea_id)
            return False

        self.prompt = build_story_prompt(idea, self.video_duration)
        return self.generate_full_timeline(self.prompt, idea_id)

    def generate_full_timeline(self, prompt: str, idea_id: int) -> bool:
        """
        Generate narration and then the scene timeline for an idea.

        On failure the idea keeps whatever timeline it had before.
        """
        topic = self.store.active_topic
        if not prompt.strip() or topic is None:
            self.notices.timeline_error = EMPTY_PROMPT_MESSAGE
            return False

        self.notices.timeline_error = ""
        self.store.select_idea(idea_id)

        try:
            narration = self.narration.generate_narration(prompt)
            scenes = self.timelines.generate_timeline(narration, self.video_duration)
        except GenerationError as e:
            self.notices.timeline_error = str(e)
            return False

        self.store.replace_timeline(topic, idea_id, narration, scenes)
        return True

    @property
    def active_timeline(self) -> list[TimelineItem]:
        return self.store.active_timeline()

    def gate(self) -> GateState:
        self.orchestrator.countdown.refresh()
        return GateState.of(self.store.active_timeline())

    def request_count(self) -> int:
        """Scene image requests counted against the current window."""
        self.orchestrator.countdown.refresh()
        return self.rate_limiter.current_count(self.clock())

    def rate_limit_remaining(self) -> int:
        """Seconds left on the throttling countdown; reading it at zero clears the notice."""
        return self.orchestrator.countdown.remaining

    # Scene images

    async def _run(self, batch) -> Optional[BatchResult]:
        try:
            return await batch
        except InputValidationError as e:
            self.notices.timeline_error = str(e)
            return None

    async def generate_single_image(self, index: int) -> Optional[BatchResult]:
        return await self._run(self.orchestrator.generate_single(index))

    async def generate_all_images(self) -> Optional[BatchResult]:
        return await self._run(self.orchestrator.generate_all())

    async def retry_failed_images(self) -> Optional[BatchResult]:
        return await self._run(self.orchestrator.retry_failed())

    # Hand-off and export

    def send_to_video(self) -> list[ImageForVideo]:
        """Scenes for the video stage; empty until every scene has an image."""
        timeline = self.store.active_timeline()
        if not GateState.of(timeline).can_advance:
            return []
        return [
            ImageForVideo(
                image_url=item.image_url,
                video_prompt=item.video_prompt,
                scene_label=item.scene_label,
                time_range=item.time_range,
            )
            for item in timeline
            if item.image_url
        ]

    def export_timeline_json(self, output_dir: Optional[Path] = None) -> Optional[Path]:
        timeline = self.store.active_timeline()
        if not timeline:
            return None
        return exporter.save_export(
            exporter.timeline_to_json(timeline),
            output_dir or self.config.exports_dir,
            exporter.TIMELINE_JSON_NAME,
        )

    def export_images_zip(self, output_dir: Optional[Path] = None) -> Optional[Path]:
        timeline = self.store.active_timeline()
        if not any(item.image_url for item in timeline):
            return None
        try:
            data = exporter.timeline_images_zip(timeline)
        except (ValueError, OSError) as e:
            logger.error(f"Failed to build image zip: {e}")
            self.notices.timeline_error = "Gagal membuat file zip. Lihat log untuk detail."
            return None
        return exporter.save_export(data, output_dir or self.config.exports_dir, exporter.IMAGES_ZIP_NAME)

    # Free-form tabs

    async def generate_image_batch(self, prompts_text: str) -> list[GeneratedImage]:
        """One image per line of prompts_text; not throttled."""
        return await self.images.generate_batch(split_prompts(prompts_text))

    def animate_scene(self, scene: ImageForVideo, **kwargs) -> Path:
        return self.video.generate_from_scene(scene, **kwargs)
