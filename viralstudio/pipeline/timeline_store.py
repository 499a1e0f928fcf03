"""Topic-keyed idea history and per-scene generation state."""

import logging
from dataclasses import dataclass
from typing import Iterable, Optional

from viralstudio.errors import InputValidationError
from viralstudio.models.schemas import SceneDescriptor, TimelineItem, ViralIdea

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TimelineRef:
    """Identifies one version of one idea's timeline.

    In-flight requests carry the ref they were dispatched against so that a
    response for a replaced timeline can be told apart from a current one.
    """

    topic: str
    idea_id: int
    version: int


class TimelineStore:
    """Owns every idea and timeline item of a studio session.

    Items are changed only through update_item, one index at a time; the
    timeline as a whole is only swapped by replace_timeline.
    """

    def __init__(self):
        self._history: dict[str, list[ViralIdea]] = {}
        self.active_topic: Optional[str] = None
        self.active_idea_id: Optional[int] = None

    # Topics and ideas

    def topics(self) -> list[str]:
        return list(self._history)

    def ideas(self, topic: Optional[str] = None) -> list[ViralIdea]:
        topic = topic if topic is not None else self.active_topic
        if topic is None:
            return []
        return list(self._history.get(topic, []))

    def get_idea(self, topic: str, idea_id: int) -> Optional[ViralIdea]:
        for idea in self._history.get(topic, []):
            if idea.id == idea_id:
                return idea
        return None

    def next_idea_id(self, topic: str) -> int:
        return max((idea.id for idea in self._history.get(topic, [])), default=0) + 1

    def append_ideas(
        self,
        topic: str,
        ideas: Iterable[ViralIdea],
        renumber: bool = False,
    ) -> list[ViralIdea]:
        """
        Append ideas to a topic, keeping ids unique within the topic.

        Args:
            topic: Topic the ideas belong to
            ideas: Newly generated ideas
            renumber: Number every new idea after the current maximum

        Returns:
            The ideas as stored
        """
        existing = self._history.setdefault(topic, [])
        taken = {idea.id for idea in existing}
        next_id = self.next_idea_id(topic)
        stored = []

        for idea in ideas:
            idea_id = idea.id
            if renumber or idea_id in taken:
                idea_id = next_id
            next_id = max(next_id, idea_id) + 1
            taken.add(idea_id)
            record = idea.model_copy(
                update={"id": idea_id, "timeline": [], "timeline_version": 0}
            )
            existing.append(record)
            stored.append(record)

        logger.info(f"Stored {len(stored)} ideas for topic '{topic[:40]}' ({len(existing)} total)")
        return stored

    def select_topic(self, topic: str) -> None:
        self.active_topic = topic
        self.active_idea_id = None

    def select_idea(self, idea_id: Optional[int]) -> None:
        if idea_id is not None and self.active_topic is not None:
            if self.get_idea(self.active_topic, idea_id) is None:
                raise InputValidationError(f"Unknown idea {idea_id}")
        self.active_idea_id = idea_id

    def active_idea(self) -> Optional[ViralIdea]:
        if self.active_topic is None or self.active_idea_id is None:
            return None
        return self.get_idea(self.active_topic, self.active_idea_id)

    # Timelines

    def replace_timeline(
        self,
        topic: str,
        idea_id: int,
        narration: str,
        scenes: Iterable[SceneDescriptor],
    ) -> TimelineRef:
        """Swap an idea's narration and timeline for fresh, empty items."""
        idea = self.get_idea(topic, idea_id)
        if idea is None:
            raise InputValidationError(f"Unknown idea {idea_id} in topic '{topic}'")

        idea.narration = narration
        idea.timeline = [TimelineItem.from_scene(scene) for scene in scenes]
        idea.timeline_version += 1
        logger.info(
            f"Idea {idea_id}: timeline v{idea.timeline_version} with {len(idea.timeline)} scenes"
        )
        return TimelineRef(topic=topic, idea_id=idea_id, version=idea.timeline_version)

    def active_ref(self) -> Optional[TimelineRef]:
        idea = self.active_idea()
        if idea is None:
            return None
        return TimelineRef(self.active_topic, idea.id, idea.timeline_version)

    def active_timeline(self) -> list[TimelineItem]:
        idea = self.active_idea()
        return list(idea.timeline) if idea else []

    def timeline(self, ref: TimelineRef) -> list[TimelineItem]:
        idea = self.get_idea(ref.topic, ref.idea_id)
        return list(idea.timeline) if idea else []

    def is_current(self, ref: TimelineRef) -> bool:
        idea = self.get_idea(ref.topic, ref.idea_id)
        return idea is not None and idea.timeline_version == ref.version

    def update_item(self, ref: TimelineRef, index: int, **updates) -> bool:
        """
        Merge updates into a single timeline item.

        Returns:
            False when the ref is stale (the timeline was replaced after the
            request went out) and nothing was written
        """
        idea = self.get_idea(ref.topic, ref.idea_id)
        if idea is None or idea.timeline_version != ref.version:
            logger.warning(
                f"Discarding update for scene {index} of idea {ref.idea_id}: "
                f"timeline v{ref.version} was replaced"
            )
            return False
        if not 0 <= index < len(idea.timeline):
            raise IndexError(f"Scene index {index} out of range")

        current = idea.timeline[index]
        idea.timeline[index] = TimelineItem.model_validate({**current.model_dump(), **updates})
        return True
