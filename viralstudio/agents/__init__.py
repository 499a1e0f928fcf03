"""AI Agents for Viral Studio."""

from viralstudio.agents.idea_agent import IdeaAgent
from viralstudio.agents.narration_agent import NarrationAgent
from viralstudio.agents.timeline_agent import TimelineAgent

__all__ = [
    "IdeaAgent",
    "NarrationAgent",
    "TimelineAgent",
]
