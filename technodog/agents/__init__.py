"""Agent handlers, one per edge function."""

from technodog.agents.artist_db_architect import ArtistDbArchitectAgent
from technodog.agents.base import ActionResult, BaseAgent, RunContext, action
from technodog.agents.doggy_analytics import DoggyAnalyticsAgent
from technodog.agents.doggy_self_heal import DoggySelfHealAgent
from technodog.agents.playbook_agent import PlaybookAgent
from technodog.agents.registry import AgentRegistry
from technodog.agents.research_book_metadata import ResearchBookMetadataAgent
from technodog.agents.youtube_curator import YouTubeCuratorAgent

__all__ = [
    "ActionResult",
    "AgentRegistry",
    "ArtistDbArchitectAgent",
    "BaseAgent",
    "DoggyAnalyticsAgent",
    "DoggySelfHealAgent",
    "PlaybookAgent",
    "ResearchBookMetadataAgent",
    "RunContext",
    "YouTubeCuratorAgent",
    "action",
]
