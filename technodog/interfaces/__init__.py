"""Abstract interfaces (adapter contracts) for providers and stores."""

from technodog.interfaces.agent_store import IAgentStore
from technodog.interfaces.content_store import (
    IArtistStore,
    IBookStore,
    IDoggyStore,
    IPlaybookStore,
    IVideoStore,
)
from technodog.interfaces.llm_provider import ILLMProvider
from technodog.interfaces.web_provider import (
    IBookCatalogProvider,
    IScrapeProvider,
    IVideoProvider,
)

__all__ = [
    "IAgentStore",
    "IArtistStore",
    "IBookCatalogProvider",
    "IBookStore",
    "IDoggyStore",
    "ILLMProvider",
    "IPlaybookStore",
    "IScrapeProvider",
    "IVideoProvider",
    "IVideoStore",
]
