"""techno.dog agent service: FastAPI application entry point.

Wires providers, stores and agents together via dependency injection.
Loads configuration from ``.env`` and ``config/config.yaml`` and
configures structured logging.  :func:`open_components` is shared with the
CLI so both entry points run exactly the same wiring.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any, AsyncIterator

import httpx
import structlog
import uvicorn
from fastapi import FastAPI

from technodog import __version__
from technodog.agents import (
    AgentRegistry,
    ArtistDbArchitectAgent,
    DoggyAnalyticsAgent,
    DoggySelfHealAgent,
    PlaybookAgent,
    ResearchBookMetadataAgent,
    YouTubeCuratorAgent,
)
from technodog.api.middleware import (
    ErrorHandlingMiddleware,
    RequestLoggingMiddleware,
    configure_cors,
)
from technodog.api.routes import router as api_router
from technodog.config.loader import agent_config, load_config
from technodog.config.settings import Settings
from technodog.providers.llm.registry import build_provider_registry
from technodog.providers.store import (
    SQLiteAgentStore,
    SQLiteArtistStore,
    SQLiteBookStore,
    SQLiteDoggyStore,
    SQLitePlaybookStore,
    SQLiteVideoStore,
)
from technodog.providers.web import FirecrawlProvider, OpenLibraryProvider, YouTubeProvider
from technodog.services.orchestrator import ModelOrchestrator
from technodog.utils.logging import configure_logging, get_logger

# ---------------------------------------------------------------------------
# Module-level settings & logging
# ---------------------------------------------------------------------------

settings = Settings()
config = load_config(settings=settings)

configure_logging(log_level=settings.log_level, app_env=settings.app_env)
_logger: structlog.BoundLogger = get_logger(__name__)


# ---------------------------------------------------------------------------
# Component wiring
# ---------------------------------------------------------------------------


def _build_all(
    app_settings: Settings,
    app_config: dict[str, Any],
    http_client: httpx.AsyncClient,
) -> dict[str, Any]:
    """Construct every provider, store and agent.

    Returns a flat dict of named components to be stored on ``app.state``.
    """
    llm_config = app_config.get("llm") or {}

    # -- LLM --
    provider_registry = build_provider_registry(
        app_settings, http_client, roles=llm_config.get("roles")
    )
    orchestrator = ModelOrchestrator(
        provider_registry,
        timeout=app_settings.provider_timeout_seconds,
        max_concurrency=llm_config.get("max_concurrency"),
    )

    # -- Web services --
    firecrawl = FirecrawlProvider(app_settings, http_client)
    youtube = YouTubeProvider(app_settings, http_client)
    openlibrary = OpenLibraryProvider(app_settings, http_client)

    # -- Stores (one database file) --
    db_path = app_settings.database_path
    agent_store = SQLiteAgentStore(db_path, stale_after_minutes=app_settings.stale_run_minutes)
    artist_store = SQLiteArtistStore(db_path)
    doggy_store = SQLiteDoggyStore(db_path)
    playbook_store = SQLitePlaybookStore(db_path)
    book_store = SQLiteBookStore(db_path)
    video_store = SQLiteVideoStore(db_path)

    # -- Agents --
    research_config = {
        "delay_seconds": app_settings.book_research_delay_seconds,
        **agent_config(app_config, ResearchBookMetadataAgent.name),
    }
    curator_config = {
        **agent_config(app_config, YouTubeCuratorAgent.name),
        "channel_handle": app_settings.youtube_channel_handle,
    }
    agents = AgentRegistry(
        [
            ArtistDbArchitectAgent(
                agent_store, orchestrator, artist_store,
                config=agent_config(app_config, ArtistDbArchitectAgent.name),
            ),
            DoggyAnalyticsAgent(
                agent_store, orchestrator, doggy_store,
                config=agent_config(app_config, DoggyAnalyticsAgent.name),
            ),
            DoggySelfHealAgent(
                agent_store, doggy_store,
                config=agent_config(app_config, DoggySelfHealAgent.name),
            ),
            PlaybookAgent(
                agent_store, orchestrator, playbook_store, scraper=firecrawl,
                config=agent_config(app_config, PlaybookAgent.name),
            ),
            ResearchBookMetadataAgent(
                agent_store, orchestrator, book_store, openlibrary, scraper=firecrawl,
                config=research_config,
            ),
            YouTubeCuratorAgent(
                agent_store, orchestrator, video_store, youtube, config=curator_config,
            ),
        ]
    )

    return {
        "settings": app_settings,
        "config": app_config,
        "http_client": http_client,
        "provider_registry": provider_registry,
        "orchestrator": orchestrator,
        "web_services": {"firecrawl": firecrawl, "youtube": youtube},
        "agent_store": agent_store,
        "stores": [agent_store, artist_store, doggy_store, playbook_store, book_store, video_store],
        "agents": agents,
    }


@asynccontextmanager
async def open_components(
    app_settings: Settings,
    app_config: dict[str, Any],
) -> AsyncIterator[dict[str, Any]]:
    """Build the components, create the database tables, close on exit."""
    http_client = httpx.AsyncClient(timeout=app_settings.provider_timeout_seconds)
    try:
        components = _build_all(app_settings, app_config, http_client)
        for store in components["stores"]:
            await store.initialize()
        yield components
    finally:
        await http_client.aclose()


# ---------------------------------------------------------------------------
# FastAPI application factory
# ---------------------------------------------------------------------------


def create_app(
    app_settings: Settings | None = None,
    app_config: dict[str, Any] | None = None,
) -> FastAPI:
    """Build and configure the FastAPI application."""
    app_settings = app_settings or settings
    app_config = config if app_config is None else app_config

    @asynccontextmanager
    async def _lifespan(application: FastAPI):  # noqa: ANN202
        async with open_components(app_settings, app_config) as components:
            for key, value in components.items():
                setattr(application.state, key, value)
            _logger.info(
                "app_startup",
                version=__version__,
                environment=app_settings.app_env,
                agents=components["agents"].names(),
                llm_available=components["provider_registry"].available(),
                database=app_settings.database_path,
            )
            yield
        _logger.info("app_shutdown", message="HTTP client closed")

    application = FastAPI(
        title="techno.dog agents",
        version=__version__,
        description=(
            "Multi-model agents for the techno.dog knowledge base: artist catalog "
            "architecture, doggy analytics and self-healing, the open-source "
            "playbook, book metadata research and YouTube curation."
        ),
        lifespan=_lifespan,
    )

    # -- Middleware (order matters: last added = first executed) --
    application.add_middleware(ErrorHandlingMiddleware)
    application.add_middleware(RequestLoggingMiddleware)
    configure_cors(application)

    application.include_router(api_router)
    return application


app = create_app()


if __name__ == "__main__":
    uvicorn.run(
        "technodog.main:app",
        host=settings.app_host,
        port=settings.app_port,
        reload=(settings.app_env == "development"),
    )
