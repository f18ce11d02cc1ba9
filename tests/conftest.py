"""Shared pytest fixtures for the techno.dog agent test suite."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Callable
from unittest.mock import AsyncMock, MagicMock

import pytest

from technodog.config.settings import Settings
from technodog.interfaces.llm_provider import ILLMProvider
from technodog.models.consensus import Completion
from technodog.providers.llm.registry import ProviderRegistry
from technodog.providers.store import (
    SQLiteAgentStore,
    SQLiteArtistStore,
    SQLiteBookStore,
    SQLiteDoggyStore,
    SQLitePlaybookStore,
    SQLiteVideoStore,
)
from technodog.services.orchestrator import ModelOrchestrator

_EMPTY_KEYS = {
    "openai_api_key": "",
    "anthropic_api_key": "",
    "gemini_api_key": "",
    "groq_api_key": "",
    "firecrawl_api_key": "",
    "youtube_api_key": "",
}


def make_settings(**overrides: Any) -> Settings:
    """Settings with every credential blank unless overridden."""
    values: dict[str, Any] = {**_EMPTY_KEYS, "config_path": "config/config.yaml"}
    values.update(overrides)
    return Settings(_env_file=None, **values)


def make_llm(
    name: str,
    text: str | None = '{"result": "ok"}',
    error: BaseException | None = None,
    model: str | None = None,
    available: bool = True,
) -> MagicMock:
    """Mock ILLMProvider answering ``text`` (or raising ``error``)."""
    mock = MagicMock(spec=ILLMProvider)
    mock.get_provider_name.return_value = name
    mock.get_model_name.return_value = model or f"{name}-model"
    mock.is_available.return_value = available
    if error is not None:
        mock.complete = AsyncMock(side_effect=error)
    else:
        mock.complete = AsyncMock(
            return_value=Completion(provider=name, model=model or f"{name}-model", text=text or "")
        )
    return mock


# ---------------------------------------------------------------------------
# Settings / config
# ---------------------------------------------------------------------------


@pytest.fixture
def project_root() -> Path:
    return Path(__file__).parent.parent


@pytest.fixture
def db_path(tmp_path: Path) -> Path:
    return tmp_path / "technodog-test.db"


@pytest.fixture
def settings(db_path: Path) -> Settings:
    return make_settings(database_path=str(db_path))


@pytest.fixture
def settings_factory() -> Callable[..., Settings]:
    return make_settings


# ---------------------------------------------------------------------------
# LLM mocks
# ---------------------------------------------------------------------------


@pytest.fixture
def llm_factory() -> Callable[..., MagicMock]:
    return make_llm


@pytest.fixture
def orchestrator_factory() -> Callable[..., ModelOrchestrator]:
    """Build an orchestrator over the given mock providers."""

    def _build(*providers: MagicMock, roles: dict[str, list[str]] | None = None) -> ModelOrchestrator:
        registry = ProviderRegistry(
            {p.get_provider_name(): p for p in providers}, roles=roles
        )
        return ModelOrchestrator(registry, timeout=5.0)

    return _build


# ---------------------------------------------------------------------------
# Stores on a temporary database
# ---------------------------------------------------------------------------


@pytest.fixture
async def agent_store(db_path: Path) -> SQLiteAgentStore:
    store = SQLiteAgentStore(db_path, stale_after_minutes=30)
    await store.initialize()
    return store


@pytest.fixture
async def artist_store(db_path: Path) -> SQLiteArtistStore:
    store = SQLiteArtistStore(db_path)
    await store.initialize()
    return store


@pytest.fixture
async def doggy_store(db_path: Path) -> SQLiteDoggyStore:
    store = SQLiteDoggyStore(db_path)
    await store.initialize()
    return store


@pytest.fixture
async def playbook_store(db_path: Path) -> SQLitePlaybookStore:
    store = SQLitePlaybookStore(db_path)
    await store.initialize()
    return store


@pytest.fixture
async def book_store(db_path: Path) -> SQLiteBookStore:
    store = SQLiteBookStore(db_path)
    await store.initialize()
    return store


@pytest.fixture
async def video_store(db_path: Path) -> SQLiteVideoStore:
    store = SQLiteVideoStore(db_path)
    await store.initialize()
    return store
