"""Unit tests for the book metadata research agent."""

from __future__ import annotations

import json
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from technodog.agents.research_book_metadata import (
    ResearchBookMetadataAgent,
    catalog_fields,
    final_status,
    merge_extracted,
)
from technodog.interfaces.web_provider import IBookCatalogProvider, IScrapeProvider
from technodog.models.content import Book, VerificationStatus
from technodog.utils.errors import ProviderNetworkError

EXTRACTED = {"isbn_13": "9780330350563", "publisher": "Picador", "year_published": 1998, "pages": 496}


def _catalog(record=None, error=None) -> MagicMock:
    catalog = MagicMock(spec=IBookCatalogProvider)
    catalog.get_provider_name.return_value = "openlibrary"
    catalog.lookup = AsyncMock(return_value=record, side_effect=error)
    return catalog


def _scraper(content="Energy Flash by Simon Reynolds, Picador 1998, 496 pages") -> MagicMock:
    scraper = MagicMock(spec=IScrapeProvider)
    scraper.is_available.return_value = True
    scraper.scrape = AsyncMock(return_value=content)
    return scraper


@pytest.fixture
async def books(book_store):
    await book_store.add_book(Book(id="b1", title="Energy Flash", author="Simon Reynolds"))
    return book_store


def _agent(agent_store, orchestrator, books, catalog, scraper=None) -> ResearchBookMetadataAgent:
    return ResearchBookMetadataAgent(
        agent_store, orchestrator, books, catalog, scraper=scraper, config={"delay_seconds": 0}
    )


# ─── Pure helpers ──────────────────────────────────────────────────

def test_catalog_fields():
    fields = catalog_fields(
        {"number_of_pages": "320", "publishers": [{"name": "Picador"}], "publish_date": "May 1998"}
    )
    assert fields == {"pages": 320, "publisher": "Picador", "year_published": 1998}


def test_catalog_fields_rejects_implausible_year():
    assert catalog_fields({"first_publish_year": 1850}) == {}
    assert catalog_fields({"number_of_pages": "many"}) == {}


def test_merge_extracted_keeps_existing_values():
    book = Book(id="1", title="t", isbn="111")
    merged = merge_extracted(book, {"publisher": "Faber"}, EXTRACTED)
    assert merged == {"publisher": "Faber", "year_published": 1998, "pages": 496}


def test_final_status():
    assert final_status({"pages": 1}, [], VerificationStatus.NEEDS_REVIEW) is VerificationStatus.VERIFIED
    assert final_status({"pages": 1}, ["x"], VerificationStatus.VERIFIED) is VerificationStatus.PARTIAL
    assert final_status({}, [], VerificationStatus.NEEDS_REVIEW) is VerificationStatus.NEEDS_REVIEW


# ─── Actions ───────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_catalog_only_research(agent_store, books, orchestrator_factory, llm_factory):
    catalog = _catalog({"number_of_pages": 496, "publishers": ["Picador"], "first_publish_year": 1998})
    agent = _agent(agent_store, orchestrator_factory(llm_factory("openai")), books, catalog)

    response = await agent.handle({})

    assert response["total_researched"] == 1
    assert response["verified"] == 1
    [result] = response["results"]
    assert result["verified_data"] == {"pages": 496, "publisher": "Picador", "year_published": 1998}
    assert result["sources"] == ["openlibrary"]
    catalog.lookup.assert_awaited_once_with(None, "Energy Flash", "Simon Reynolds")


@pytest.mark.asyncio
async def test_two_of_three_models_agree(agent_store, books, orchestrator_factory, llm_factory):
    orchestrator = orchestrator_factory(
        llm_factory("anthropic", json.dumps(EXTRACTED)),
        llm_factory("gemini", '{"verified": true, "confidence": 0.9}'),
        llm_factory("openai", '{"validated": false, "corrections": {"pages": 512}, "notes": "Page count differs"}'),
    )
    agent = _agent(agent_store, orchestrator, books, _catalog(None), scraper=_scraper())

    [result] = (await agent.handle({"action": "research"}))["results"]

    assert result["model_agreement"] == {"anthropic": True, "gemini": True, "openai": False}
    assert result["verification_status"] == "partial"
    assert result["verified_data"]["isbn"] == "9780330350563"
    assert result["unverified_data"] == {}
    assert result["sources"] == ["amazon.com"]
    assert result["discrepancies"] == [
        "OpenAI: Page count differs",
        'Corrections suggested: {\n  "pages": 512\n}',
    ]


@pytest.mark.asyncio
async def test_disagreement_goes_to_review(agent_store, books, orchestrator_factory, llm_factory):
    orchestrator = orchestrator_factory(
        llm_factory("anthropic", json.dumps(EXTRACTED)),
        llm_factory("gemini", '{"verified": false}'),
        llm_factory("openai", error=ProviderNetworkError("reset", provider_name="openai")),
    )
    agent = _agent(agent_store, orchestrator, books, _catalog(None), scraper=_scraper())

    [result] = (await agent.handle({"book_ids": ["b1"]}))["results"]

    assert result["verification_status"] == "needs_review"
    assert result["verified_data"] == {}
    assert result["unverified_data"] == EXTRACTED
    assert "OpenAI: verification failed" in result["discrepancies"]


@pytest.mark.asyncio
async def test_catalog_failure_is_not_fatal(agent_store, books, orchestrator_factory, llm_factory):
    catalog = _catalog(error=ProviderNetworkError("down", provider_name="openlibrary"))
    agent = _agent(agent_store, orchestrator_factory(llm_factory("openai")), books, catalog)

    [result] = (await agent.handle({}))["results"]

    assert result["verification_status"] == "needs_review"
    assert result["sources"] == []


@pytest.mark.asyncio
async def test_nothing_to_research(agent_store, book_store, orchestrator_factory, llm_factory):
    agent = _agent(agent_store, orchestrator_factory(llm_factory("openai")), book_store, _catalog())
    response = await agent.handle({})
    assert response["message"] == "No books to research"
    assert response["results"] == []


@pytest.mark.asyncio
async def test_sleeps_between_books_only(agent_store, book_store, orchestrator_factory, llm_factory):
    for i in range(3):
        await book_store.add_book(Book(id=f"b{i}", title=f"Book {i}"))
    agent = ResearchBookMetadataAgent(
        agent_store, orchestrator_factory(llm_factory("openai")), book_store, _catalog(),
        config={"delay_seconds": 0.5},
    )

    with patch("technodog.agents.research_book_metadata.asyncio.sleep", new=AsyncMock()) as sleep:
        response = await agent.handle({"batchSize": 3})

    assert response["total_researched"] == 3
    assert sleep.await_count == 2
    sleep.assert_awaited_with(0.5)
