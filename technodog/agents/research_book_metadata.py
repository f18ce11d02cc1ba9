"""Multi-model bibliographic research for published books.

For each book with missing ISBN, publisher or year:

1. Open Library (structured, no key) fills pages, publisher and year.
2. With Firecrawl and Anthropic configured, a store search page is
   scraped and Anthropic extracts the bibliographic fields from it.
3. Gemini (verification) and OpenAI (cross-validation) judge the
   extraction concurrently.
4. Extracted fields are merged into ``verified_data`` only when at least
   two of the three models agree; otherwise they are kept as
   ``unverified_data`` for human review.

Results are returned for review.  Books are never updated here.
"""

from __future__ import annotations

import asyncio
import re
from datetime import datetime, timezone
from typing import Any
from urllib.parse import quote_plus

from technodog.agents.base import ActionResult, BaseAgent, RunContext, action, param
from technodog.interfaces.agent_store import IAgentStore
from technodog.interfaces.content_store import IBookStore
from technodog.interfaces.web_provider import IBookCatalogProvider, IScrapeProvider
from technodog.models.content import Book, BookResearchResult, VerificationStatus
from technodog.services.consensus import AgreementStatus, agreement_status
from technodog.services.orchestrator import ModelOrchestrator
from technodog.services.prompt_builder import PromptTemplate, to_json_block
from technodog.utils.concurrency import throttled_gather
from technodog.utils.errors import TechnoDogError
from technodog.utils.json_extract import extract_object

EXTRACTION_PROMPT = PromptTemplate(
    """Extract ONLY verifiable bibliographic data from this content about the book "{title}" by {author}.

CONTENT:
{content}

Return ONLY a JSON object with these fields (use null if not found):
{
  "isbn_10": "string or null",
  "isbn_13": "string or null",
  "publisher": "string or null",
  "year_published": "number or null",
  "pages": "number or null",
  "language": "string or null",
  "edition": "string or null"
}

IMPORTANT: Only include data explicitly stated in the content. Do NOT infer or guess.
Return ONLY the JSON, no explanation."""
)

VERIFY_PROMPT = PromptTemplate(
    """Verify this bibliographic data for "{title}" by {author}:

{data}

Based on your knowledge, rate the likelihood this data is accurate.
Return JSON only:
{
  "verified": true/false,
  "confidence": 0.0-1.0,
  "notes": "brief explanation"
}"""
)

VALIDATE_PROMPT = PromptTemplate(
    """Cross-validate this bibliographic data for "{title}" by {author}:

{data}

Check if this data matches your knowledge. If you find errors, provide corrections.
Return JSON only:
{
  "validated": true/false,
  "corrections": { "field_name": "corrected_value" } or {},
  "notes": "brief explanation"
}"""
)

SYSTEM_PROMPT = "You are a meticulous bibliographic researcher. Answer with JSON only."

_YEAR = re.compile(r"\d{4}")


def catalog_fields(record: dict[str, Any]) -> dict[str, Any]:
    """Pages, publisher and year from an Open Library record."""
    fields: dict[str, Any] = {}
    if record.get("number_of_pages"):
        try:
            fields["pages"] = int(record["number_of_pages"])
        except (TypeError, ValueError):
            pass

    publishers = record.get("publishers")
    if isinstance(publishers, list) and publishers:
        first = publishers[0]
        name = first.get("name") if isinstance(first, dict) else first
        if isinstance(name, str):
            fields["publisher"] = name

    raw_year = record.get("first_publish_year")
    if raw_year is None:
        match = _YEAR.search(str(record.get("publish_date") or ""))
        raw_year = match.group(0) if match else None
    try:
        year = int(str(raw_year))
    except (TypeError, ValueError):
        year = None
    if year is not None and 1900 < year <= datetime.now(tz=timezone.utc).year:  # noqa: UP017
        fields["year_published"] = year
    return fields


def merge_extracted(book: Book, verified: dict[str, Any], extracted: dict[str, Any]) -> dict[str, Any]:
    """Fill gaps in ``verified`` from an agreed-upon extraction."""
    merged = dict(verified)
    if extracted.get("isbn_13") and not book.isbn:
        merged["isbn"] = str(extracted["isbn_13"])
    for key in ("publisher", "year_published", "pages"):
        if extracted.get(key) and not merged.get(key):
            merged[key] = str(extracted[key]) if key == "publisher" else _as_int(extracted[key])
    return {k: v for k, v in merged.items() if v is not None}


def _as_int(value: Any) -> int | None:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def final_status(verified: dict[str, Any], discrepancies: list[str], current: VerificationStatus) -> VerificationStatus:
    if verified and not discrepancies:
        return VerificationStatus.VERIFIED
    if verified:
        return VerificationStatus.PARTIAL
    return current


class ResearchBookMetadataAgent(BaseAgent):
    name = "research-book-metadata"
    default_action = "research"
    description = "Researches and cross-verifies missing book metadata for human review"

    def __init__(
        self,
        store: IAgentStore,
        orchestrator: ModelOrchestrator,
        books: IBookStore,
        catalog: IBookCatalogProvider,
        scraper: IScrapeProvider | None = None,
        config: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(store, orchestrator, config)
        self._books = books
        self._catalog = catalog
        self._scraper = scraper
        self._delay = float(self._config.get("delay_seconds", 1.0))
        self._search_url = self._config.get("search_url", "https://www.amazon.com/s?k={query}")

    def _provider_ready(self, name: str) -> bool:
        try:
            return self.orchestrator.registry.get(name).is_available()
        except TechnoDogError:
            return False

    async def _lookup_catalog(self, book: Book) -> dict[str, Any] | None:
        try:
            return await self._catalog.lookup(book.isbn, book.title, book.author)
        except TechnoDogError as exc:
            self._logger.warning("catalog_lookup_failed", book_id=book.id, error=str(exc))
            return None

    async def _scrape(self, book: Book) -> str | None:
        url = self._search_url.replace("{query}", quote_plus(f"{book.title} {book.author} book"))
        try:
            return await self._scraper.scrape(url)  # type: ignore[union-attr]
        except TechnoDogError as exc:
            self._logger.warning("scrape_failed", book_id=book.id, url=url, error=str(exc))
            return None

    async def _extract(self, book: Book, content: str) -> dict[str, Any] | None:
        try:
            completion = await self.orchestrator.first_success(
                ["anthropic"],
                SYSTEM_PROMPT,
                EXTRACTION_PROMPT.render(title=book.title, author=book.author, content=content[:6000]),
                temperature=0.0,
                max_tokens=1024,
            )
        except TechnoDogError as exc:
            self._logger.warning("extraction_failed", book_id=book.id, error=str(exc))
            return None
        parsed = extract_object(completion.text)
        return parsed.value if parsed.ok and isinstance(parsed.value, dict) else None

    async def _judge(self, provider: str, prompt: str) -> dict[str, Any]:
        completion = await self.orchestrator.first_success(
            [provider], SYSTEM_PROMPT, prompt, temperature=0.0, max_tokens=512
        )
        return extract_object(completion.text).unwrap(provider)

    async def _cross_check(self, book: Book, extracted: dict[str, Any]) -> tuple[dict[str, bool], list[str]]:
        votes = {"anthropic": True, "gemini": False, "openai": False}
        discrepancies: list[str] = []
        data = to_json_block(extracted)

        checks: list[tuple[str, Any]] = []
        if self._provider_ready("gemini"):
            checks.append(("gemini", VERIFY_PROMPT.render(title=book.title, author=book.author, data=data)))
        if self._provider_ready("openai"):
            checks.append(("openai", VALIDATE_PROMPT.render(title=book.title, author=book.author, data=data)))

        outcomes = await throttled_gather([self._judge(name, prompt) for name, prompt in checks])
        for (name, _), outcome in zip(checks, outcomes, strict=True):
            label = "Gemini" if name == "gemini" else "OpenAI"
            if isinstance(outcome, BaseException):
                self._logger.warning("verification_failed", provider=name, error=str(outcome))
                discrepancies.append(f"{label}: verification failed")
                continue
            agreed = bool(outcome.get("verified" if name == "gemini" else "validated"))
            votes[name] = agreed
            if not agreed and outcome.get("notes"):
                discrepancies.append(f"{label}: {outcome['notes']}")
            corrections = outcome.get("corrections")
            if isinstance(corrections, dict) and corrections:
                discrepancies.append(f"Corrections suggested: {to_json_block(corrections)}")
        return votes, discrepancies

    async def research_book(self, book: Book) -> BookResearchResult:
        verified: dict[str, Any] = {}
        unverified: dict[str, Any] = {}
        sources: list[str] = []
        discrepancies: list[str] = []
        votes = {"anthropic": False, "gemini": False, "openai": False}
        status = VerificationStatus.NEEDS_REVIEW

        record = await self._lookup_catalog(book)
        if record:
            sources.append(self._catalog.get_provider_name())
            verified.update(catalog_fields(record))

        deep = self._scraper is not None and self._scraper.is_available() and self._provider_ready("anthropic")
        if deep:
            content = await self._scrape(book)
            if content:
                sources.append("amazon.com")
                extracted = await self._extract(book, content)
                if extracted:
                    votes, discrepancies = await self._cross_check(book, extracted)
                    agreement = agreement_status(votes)
                    if agreement is AgreementStatus.NEEDS_REVIEW:
                        unverified = extracted
                    else:
                        verified = merge_extracted(book, verified, extracted)
                    status = VerificationStatus(agreement.value)

        return BookResearchResult(
            book_id=book.id,
            title=book.title,
            verified_data=verified,
            unverified_data=unverified,
            verification_status=final_status(verified, discrepancies, status),
            model_agreement=votes,
            sources=sources,
            discrepancies=discrepancies,
        )

    @action("research")
    async def _research(self, payload: dict[str, Any], ctx: RunContext) -> ActionResult:
        book_ids = param(payload, "book_ids", "bookIds")
        if isinstance(book_ids, list):
            books = await self._books.get_books([str(b) for b in book_ids])
        else:
            batch_size = int(param(payload, "batch_size", "batchSize", default=5))
            books = await self._books.list_books_missing_metadata(limit=batch_size)

        if not books:
            return ActionResult({"message": "No books to research", "results": []}, stats={"researched": 0})

        results: list[BookResearchResult] = []
        for index, book in enumerate(books):
            if index and self._delay > 0:
                await asyncio.sleep(self._delay)
            self._logger.info("researching_book", book_id=book.id, title=book.title)
            results.append(await self.research_book(book))
            await ctx.heartbeat()

        counts = {
            status.value: sum(1 for r in results if r.verification_status is status)
            for status in VerificationStatus
        }
        return ActionResult(
            {
                "message": "Research complete - review results before applying updates",
                "total_researched": len(results),
                **counts,
                "results": [r.model_dump(mode="json") for r in results],
            },
            stats={"researched": len(results), **counts},
        )
