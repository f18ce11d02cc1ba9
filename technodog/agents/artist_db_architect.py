"""Artist database architecture auditor.

Gathers row counts from the two artist tables (``dj_artists`` for RAG
search, ``canonical_artists`` for curated display) and their link table,
derives coverage issues, then asks several models whether the tables
should be consolidated, kept separate or joined in a hybrid layout.  The
opinions are merged with the consensus policy and stored as one insight.

It also resolves pending merge candidates whose reported confidence is high
enough to approve without human review.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from technodog.agents.base import ActionResult, BaseAgent, RunContext, action
from technodog.interfaces.agent_store import IAgentStore
from technodog.interfaces.content_store import IArtistStore
from technodog.models.agent import Insight
from technodog.models.consensus import Completion, ConsensusResult, ProviderOpinion
from technodog.models.content import CandidateStatus, SourceMapping
from technodog.services.orchestrator import ModelOrchestrator
from technodog.services.prompt_builder import PromptTemplate, bullet_list, to_json_block
from technodog.utils.confidence import clamp_confidence, confidence_to_level
from technodog.utils.errors import ConcurrencyConflictError, InvalidRequestError

RECOMMENDATIONS = ("consolidate", "keep_separate", "hybrid")

SYSTEM_PROMPT = "You are a database architecture expert. Respond only with valid JSON."

ARCHITECTURE_PROMPT = PromptTemplate(
    """You are a senior database architect specializing in music knowledge bases and RAG systems.

Analyze the following database statistics for a techno artist knowledge platform that has TWO artist tables:

1. **dj_artists** (RAG/Vector Store):
   - Purpose: Unverified raw knowledge base for semantic search
   - Contains embeddings for vector similarity search
   - Data source: Web scraping, AI extraction
   - Schema: artist_name, nationality, subgenres[], labels[], known_for, real_name, years_active, rank, embedding

2. **canonical_artists** (Curated Display):
   - Purpose: Verified, curated data for frontend display
   - Human-reviewed and cleaned
   - Schema: canonical_name, slug, city, country, region, primary_genre, rank, real_name, active_years, photo_url, photo_verified

Linking: artist_source_map table maps records between systems

DATABASE STATISTICS:
{stats}

CURRENT ISSUES OBSERVED:
{issues}

QUESTION: Should we consolidate into a single table or maintain the separation?

Analyze considering:
1. Data quality and verification workflows
2. RAG/embedding search performance
3. Frontend display requirements
4. Maintenance overhead
5. Data integrity risks
6. Migration complexity

Return ONLY valid JSON:
{
  "recommendation": "consolidate" | "keep_separate" | "hybrid",
  "confidence": 0.0-1.0,
  "reasoning": "Detailed explanation (3-5 sentences)",
  "pros": ["List of advantages of your recommendation"],
  "cons": ["List of disadvantages/risks"],
  "migration_effort": "low" | "medium" | "high",
  "data_integrity_risk": "low" | "medium" | "high"
}"""
)

_RECOMMENDATION_ITEMS: dict[str, list[str]] = {
    "consolidate": [
        "Create migration plan to merge dj_artists into canonical_artists",
        "Add embedding column to canonical_artists table",
        "Update all RAG queries to use canonical_artists",
        "Archive dj_artists table after validation",
    ],
    "keep_separate": [
        "Improve artist_source_map linking to ensure full coverage",
        "Create unified_artist_view if not exists for admin dashboards",
        "Document the separation clearly in system docs",
        "Set up automated sync jobs between tables",
    ],
    "hybrid": [
        "Keep both tables but add foreign key from dj_artists to canonical_artists",
        "Move embeddings to separate artist_embeddings table",
        "Create materialized view for combined queries",
        "Implement real-time sync triggers",
    ],
}

_ISSUE_ITEMS = (
    ("not linked", "Run artist matching algorithm to link orphaned records"),
    ("missing embeddings", "Batch generate missing embeddings"),
    ("missing photos", "Run photo pipeline for artists without photos"),
)

_LIST_FIELDS = ("pros", "cons")
_SCALAR_FIELDS = ("migration_effort", "data_integrity_risk")


def build_stats(counts: dict[str, int]) -> dict[str, Any]:
    """Shape raw table counts into the statistics block shown to the models."""
    stats: dict[str, Any] = {
        "dj_artists_count": counts.get("dj_artists", 0),
        "dj_artists_with_embeddings": counts.get("dj_artists_with_embeddings", 0),
        "canonical_artists_count": counts.get("canonical_artists", 0),
        "canonical_with_photos": counts.get("canonical_with_photos", 0),
        "source_mappings": counts.get("source_mappings", 0),
        "rag_linked_to_canonical": counts.get("rag_linked_to_canonical", 0),
        "artist_claims": counts.get("artist_claims", 0),
        "artist_documents": counts.get("artist_documents", 0),
        "artist_profiles": counts.get("artist_profiles", 0),
    }
    if stats["dj_artists_count"] > 0:
        pct = stats["rag_linked_to_canonical"] / stats["dj_artists_count"] * 100
        stats["rag_link_percentage"] = f"{pct:.1f}%"
    else:
        stats["rag_link_percentage"] = "0%"
    return stats


def identify_issues(stats: dict[str, Any], pending_candidates: int) -> list[str]:
    """Coverage and linking problems worth flagging to the models."""
    issues: list[str] = []
    dj = stats["dj_artists_count"]
    canonical = stats["canonical_artists_count"]
    linked = stats["rag_linked_to_canonical"]

    if dj > linked + 50:
        issues.append(f"{dj - linked} dj_artists records not linked to canonical_artists")

    if pending_candidates > 0:
        issues.append(f"{pending_candidates} potential duplicate artist pairs pending review")

    if dj > 0 and stats["dj_artists_with_embeddings"] < dj * 0.8:
        missing = dj - stats["dj_artists_with_embeddings"]
        issues.append(f"{missing} dj_artists records missing embeddings ({missing / dj * 100:.0f}%)")

    if canonical > 0 and stats["canonical_with_photos"] < canonical * 0.5:
        issues.append(f"{canonical - stats['canonical_with_photos']} canonical_artists missing photos")

    if stats["artist_profiles"] < canonical * 0.3:
        issues.append(
            f"Only {stats['artist_profiles']} artist_profiles for {canonical} canonical artists (low coverage)"
        )

    if stats["source_mappings"] < dj * 0.5 and stats["source_mappings"] < canonical * 0.5:
        issues.append("artist_source_map appears incomplete - may need sync")

    return issues


def generate_action_items(recommendation: str, issues: list[str]) -> list[str]:
    items = list(_RECOMMENDATION_ITEMS.get(recommendation, []))
    for issue in issues:
        for marker, item in _ISSUE_ITEMS:
            if marker in issue:
                items.append(item)
    return items


def to_opinion(completion: Completion, parsed: Any) -> ProviderOpinion:
    """Convert one model's architecture JSON into an opinion."""
    if not isinstance(parsed, dict):
        raise ValueError("expected a JSON object")
    recommendation = parsed["recommendation"]
    if recommendation not in RECOMMENDATIONS:
        raise ValueError(f"unknown recommendation: {recommendation!r}")
    return ProviderOpinion(
        provider=completion.provider,
        model=completion.model,
        recommendation=recommendation,
        confidence=clamp_confidence(parsed.get("confidence")),
        reasoning=str(parsed.get("reasoning") or ""),
        lists={name: [str(x) for x in parsed.get(name) or []] for name in _LIST_FIELDS},
        fields={name: parsed.get(name) for name in _SCALAR_FIELDS if parsed.get(name) is not None},
    )


def _consensus_reasoning(result: ConsensusResult) -> str:
    if result.models_agree:
        names = " and ".join(o.provider for o in result.opinions)
        parts = [
            f"{names} agree: {result.recommendation.upper()}.",
            f"Average confidence: {result.mean_confidence * 100:.0f}%.",
        ]
        parts.extend(f"{o.provider} reasoning: {o.reasoning}" for o in result.opinions)
        return " ".join(parts)

    winner = next(o for o in result.opinions if o.provider == result.winner)
    parts = ["Models disagree."]
    parts.extend(
        f"{o.provider} recommends {o.recommendation} ({o.confidence * 100:.0f}% confidence)."
        for o in result.opinions
    )
    parts.append(f"Going with {result.recommendation} ({result.votes[result.recommendation]} vote(s), "
                 f"highest confidence from {winner.provider}).")
    parts.append(f"Reasoning: {winner.reasoning}")
    return " ".join(parts)


def _scalar_field(result: ConsensusResult, name: str) -> Any:
    if not result.models_agree:
        return "needs_review"
    if name in result.agreed_fields:
        return result.agreed_fields[name]
    return result.opinions[0].fields.get(name, "needs_review")


def _threshold(raw: Any, default: float) -> float:
    """Auto-approve threshold from the request, or ``default`` when absent."""
    if raw is None:
        return default
    if isinstance(raw, bool):
        raise InvalidRequestError("threshold must be a number between 0 and 1")
    try:
        value = float(raw)
    except (TypeError, ValueError) as exc:
        raise InvalidRequestError("threshold must be a number between 0 and 1") from exc
    if not 0.0 <= value <= 1.0:
        raise InvalidRequestError("threshold must be a number between 0 and 1")
    return value


class ArtistDbArchitectAgent(BaseAgent):
    name = "artist-db-architect"
    default_action = "analyze"
    description = "Multi-model audit of the artist table layout"

    def __init__(
        self,
        store: IAgentStore,
        orchestrator: ModelOrchestrator,
        artists: IArtistStore,
        config: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(store, orchestrator, config)
        self._artists = artists
        self._providers: list[str] = list(self._config.get("providers") or ["openai", "anthropic"])
        self._auto_approve = float(self._config.get("auto_approve_confidence", 0.9))

    async def _gather(self) -> tuple[dict[str, Any], list[str]]:
        stats = build_stats(await self._artists.catalog_counts())
        pending = await self._artists.list_merge_candidates(CandidateStatus.PENDING, limit=100)
        return stats, identify_issues(stats, len(pending))

    @action("compare_dbs", tracked=False)
    async def _compare_dbs(self, payload: dict[str, Any], ctx: RunContext) -> dict[str, Any]:
        stats, issues = await self._gather()
        return {
            "stats": stats,
            "issues": issues,
            "tables": {
                "dj_artists": {
                    "purpose": "RAG/Vector knowledge base",
                    "record_count": stats["dj_artists_count"],
                    "with_embeddings": stats["dj_artists_with_embeddings"],
                },
                "canonical_artists": {
                    "purpose": "Curated display data",
                    "record_count": stats["canonical_artists_count"],
                    "with_photos": stats["canonical_with_photos"],
                },
                "linking": {
                    "source_mappings": stats["source_mappings"],
                    "link_percentage": stats["rag_link_percentage"],
                },
            },
        }

    @action("analyze", aliases=("recommend",))
    async def _analyze(self, payload: dict[str, Any], ctx: RunContext) -> ActionResult:
        stats, issues = await self._gather()
        prompt = ARCHITECTURE_PROMPT.render(
            stats=to_json_block(stats),
            issues=bullet_list(issues, empty="No critical issues detected"),
        )

        result, _ = await self.orchestrator.consensus(
            self._providers,
            SYSTEM_PROMPT,
            prompt,
            to_opinion,
            list_fields=_LIST_FIELDS,
            temperature=0.3,
            max_tokens=2000,
        )

        consensus = {
            "models_agree": result.models_agree,
            "recommendation": result.recommendation,
            "confidence": result.confidence,
            "confidence_level": confidence_to_level(result.confidence).value,
            "average_confidence": result.mean_confidence,
            "reasoning": _consensus_reasoning(result),
            "combined_pros": result.merged_lists.get("pros", []),
            "combined_cons": result.merged_lists.get("cons", []),
            "migration_effort": _scalar_field(result, "migration_effort"),
            "data_integrity_risk": _scalar_field(result, "data_integrity_risk"),
            "votes": result.votes,
            "policy": result.policy,
        }
        action_items = generate_action_items(result.recommendation, issues)

        response: dict[str, Any] = {
            "timestamp": datetime.now(tz=timezone.utc).isoformat(),  # noqa: UP017
            "database_stats": stats,
            "current_issues": issues,
            **_analyses(result),
            "consensus": consensus,
            "action_items": action_items,
            "failures": [f.model_dump() for f in result.failures],
        }

        insight = Insight(
            agent=self.name,
            insight_type="architecture_recommendation",
            model_used="consensus",
            model_name=", ".join(o.model for o in result.opinions),
            title=f"Artist DB architecture: {result.recommendation}",
            summary=consensus["reasoning"][:500],
            detailed_analysis=consensus["reasoning"],
            result_json={"consensus": consensus, "action_items": action_items},
            data_snapshot={"stats": stats, "issues": issues},
            confidence_score=result.confidence,
            consensus_models=result.providers,
        )
        return ActionResult(
            response,
            stats={"issues": len(issues), "models": len(result.opinions), "failed": len(result.failures)},
            insights=[insight],
        )

    @action("review_candidates")
    async def _review_candidates(self, payload: dict[str, Any], ctx: RunContext) -> ActionResult:
        threshold = _threshold(payload.get("threshold"), self._auto_approve)
        pending = await self._artists.list_merge_candidates(CandidateStatus.PENDING, limit=100)

        approved: list[str] = []
        conflicts: list[str] = []
        for candidate in pending:
            if candidate.confidence < threshold:
                continue
            mapping = SourceMapping(
                artist_id=candidate.canonical_artist_id,
                source_system="rag",
                source_id=candidate.rag_artist_id,
            )
            try:
                await self._artists.resolve_merge_candidate(
                    candidate.id,
                    CandidateStatus.APPROVED,
                    expected_version=candidate.version,
                    resolved_by=self.name,
                    mapping=mapping,
                )
            except ConcurrencyConflictError as exc:
                self._logger.warning("candidate_conflict", candidate_id=candidate.id, error=str(exc))
                conflicts.append(candidate.id)
                continue
            approved.append(candidate.id)

        awaiting = len(pending) - len(approved) - len(conflicts)
        return ActionResult(
            {
                "threshold": threshold,
                "approved": approved,
                "conflicts": conflicts,
                "pending_review": awaiting,
            },
            stats={"approved": len(approved), "conflicts": len(conflicts), "pending_review": awaiting},
        )


def _analyses(result: ConsensusResult) -> dict[str, Any]:
    """Per-provider ``<provider>_analysis`` entries for the response."""
    analyses: dict[str, Any] = {}
    for opinion in result.opinions:
        analyses[f"{opinion.provider}_analysis"] = {
            "model": opinion.model,
            "recommendation": opinion.recommendation,
            "confidence": opinion.confidence,
            "reasoning": opinion.reasoning,
            **opinion.lists,
            **opinion.fields,
        }
    return analyses
