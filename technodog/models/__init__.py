"""Pydantic models shared across agents, stores and the API."""

from technodog.models.agent import AgentRun, AutoFix, Insight, Issue, RunStatus, Severity
from technodog.models.consensus import (
    CONSENSUS_POLICY,
    Completion,
    ConsensusResult,
    ProviderFailure,
    ProviderOpinion,
)
from technodog.models.content import (
    Book,
    BookResearchResult,
    CandidateStatus,
    ChannelVideo,
    MergeCandidate,
    ShareStats,
    SourceMapping,
    VerificationStatus,
    VideoMatch,
)

__all__ = [
    "CONSENSUS_POLICY",
    "AgentRun",
    "AutoFix",
    "Book",
    "BookResearchResult",
    "CandidateStatus",
    "ChannelVideo",
    "Completion",
    "ConsensusResult",
    "Insight",
    "Issue",
    "MergeCandidate",
    "ProviderFailure",
    "ProviderOpinion",
    "RunStatus",
    "Severity",
    "ShareStats",
    "SourceMapping",
    "VerificationStatus",
    "VideoMatch",
]
