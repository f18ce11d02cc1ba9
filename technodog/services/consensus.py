"""Reduce several provider opinions to one decision.

Policy: majority of successful responses, confidence as tiebreak.

1. Failed providers never vote; they are carried through in ``failures``.
2. When every opinion names the same recommendation, that is the result
   and its confidence is the mean of all confidences.
3. Otherwise opinions are grouped by recommendation.  The group with the
   most votes wins.  Groups tied on votes are separated by the highest
   single confidence they contain; a remaining tie goes to the group whose
   first opinion was listed first.  The result confidence is the mean of
   the winning group, so with two disagreeing providers it is simply the
   higher-confidence opinion's own value.
4. List fields (pros, cons, recommendations, ...) are unioned across all
   opinions, order-preserving, duplicates dropped.
5. Scalar ``fields`` survive into ``agreed_fields`` only when every opinion
   reports the same value.
6. No opinions at all raises
   :class:`~technodog.utils.errors.AllProvidersFailedError`.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Iterable

from technodog.models.consensus import ConsensusResult, ProviderFailure, ProviderOpinion
from technodog.utils.confidence import calculate_confidence
from technodog.utils.errors import AllProvidersFailedError
from technodog.utils.logging import get_logger

_logger = get_logger(__name__)


class AgreementStatus(str, Enum):  # noqa: UP042
    VERIFIED = "verified"
    PARTIAL = "partial"
    NEEDS_REVIEW = "needs_review"


def union_preserving_order(lists: Iterable[Iterable[str]]) -> list[str]:
    """Concatenate ``lists`` and drop repeats, keeping first occurrences."""
    seen: set[str] = set()
    merged: list[str] = []
    for items in lists:
        for item in items:
            if item not in seen:
                seen.add(item)
                merged.append(item)
    return merged


def _pick_winner(opinions: list[ProviderOpinion]) -> tuple[str, list[ProviderOpinion]]:
    groups: dict[str, list[ProviderOpinion]] = {}
    for opinion in opinions:
        groups.setdefault(opinion.recommendation, []).append(opinion)

    # dicts keep insertion order, so max() resolves a full tie to the first listed
    recommendation = max(
        groups,
        key=lambda rec: (len(groups[rec]), max(o.confidence for o in groups[rec])),
    )
    return recommendation, groups[recommendation]


def _agreed_fields(opinions: list[ProviderOpinion]) -> dict[str, Any]:
    first, *rest = opinions
    return {
        key: value
        for key, value in first.fields.items()
        if all(key in o.fields and o.fields[key] == value for o in rest)
    }


def merge_opinions(
    opinions: list[ProviderOpinion],
    failures: list[tuple[str, BaseException]] | None = None,
    list_fields: Iterable[str] | None = None,
) -> ConsensusResult:
    """Merge successful opinions into a :class:`ConsensusResult`.

    Parameters
    ----------
    opinions:
        Parsed opinions from providers that answered.  Order matters for
        the final tiebreak.
    failures:
        ``(provider, exception)`` pairs for providers that did not answer
        or whose answer could not be parsed.
    list_fields:
        Names of the list fields to union.  Defaults to every key seen in
        any opinion's ``lists``.

    Raises
    ------
    AllProvidersFailedError
        ``opinions`` is empty.
    """
    failures = failures or []
    if not opinions:
        raise AllProvidersFailedError(failures)

    recommendations = {o.recommendation for o in opinions}
    models_agree = len(recommendations) == 1

    if models_agree:
        recommendation = opinions[0].recommendation
        winners = opinions
    else:
        recommendation, winners = _pick_winner(opinions)

    winner = max(winners, key=lambda o: o.confidence)

    if list_fields is None:
        list_fields = union_preserving_order(o.lists.keys() for o in opinions)
    merged_lists = {
        name: union_preserving_order(o.lists.get(name, []) for o in opinions)
        for name in list_fields
    }

    votes: dict[str, int] = {}
    for opinion in opinions:
        votes[opinion.recommendation] = votes.get(opinion.recommendation, 0) + 1

    result = ConsensusResult(
        recommendation=recommendation,
        confidence=calculate_confidence([o.confidence for o in winners]),
        models_agree=models_agree,
        winner=winner.provider,
        mean_confidence=calculate_confidence([o.confidence for o in opinions]),
        votes=votes,
        merged_lists=merged_lists,
        agreed_fields=_agreed_fields(opinions),
        opinions=list(opinions),
        failures=[ProviderFailure.from_exception(p, e) for p, e in failures],
    )
    _logger.info(
        "consensus_merged",
        recommendation=result.recommendation,
        confidence=round(result.confidence, 3),
        models_agree=models_agree,
        votes=votes,
        failed=[p for p, _ in failures],
    )
    return result


def agreement_status(votes: dict[str, bool], quorum: int = 2) -> AgreementStatus:
    """Classify per-provider yes/no verification votes.

    ``verified`` when every provider agreed, ``partial`` when at least
    ``quorum`` did, ``needs_review`` otherwise.
    """
    agreeing = sum(1 for v in votes.values() if v)
    if votes and agreeing == len(votes):
        return AgreementStatus.VERIFIED
    if agreeing >= quorum:
        return AgreementStatus.PARTIAL
    return AgreementStatus.NEEDS_REVIEW
