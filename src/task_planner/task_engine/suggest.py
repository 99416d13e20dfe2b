"""Non-binding link suggestions ranked by relevance."""

from __future__ import annotations

from typing import Sequence

from .model import Task
from .policy import DEFAULT_POLICY_CONFIG, PolicyConfig, can_link

# Kept as-is for compatibility with existing boards.
DOMAIN_WEIGHT = 12
EPIC_WEIGHT = 10
KIND_WEIGHT = 5

DEFAULT_SUGGESTION_LIMIT = 8


def relevance_score(source: Task, candidate: Task) -> int:
    """Score how related *candidate* is to *source*.

    Domain, epic and kind matches are weighted; each distinct shared
    etiquette adds one point.
    """
    score = 0
    if source.domain and candidate.domain and source.domain == candidate.domain:
        score += DOMAIN_WEIGHT
    if source.epic_id and source.epic_id == candidate.epic_id:
        score += EPIC_WEIGHT
    if source.kind and candidate.kind and source.kind == candidate.kind:
        score += KIND_WEIGHT
    shared = set(source.etiquettes) & set(candidate.etiquettes)
    return score + len(shared)


def suggest_candidates(
    source: Task,
    tasks: Sequence[Task],
    limit: int = DEFAULT_SUGGESTION_LIMIT,
    config: PolicyConfig = DEFAULT_POLICY_CONFIG,
) -> list[Task]:
    """Return up to *limit* tasks *source* could block, best match first.

    Archived tasks and *source* itself are never proposed, and every
    suggestion passes :func:`can_link` with *source* as the blocker.  Equal
    scores keep their input order.  Cycles are not checked here: linking a
    suggestion still goes through full validation.
    """
    if limit <= 0:
        return []
    scored = [
        (relevance_score(source, t), t)
        for t in tasks
        if t.id != source.id and not t.archived
    ]
    eligible = [(score, t) for score, t in scored if can_link(source, t, config).ok]
    eligible.sort(key=lambda pair: pair[0], reverse=True)
    return [t for _, t in eligible[:limit]]
