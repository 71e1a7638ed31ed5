"""Merge, dedupe and rank candidates from all retrieval profiles.

Pure and synchronous: no I/O, no shared state.
"""

from __future__ import annotations

from dataclasses import replace
from functools import cmp_to_key

from context_engine.config.settings import Settings
from context_engine.models.domain import Suggestion


def deduplicate(suggestions: list[Suggestion]) -> list[Suggestion]:
    """Deduplicate by id, keeping the highest score. First-seen order is kept."""
    seen: dict[str, Suggestion] = {}
    for s in suggestions:
        existing = seen.get(s.id)
        if existing is None or s.relevance_score > existing.relevance_score:
            seen[s.id] = s
    return list(seen.values())


def apply_expansion_penalty(
    suggestions: list[Suggestion], base_ids: set[str], penalty: float
) -> list[Suggestion]:
    out: list[Suggestion] = []
    for s in suggestions:
        if s.id in base_ids:
            out.append(s)
        else:
            out.append(
                replace(s, relevance_score=max(0.0, s.relevance_score - penalty))
            )
    return out


def rank(
    suggestions: list[Suggestion], base_ids: set[str], tie_break_delta: float
) -> list[Suggestion]:
    """Score-descending; near-ties prefer base hits, exact ties sort by title."""

    def compare(a: Suggestion, b: Suggestion) -> int:
        diff = a.relevance_score - b.relevance_score
        a_base = a.id in base_ids
        b_base = b.id in base_ids
        if abs(diff) < tie_break_delta and a_base != b_base:
            return -1 if a_base else 1
        if diff > 0:
            return -1
        if diff < 0:
            return 1
        a_title = a.title.lower()
        b_title = b.title.lower()
        if a_title != b_title:
            return -1 if a_title < b_title else 1
        return (a.id > b.id) - (a.id < b.id)

    return sorted(suggestions, key=cmp_to_key(compare))


class MergeRankEngine:
    def __init__(self, settings: Settings) -> None:
        self._penalty = settings.expansion_only_penalty
        self._delta = settings.base_tie_break_delta
        self._max_candidates = settings.max_candidates

    def merge(self, suggestions: list[Suggestion], base_ids: set[str]) -> list[Suggestion]:
        searchable = [s for s in suggestions if s.is_searchable]
        unique = deduplicate(searchable)
        penalized = apply_expansion_penalty(unique, base_ids, self._penalty)
        return self.rank(penalized, base_ids)[: self._max_candidates]

    def rank(self, suggestions: list[Suggestion], base_ids: set[str]) -> list[Suggestion]:
        return rank(suggestions, base_ids, self._delta)
