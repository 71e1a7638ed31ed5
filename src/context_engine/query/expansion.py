"""Alternate phrasings of long, keyword-rich drafts to recover retrieval recall."""

from __future__ import annotations

from context_engine.config.settings import Settings
from context_engine.models.domain import NormalizedQuery
from context_engine.observability.logger import get_logger
from context_engine.exceptions import ConfigurationError
from context_engine.query.pos_tagger import PartOfSpeech, SpacyTagger, Tagger

logger = get_logger("query_expansion")


def _dedupe(terms: list[str]) -> list[str]:
    seen: set[str] = set()
    out: list[str] = []
    for term in terms:
        if term not in seen:
            seen.add(term)
            out.append(term)
    return out


class QueryExpander:
    def __init__(self, settings: Settings, tagger: Tagger | None = None) -> None:
        self._tagger = tagger or SpacyTagger(settings.spacy_model)
        self._min_chars = settings.expansion_min_query_chars
        self._min_keywords = settings.expansion_min_keywords
        self._max_count = settings.expansion_max_count

    def should_expand(self, query: NormalizedQuery) -> bool:
        return (
            len(query.retrieval_query) >= self._min_chars
            and len(query.keywords) >= self._min_keywords
        )

    def expand(self, query: NormalizedQuery) -> list[str]:
        if not self.should_expand(query) or self._max_count <= 0:
            return []

        try:
            tagged = self._tagger(query.retrieval_query)
        except ConfigurationError as e:
            logger.warning("pos_tagging_unavailable", error=str(e))
            tagged = []

        nouns = [t for t, pos in tagged if pos is PartOfSpeech.NOUN]
        verbs = [t for t, pos in tagged if pos is PartOfSpeech.VERB]
        adjectives = [t for t, pos in tagged if pos is PartOfSpeech.ADJECTIVE]
        nouns_and_verbs = [
            t for t, pos in tagged if pos in (PartOfSpeech.NOUN, PartOfSpeech.VERB)
        ]
        keywords = list(query.keywords)

        candidates = [
            nouns,
            nouns_and_verbs,
            nouns + adjectives + keywords,
            keywords[:3],
        ]

        original = query.retrieval_query.lower()
        expansions: list[str] = []
        for terms in candidates:
            phrase = " ".join(_dedupe(terms))
            if not phrase or phrase.lower() == original:
                continue
            if phrase.lower() in (e.lower() for e in expansions):
                continue
            expansions.append(phrase)

        expansions = expansions[: self._max_count]
        logger.debug("query_expanded", count=len(expansions), verbs=len(verbs))
        return expansions
