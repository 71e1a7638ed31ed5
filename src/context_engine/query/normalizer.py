"""Draft normalization: cleaned text, keyword set and a bounded retrieval query."""

from __future__ import annotations

import re
import unicodedata

from context_engine.config.settings import Settings
from context_engine.keyword_search.tokenizer import extract_keywords
from context_engine.models.domain import NormalizedQuery


class QueryNormalizer:
    def __init__(self, settings: Settings) -> None:
        self._passthrough_max = settings.query_passthrough_max_chars
        self._max_keywords = settings.query_max_keywords
        self._max_chars = settings.query_max_chars

    def normalize(self, raw_draft: str) -> NormalizedQuery:
        cleaned = self.clean(raw_draft)
        keywords = tuple(extract_keywords(cleaned))
        return NormalizedQuery(
            draft=cleaned,
            keywords=keywords,
            retrieval_query=self._retrieval_query(cleaned, keywords),
        )

    @staticmethod
    def clean(text: str) -> str:
        text = unicodedata.normalize("NFKC", text)
        text = re.sub(r"\s+", " ", text).strip()
        return text

    def _retrieval_query(self, cleaned: str, keywords: tuple[str, ...]) -> str:
        if len(cleaned) < self._passthrough_max:
            return cleaned

        compact = " ".join(keywords[: self._max_keywords]) or cleaned
        if len(compact) > self._max_chars:
            compact = compact[: self._max_chars].rstrip()
        return compact
