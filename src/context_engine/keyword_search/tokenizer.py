"""Keyword extraction shared by the normalizer and the relevance gate."""

from __future__ import annotations

import re

from context_engine.config.constants import STOPWORDS

_NON_KEYWORD_CHARS = re.compile(r"[^\w\s-]")
_KEYWORD = re.compile(r"^[\w-]+$")

MIN_KEYWORD_LENGTH = 3


def tokenize(text: str) -> list[str]:
    """Lowercase, strip punctuation (keeping hyphen/underscore), split on whitespace."""
    text = _NON_KEYWORD_CHARS.sub(" ", text.lower())
    return [t.strip("-_") for t in text.split() if t.strip("-_")]


def extract_keywords(text: str) -> list[str]:
    """Unique keywords in order of first appearance: length >= 3, no stop words."""
    seen: set[str] = set()
    keywords: list[str] = []
    for token in tokenize(text):
        if len(token) < MIN_KEYWORD_LENGTH or token in STOPWORDS:
            continue
        if not _KEYWORD.match(token) or token in seen:
            continue
        seen.add(token)
        keywords.append(token)
    return keywords


def keyword_overlap(draft_keywords: frozenset[str] | set[str], text: str) -> float:
    """Share of the draft's keywords that also appear in ``text``."""
    if not draft_keywords:
        return 0.0
    shared = draft_keywords.intersection(extract_keywords(text))
    return len(shared) / len(draft_keywords)
