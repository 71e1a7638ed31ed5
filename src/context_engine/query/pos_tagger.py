"""Coarse part-of-speech tagging for query expansion, backed by spaCy.

Only four tags matter to expansion: noun, verb, adjective, other. spaCy's
universal POS tags are folded onto them; stop words and one-letter pieces
are always "other".
"""

from __future__ import annotations

import threading
from collections.abc import Callable
from enum import Enum

import spacy
from spacy.language import Language

from context_engine.config.constants import STOPWORDS
from context_engine.exceptions import ConfigurationError
from context_engine.keyword_search.tokenizer import tokenize
from context_engine.observability.logger import get_logger

logger = get_logger("pos_tagger")


class PartOfSpeech(str, Enum):
    NOUN = "noun"
    VERB = "verb"
    ADJECTIVE = "adjective"
    OTHER = "other"


TaggedTokens = list[tuple[str, PartOfSpeech]]
Tagger = Callable[[str], TaggedTokens]

_UPOS_MAP = {
    "NOUN": PartOfSpeech.NOUN,
    "PROPN": PartOfSpeech.NOUN,
    "NUM": PartOfSpeech.NOUN,
    "VERB": PartOfSpeech.VERB,
    "ADJ": PartOfSpeech.ADJECTIVE,
}

_MODELS: dict[str, Language] = {}
_MODELS_LOCK = threading.Lock()


def load_model(model_name: str) -> Language:
    """Load a spaCy pipeline once per process. Raises ConfigurationError if missing."""
    with _MODELS_LOCK:
        nlp = _MODELS.get(model_name)
        if nlp is not None:
            return nlp
        try:
            nlp = spacy.load(model_name, exclude=["ner", "parser", "lemmatizer"])
        except OSError as e:
            raise ConfigurationError(
                f"spaCy model {model_name!r} is not installed"
            ) from e
        logger.info("spacy_model_loaded", model=model_name, pipes=nlp.pipe_names)
        _MODELS[model_name] = nlp
        return nlp


def coarse_pos(word: str, upos: str) -> PartOfSpeech:
    if word in STOPWORDS or len(word) < 2:
        return PartOfSpeech.OTHER
    return _UPOS_MAP.get(upos, PartOfSpeech.OTHER)


class SpacyTagger:
    """Tags text with a spaCy pipeline; tokens come back lower-cased, punctuation dropped."""

    def __init__(self, model_name: str = "en_core_web_sm") -> None:
        self.model_name = model_name

    def __call__(self, text: str) -> TaggedTokens:
        nlp = load_model(self.model_name)
        tagged: TaggedTokens = []
        for token in nlp(text):
            for piece in tokenize(token.text):
                tagged.append((piece, coarse_pos(piece, token.pos_)))
        return tagged
