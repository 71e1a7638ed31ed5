"""Shared test fixtures."""

from __future__ import annotations

from collections.abc import Callable

import pytest

from context_engine.config.settings import Settings
from context_engine.models.domain import Suggestion
from context_engine.models.schemas import (
    ContextPackPayload,
    ContextPackRequestPayload,
    SuggestionPayload,
    SuggestRequest,
    SuggestResponse,
)
from context_engine.config.constants import STOPWORDS
from context_engine.keyword_search.tokenizer import tokenize
from context_engine.protocols.llm import ChatMessage, ChatResponse
from context_engine.query.pos_tagger import PartOfSpeech


def make_suggestion(
    id: str,
    score: float,
    title: str | None = None,
    source_type: str = "file",
    path: str | None = None,
    snippet: str = "",
) -> Suggestion:
    return Suggestion(
        id=id,
        source_type=source_type,
        title=title or f"{id}.txt",
        snippet=snippet,
        source_id=f"src-{id}",
        source_path_or_handle=path if path is not None else f"/Users/test/Documents/{id}.txt",
        relevance_score=score,
    )


class FakeBackend:
    """In-memory retrieval daemon. ``handler`` maps a request to suggestions or raises."""

    def __init__(
        self,
        handler: Callable[[SuggestRequest], list[Suggestion]] | None = None,
        pack: ContextPackPayload | None = None,
        pack_error: Exception | None = None,
    ) -> None:
        self.handler = handler or (lambda request: [])
        self.pack = pack
        self.pack_error = pack_error
        self.calls: list[tuple[SuggestRequest, float]] = []
        self.pack_requests: list[ContextPackRequestPayload] = []

    async def suggest(self, request: SuggestRequest, timeout: float) -> SuggestResponse:
        self.calls.append((request, timeout))
        suggestions = self.handler(request)
        return SuggestResponse(
            suggestions=[SuggestionPayload.from_domain(s) for s in suggestions]
        )

    async def create_context_pack(
        self, request: ContextPackRequestPayload
    ) -> ContextPackPayload:
        self.pack_requests.append(request)
        if self.pack_error is not None:
            raise self.pack_error
        return self.pack or ContextPackPayload(id="pack-1")


class FakeTagger:
    """Tags listed verbs and adjectives, stop words as other, everything else as noun."""

    def __init__(self, verbs=(), adjectives=()) -> None:
        self.verbs = set(verbs)
        self.adjectives = set(adjectives)
        self.calls: list[str] = []

    def __call__(self, text: str) -> list[tuple[str, PartOfSpeech]]:
        self.calls.append(text)
        tagged = []
        for word in tokenize(text):
            if word in STOPWORDS or len(word) < 2:
                pos = PartOfSpeech.OTHER
            elif word in self.verbs:
                pos = PartOfSpeech.VERB
            elif word in self.adjectives:
                pos = PartOfSpeech.ADJECTIVE
            else:
                pos = PartOfSpeech.NOUN
            tagged.append((word, pos))
        return tagged


class FakeChatClient:
    """Returns a canned reply (or raises) and records the messages it was sent."""

    def __init__(self, reply: str = "", error: Exception | None = None) -> None:
        self.reply = reply
        self.error = error
        self.calls: list[list[ChatMessage]] = []

    async def chat(self, messages: list[ChatMessage]) -> ChatResponse:
        self.calls.append(messages)
        if self.error is not None:
            raise self.error
        return ChatResponse(text=self.reply)


@pytest.fixture
def settings():
    """Test settings: no sleeping, no LLM provider."""
    return Settings(
        llm_provider="none",
        daemon_base_url="http://retrieval.test",
        daemon_auth_token="test-token",
        debounce_s=0.0,
        gate_stabilization_delay_s=0.0,
        gate_min_idle_s=0.0,
        retrieval_retry_delay_s=0.0,
        log_json=False,
    )


@pytest.fixture
def suggestion_factory():
    return make_suggestion


@pytest.fixture
def fake_backend():
    return FakeBackend()
