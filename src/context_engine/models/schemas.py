"""Pydantic models for wire serialization (retrieval daemon, LLM, HTTP surface)."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from context_engine.models.domain import ContextPack, DeliveryMode, Suggestion


class WireModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, extra="ignore"
    )


class SuggestionPayload(WireModel):
    id: str = Field(min_length=1)
    source_type: str
    title: str = ""
    snippet: str = ""
    source_id: str = ""
    source_path_or_handle: str = ""
    relevance_score: float = 0.0
    graph_score: float = 0.0
    risk: str = "low"
    reasons: list[str] = Field(default_factory=list)
    timestamp: datetime | None = None

    def to_domain(self) -> Suggestion:
        return Suggestion(
            id=self.id,
            source_type=self.source_type,
            title=self.title,
            snippet=self.snippet,
            source_id=self.source_id,
            source_path_or_handle=self.source_path_or_handle,
            relevance_score=self.relevance_score,
            risk=self.risk,
            reasons=tuple(self.reasons),
            graph_score=self.graph_score,
            timestamp=self.timestamp,
        )

    @classmethod
    def from_domain(cls, suggestion: Suggestion) -> SuggestionPayload:
        return cls(
            id=suggestion.id,
            source_type=suggestion.source_type,
            title=suggestion.title,
            snippet=suggestion.snippet,
            source_id=suggestion.source_id,
            source_path_or_handle=suggestion.source_path_or_handle,
            relevance_score=suggestion.relevance_score,
            graph_score=suggestion.graph_score,
            risk=suggestion.risk,
            reasons=list(suggestion.reasons),
            timestamp=suggestion.timestamp,
        )


class SuggestRequest(WireModel):
    query: str
    source_filters: list[str] | None = None
    limit: int = 12
    typing_mode: bool = True
    include_cold_partition_fallback: bool = False


class SuggestResponse(WireModel):
    suggestions: list[SuggestionPayload] = Field(default_factory=list)
    partial: bool = False
    total_candidate_count: int | None = None
    latency_ms: int | None = None


class ContextPackRequestPayload(WireModel):
    query: str
    selected_suggestion_ids: list[str]
    mode_overrides: dict[str, DeliveryMode] = Field(default_factory=dict)


class ContextPackPayload(WireModel):
    id: str
    attachment_paths: list[str] = Field(default_factory=list)
    inline_prompt_blocks: list[str] = Field(default_factory=list)
    query: str = ""
    created_at: datetime | None = None
    items: list[dict] = Field(default_factory=list)

    def to_domain(self) -> ContextPack:
        return ContextPack(
            id=self.id,
            attachment_paths=tuple(self.attachment_paths),
            inline_prompt_blocks=tuple(self.inline_prompt_blocks),
            query=self.query,
            created_at=self.created_at,
        )


class DaemonHealth(WireModel):
    status: str = "unknown"
    version: str | None = None


# LLM relevance verdicts


class RelevanceCandidate(WireModel):
    id: str
    title: str
    resource_name: str
    snippet: str


class RelevanceVerdictPayload(WireModel):
    id: str
    is_relevant: bool = False
    confidence: float | None = None
    reason: str | None = None


class RelevanceResponse(WireModel):
    verdicts: list[RelevanceVerdictPayload] = Field(default_factory=list)


# HTTP session surface


class DraftUpdate(BaseModel):
    text: str


class AttachRequest(BaseModel):
    suggestion_id: str


class ModeUpdate(BaseModel):
    mode: DeliveryMode


class SubmitRequest(BaseModel):
    query: str


class SessionCreated(BaseModel):
    session_id: str


class SessionSnapshot(BaseModel):
    session_id: str
    request_id: int
    phase: str
    is_loading: bool
    last_error: str | None = None
    suggestions: list[SuggestionPayload]
    attached_suggestions: list[SuggestionPayload]
    modes: dict[str, DeliveryMode]


class SubmitResponse(BaseModel):
    context_pack_id: str | None = None
    attachment_paths: list[str]
    inline_prompt_blocks: list[str]


class HealthResponse(BaseModel):
    status: str
    active_sessions: int
    llm_configured: bool
    daemon_reachable: bool
