"""Core domain objects used throughout the system."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import PurePosixPath

from context_engine.config.constants import FILE_SOURCE_TYPE, IMAGE_EXTENSIONS


class DeliveryMode(str, Enum):
    FILE_REFERENCE = "fileRef"
    INLINE_SNIPPET = "inlineSnippet"
    STRUCTURED_SUMMARY = "structuredSummary"

    @classmethod
    def _missing_(cls, value):
        aliases = {
            "file_ref": cls.FILE_REFERENCE,
            "inline_snippet": cls.INLINE_SNIPPET,
            "structured_summary": cls.STRUCTURED_SUMMARY,
        }
        if isinstance(value, str):
            return aliases.get(value)
        return None

    @classmethod
    def default_for(cls, source_type: str) -> DeliveryMode:
        if source_type == FILE_SOURCE_TYPE:
            return cls.FILE_REFERENCE
        return cls.STRUCTURED_SUMMARY

    @property
    def label(self) -> str:
        return {
            DeliveryMode.FILE_REFERENCE: "Attach File",
            DeliveryMode.INLINE_SNIPPET: "Inline Snippet",
            DeliveryMode.STRUCTURED_SUMMARY: "Structured Summary",
        }[self]


class PipelinePhase(str, Enum):
    IDLE = "idle"
    DEBOUNCING = "debouncing"
    RETRIEVING = "retrieving"
    PRELIMINARY_READY = "preliminary_ready"
    GATING = "gating"
    FINAL_READY = "final_ready"


def has_image_extension(value: str) -> bool:
    return PurePosixPath(value.strip().lower()).suffix in IMAGE_EXTENSIONS


@dataclass(frozen=True)
class Suggestion:
    id: str
    source_type: str
    title: str
    snippet: str
    source_id: str
    source_path_or_handle: str
    relevance_score: float
    risk: str = "low"
    reasons: tuple[str, ...] = ()
    graph_score: float = 0.0
    timestamp: datetime | None = None

    def __post_init__(self) -> None:
        if not self.id:
            raise ValueError("Suggestion id must not be empty")

    @property
    def is_file(self) -> bool:
        return self.source_type == FILE_SOURCE_TYPE

    @property
    def is_searchable(self) -> bool:
        """Image files are never useful as attachable context."""
        if not self.is_file:
            return True
        return not (
            has_image_extension(self.source_path_or_handle)
            or has_image_extension(self.title)
        )

    @property
    def resource_name(self) -> str:
        name = PurePosixPath(self.source_path_or_handle.strip()).name
        return name or self.title


@dataclass(frozen=True)
class RetrievalProfile:
    name: str
    limit: int
    typing_mode: bool
    cold_partition_fallback: bool
    timeout_s: float
    is_primary: bool = True


@dataclass(frozen=True)
class NormalizedQuery:
    draft: str
    keywords: tuple[str, ...]
    retrieval_query: str

    @property
    def keyword_set(self) -> frozenset[str]:
        return frozenset(self.keywords)


@dataclass
class RetrievalBatch:
    suggestions: list[Suggestion]
    base_ids: set[str]
    calls: list[dict] = field(default_factory=list)
    error_message: str | None = None


@dataclass(frozen=True)
class RelevanceVerdict:
    id: str
    is_relevant: bool
    confidence: float
    reason: str = ""


@dataclass
class GateOutcome:
    candidates: list[Suggestion]
    applied: bool
    accepted_ids: list[str] = field(default_factory=list)
    fallback_ids: list[str] = field(default_factory=list)
    reason: str = ""


@dataclass(frozen=True)
class ContextPack:
    id: str
    attachment_paths: tuple[str, ...]
    inline_prompt_blocks: tuple[str, ...]
    query: str = ""
    created_at: datetime | None = None


@dataclass(frozen=True)
class ContextPackRequest:
    query: str
    selected_suggestion_ids: list[str]
    mode_overrides: dict[str, str]


@dataclass(frozen=True)
class Submission:
    context_pack: ContextPack | None
    attachment_paths: list[str]
    inline_prompt_blocks: list[str]


@dataclass
class PipelineState:
    latest_draft: str = ""
    active_request_id: int = 0
    suggestions: list[Suggestion] = field(default_factory=list)
    attached_suggestions: list[Suggestion] = field(default_factory=list)
    is_loading: bool = False
    last_error: str | None = None
    phase: PipelinePhase = PipelinePhase.IDLE
