"""Protocol for the retrieval daemon."""

from __future__ import annotations

from typing import Protocol

from context_engine.models.schemas import (
    ContextPackPayload,
    ContextPackRequestPayload,
    SuggestRequest,
    SuggestResponse,
)


class RetrievalBackend(Protocol):
    async def suggest(
        self, request: SuggestRequest, timeout: float
    ) -> SuggestResponse: ...

    async def create_context_pack(
        self, request: ContextPackRequestPayload
    ) -> ContextPackPayload: ...
