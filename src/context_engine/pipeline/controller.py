"""Per-session pipeline controller: debounce, staleness and cancellation.

Every draft edit cancels the in-flight run and bumps ``active_request_id``.
A stage may only touch visible state when its captured request id (and the
draft it was started for) are still current; that check is the sole
ordering mechanism, so results apply last-write-wins relative to keystrokes,
not completion order. All mutation happens on the event loop thread.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable

from context_engine.config.settings import Settings
from context_engine.exceptions import RetrievalError
from context_engine.models.domain import (
    ContextPack,
    DeliveryMode,
    PipelinePhase,
    PipelineState,
    Submission,
    Suggestion,
)
from context_engine.models.schemas import ContextPackRequestPayload
from context_engine.observability.logger import get_logger
from context_engine.observability.metrics import log_pipeline_trace
from context_engine.observability.tracing import PipelineTrace
from context_engine.pipeline.cancellation import CancellationToken
from context_engine.protocols.llm import ChatClient
from context_engine.protocols.retriever import RetrievalBackend
from context_engine.query.expansion import QueryExpander
from context_engine.query.normalizer import QueryNormalizer
from context_engine.retrieval.merge import MergeRankEngine
from context_engine.retrieval.orchestrator import RetrievalOrchestrator
from context_engine.selection.state import SelectionManager
from context_engine.verification.relevance_gate import RelevanceGate

logger = get_logger("pipeline_controller")


class PipelineController:
    def __init__(
        self,
        backend: RetrievalBackend,
        normalizer: QueryNormalizer,
        expander: QueryExpander,
        orchestrator: RetrievalOrchestrator,
        merge_engine: MergeRankEngine,
        relevance_gate: RelevanceGate,
        settings: Settings,
        session_id: str = "",
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._backend = backend
        self._normalizer = normalizer
        self._expander = expander
        self._orchestrator = orchestrator
        self._merge = merge_engine
        self._gate = relevance_gate
        self._settings = settings
        self._clock = clock
        self.session_id = session_id

        self.state = PipelineState()
        self.selection = SelectionManager(self.state)
        self._task: asyncio.Task | None = None
        self._token: CancellationToken | None = None
        self._last_edit_at = clock()

    @classmethod
    def create(
        cls,
        backend: RetrievalBackend,
        chat_client: ChatClient | None,
        settings: Settings,
        session_id: str = "",
        clock: Callable[[], float] = time.monotonic,
    ) -> PipelineController:
        return cls(
            backend=backend,
            normalizer=QueryNormalizer(settings),
            expander=QueryExpander(settings),
            orchestrator=RetrievalOrchestrator(backend, settings),
            merge_engine=MergeRankEngine(settings),
            relevance_gate=RelevanceGate(chat_client, settings),
            settings=settings,
            session_id=session_id,
            clock=clock,
        )

    # Observable fields

    @property
    def suggestions(self) -> list[Suggestion]:
        return self.state.suggestions

    @property
    def attached_suggestions(self) -> list[Suggestion]:
        return self.state.attached_suggestions

    @property
    def is_loading(self) -> bool:
        return self.state.is_loading

    @property
    def last_error(self) -> str | None:
        return self.state.last_error

    @property
    def phase(self) -> PipelinePhase:
        return self.state.phase

    # Draft handling

    def update_draft(self, text: str) -> int:
        """Restart the pipeline for a new draft. Returns the new request id."""
        draft = text.strip()
        self._cancel_inflight()
        self.state.latest_draft = draft
        self.state.active_request_id += 1
        self._last_edit_at = self._clock()
        request_id = self.state.active_request_id

        if not draft:
            self.state.suggestions = []
            self.state.last_error = None
            self.state.is_loading = False
            self.state.phase = PipelinePhase.IDLE
            return request_id

        self.state.phase = PipelinePhase.DEBOUNCING
        token = CancellationToken()
        self._token = token
        self._task = asyncio.get_running_loop().create_task(
            self._run(request_id, draft, token)
        )
        return request_id

    async def settle(self) -> None:
        """Wait until no pipeline run is in flight."""
        while self._task is not None and not self._task.done():
            await asyncio.wait({self._task})

    def is_current(self, request_id: int, draft: str) -> bool:
        return (
            request_id == self.state.active_request_id
            and draft == self.state.latest_draft
        )

    def apply_candidates(
        self,
        request_id: int,
        draft: str,
        candidates: list[Suggestion],
        phase: PipelinePhase,
        error_message: str | None = None,
    ) -> bool:
        """Publish a stage result if it still belongs to the active request."""
        if not self.is_current(request_id, draft):
            return False
        self.selection.refresh(candidates)
        self.state.last_error = error_message if not candidates and error_message else None
        self.state.phase = phase
        if phase is PipelinePhase.FINAL_READY:
            self.state.is_loading = False
        return True

    async def _run(self, request_id: int, draft: str, token: CancellationToken) -> None:
        log = logger.bind(session_id=self.session_id, request_id=request_id)
        trace = PipelineTrace(self.session_id, request_id)
        try:
            await token.sleep(self._settings.debounce_s)
            if not self.is_current(request_id, draft):
                trace.outcome = "stale"
                return

            self.state.phase = PipelinePhase.RETRIEVING
            self.state.is_loading = True

            with trace.span("normalize"):
                query = self._normalizer.normalize(draft)
                expansions = self._expander.expand(query)

            with trace.span("retrieve", expansions=len(expansions)) as span:
                batch = await self._orchestrator.retrieve(query, expansions, token)
                span.metadata["calls"] = batch.calls

            with trace.span("merge"):
                preliminary = self._merge.merge(batch.suggestions, batch.base_ids)

            if not self.apply_candidates(
                request_id,
                draft,
                preliminary,
                PipelinePhase.PRELIMINARY_READY,
                batch.error_message,
            ):
                trace.outcome = "stale"
                return

            if not self._gate.should_gate(query, preliminary):
                self.apply_candidates(
                    request_id, draft, preliminary, PipelinePhase.FINAL_READY,
                    batch.error_message,
                )
                trace.outcome = "final_ungated"
                return

            self.state.phase = PipelinePhase.GATING
            await self._wait_for_idle(token)
            if not self.is_current(request_id, draft):
                trace.outcome = "stale"
                return

            with trace.span("gate") as span:
                outcome = await self._gate.refine(query, preliminary)
                span.metadata["reason"] = outcome.reason

            final = self._merge.rank(outcome.candidates, batch.base_ids)
            if self.apply_candidates(request_id, draft, final, PipelinePhase.FINAL_READY):
                trace.outcome = "final"
            else:
                trace.outcome = "stale"
        except asyncio.CancelledError:
            trace.outcome = "cancelled"
            raise
        finally:
            if self.is_current(request_id, draft) and not trace.outcome.startswith("final"):
                self.state.is_loading = False
            if trace.outcome in ("cancelled", "stale"):
                log.debug("pipeline_discarded", outcome=trace.outcome)
            else:
                log_pipeline_trace(trace.to_dict())

    async def _wait_for_idle(self, token: CancellationToken) -> None:
        await token.sleep(self._settings.gate_stabilization_delay_s)
        min_idle = self._settings.gate_min_idle_s
        while True:
            idle = self._clock() - self._last_edit_at
            if idle >= min_idle:
                return
            await token.sleep(min_idle - idle)

    def _cancel_inflight(self) -> None:
        if self._token is not None:
            self._token.cancel()
            self._token = None
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None

    # Selection

    def attach(self, suggestion: Suggestion) -> bool:
        return self.selection.attach(suggestion)

    def attach_by_id(self, suggestion_id: str) -> bool:
        suggestion = next((s for s in self.state.suggestions if s.id == suggestion_id), None)
        if suggestion is None:
            return False
        return self.selection.attach(suggestion)

    def detach(self, suggestion_id: str) -> bool:
        return self.selection.detach(suggestion_id)

    def set_mode(self, mode: DeliveryMode, suggestion_id: str) -> None:
        self.selection.set_mode(mode, suggestion_id)

    def toggle_selection(self, suggestion: Suggestion) -> bool:
        return self.selection.toggle(suggestion)

    def selected_file_attachment_paths_for_fallback(self) -> list[str]:
        return self.selection.fallback_file_attachment_paths()

    # Submission

    async def create_context_pack_if_needed(self, query: str) -> ContextPack | None:
        request = self.selection.build_context_pack_request(query)
        if request is None:
            return None
        payload = ContextPackRequestPayload(
            query=request.query,
            selected_suggestion_ids=request.selected_suggestion_ids,
            mode_overrides={
                sid: DeliveryMode(mode) for sid, mode in request.mode_overrides.items()
            },
        )
        response = await self._backend.create_context_pack(payload)
        logger.info(
            "context_pack_created",
            session_id=self.session_id,
            pack_id=response.id,
            attachments=len(response.attachment_paths),
            inline_blocks=len(response.inline_prompt_blocks),
        )
        return response.to_domain()

    async def submit(self, query: str) -> Submission:
        """Build the context pack (falling back to plain file paths) and clear the session."""
        fallback_paths = self.selected_file_attachment_paths_for_fallback()
        try:
            pack = await self.create_context_pack_if_needed(query)
        except RetrievalError as e:
            logger.warning(
                "context_pack_failed", session_id=self.session_id, error=str(e)
            )
            pack = None

        if pack is not None:
            submission = Submission(
                context_pack=pack,
                attachment_paths=list(pack.attachment_paths),
                inline_prompt_blocks=list(pack.inline_prompt_blocks),
            )
        else:
            submission = Submission(
                context_pack=None,
                attachment_paths=fallback_paths,
                inline_prompt_blocks=[],
            )
        self.clear_after_submit()
        return submission

    def clear_after_submit(self) -> None:
        self._cancel_inflight()
        self.state.active_request_id += 1
        self.state.latest_draft = ""
        self.selection.reset()
        self.state.is_loading = False
        self.state.phase = PipelinePhase.IDLE

    def close(self) -> None:
        self.clear_after_submit()
