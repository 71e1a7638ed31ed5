"""Relevance gate: LLM confidence verdicts grounded by keyword overlap.

Candidates pass only when the LLM calls them relevant with enough confidence
AND the candidate shares enough keywords with the draft (or the LLM is very
sure and there is at least some overlap). If everything is rejected a small,
conservative fallback set is admitted so the list is rarely left empty.
Any LLM failure degrades to the un-gated candidates.
"""

from __future__ import annotations

import json
import re

from pydantic import ValidationError

from context_engine.config.settings import Settings
from context_engine.exceptions import RelevanceParseError
from context_engine.generation.prompt_templates import (
    RELEVANCE_GATE_PROMPT,
    RELEVANCE_GATE_SYSTEM,
    format_candidates_block,
)
from context_engine.keyword_search.tokenizer import keyword_overlap
from context_engine.models.domain import (
    GateOutcome,
    NormalizedQuery,
    RelevanceVerdict,
    Suggestion,
)
from context_engine.models.schemas import RelevanceCandidate, RelevanceResponse
from context_engine.observability.logger import get_logger
from context_engine.observability.metrics import log_gate_metrics
from context_engine.protocols.llm import ChatClient, ChatMessage

logger = get_logger("relevance_gate")

_FENCE = re.compile(r"^```[a-zA-Z0-9_-]*\s*\n?(.*?)\n?```$", re.DOTALL)


def strip_code_fence(text: str) -> str:
    text = text.strip()
    match = _FENCE.match(text)
    if match:
        return match.group(1).strip()
    return text


def parse_verdicts(text: str) -> list[RelevanceVerdict]:
    """Parse the LLM reply, tolerating markdown fencing and surrounding prose."""
    body = strip_code_fence(text)
    try:
        data = json.loads(body)
    except json.JSONDecodeError:
        start, end = body.find("{"), body.rfind("}")
        if start == -1 or end <= start:
            raise RelevanceParseError("No JSON object in relevance reply")
        try:
            data = json.loads(body[start : end + 1])
        except json.JSONDecodeError as e:
            raise RelevanceParseError(f"Invalid relevance JSON: {e}") from e

    try:
        response = RelevanceResponse.model_validate(data)
    except ValidationError as e:
        raise RelevanceParseError(f"Unexpected relevance payload: {e}") from e

    return [
        RelevanceVerdict(
            id=v.id,
            is_relevant=v.is_relevant,
            confidence=max(0.0, min(1.0, v.confidence or 0.0)),
            reason=v.reason or "",
        )
        for v in response.verdicts
    ]


def candidate_text(suggestion: Suggestion) -> str:
    return f"{suggestion.title} {suggestion.resource_name} {suggestion.snippet}"


class RelevanceGate:
    def __init__(self, chat_client: ChatClient | None, settings: Settings) -> None:
        self._llm = chat_client
        self._s = settings

    @property
    def has_llm(self) -> bool:
        return self._llm is not None

    def should_gate(self, query: NormalizedQuery, candidates: list[Suggestion]) -> bool:
        return (
            len(query.draft) >= self._s.gate_min_draft_chars
            and len(query.keywords) >= self._s.gate_min_keywords
            and len(candidates) > self._s.gate_min_candidates
        )

    async def refine(
        self, query: NormalizedQuery, candidates: list[Suggestion]
    ) -> GateOutcome:
        if not self.should_gate(query, candidates):
            return GateOutcome(candidates=list(candidates), applied=False, reason="skipped")

        if self._llm is None:
            logger.warning("relevance_gate_unavailable", reason="no_llm_client_configured")
            return GateOutcome(
                candidates=list(candidates), applied=False, reason="no_llm_client"
            )

        try:
            verdicts = await self.request_verdicts(query, candidates)
        except RelevanceParseError as e:
            logger.warning("relevance_verdict_unparseable", error=str(e))
            return GateOutcome(candidates=list(candidates), applied=False, reason="parse_error")
        except Exception as e:
            logger.warning("relevance_gate_failed", error=str(e))
            return GateOutcome(candidates=list(candidates), applied=False, reason="llm_error")

        outcome = self.apply_verdicts(query, candidates, verdicts)
        log_gate_metrics(
            len(candidates),
            len(outcome.accepted_ids),
            len(outcome.fallback_ids),
            outcome.applied,
            outcome.reason,
        )
        return outcome

    async def request_verdicts(
        self, query: NormalizedQuery, candidates: list[Suggestion]
    ) -> list[RelevanceVerdict]:
        limit = self._s.gate_snippet_max_chars
        block = format_candidates_block(
            [
                RelevanceCandidate(
                    id=c.id,
                    title=c.title,
                    resource_name=c.resource_name,
                    snippet=c.snippet[:limit],
                ).model_dump(by_alias=True)
                for c in candidates
            ]
        )
        messages = [
            ChatMessage(role="system", content=RELEVANCE_GATE_SYSTEM),
            ChatMessage(
                role="user",
                content=RELEVANCE_GATE_PROMPT.format(
                    draft=query.draft, candidates_json=block
                ),
            ),
        ]
        response = await self._llm.chat(messages)
        return parse_verdicts(response.text)

    def accepts(self, verdict: RelevanceVerdict, overlap: float, has_keywords: bool) -> bool:
        s = self._s
        if not verdict.is_relevant or verdict.confidence < s.gate_accept_confidence:
            return False
        if not has_keywords:
            return verdict.confidence >= s.gate_no_keyword_confidence
        if overlap >= s.gate_min_keyword_overlap:
            return True
        return (
            verdict.confidence >= s.gate_high_confidence
            and overlap >= s.gate_high_confidence_min_overlap
        )

    def apply_verdicts(
        self,
        query: NormalizedQuery,
        candidates: list[Suggestion],
        verdicts: list[RelevanceVerdict],
    ) -> GateOutcome:
        s = self._s
        draft_keywords = query.keyword_set
        by_id = {v.id: v for v in verdicts}

        accepted: list[Suggestion] = []
        eligible_fallback: list[tuple[Suggestion, float]] = []
        for c in candidates:
            overlap = keyword_overlap(draft_keywords, candidate_text(c))
            verdict = by_id.get(c.id)
            if verdict and self.accepts(verdict, overlap, bool(draft_keywords)):
                accepted.append(c)
                continue
            hard_rejected = (
                verdict is not None
                and not verdict.is_relevant
                and verdict.confidence >= s.gate_fallback_exclude_confidence
            )
            if not hard_rejected:
                eligible_fallback.append((c, overlap))

        if accepted:
            return GateOutcome(
                candidates=accepted,
                applied=True,
                accepted_ids=[c.id for c in accepted],
                reason="accepted",
            )

        fallback = [
            c
            for c, overlap in eligible_fallback
            if overlap >= s.gate_fallback_min_overlap
            and c.relevance_score >= s.gate_fallback_min_score
        ][: s.gate_fallback_max]

        return GateOutcome(
            candidates=fallback,
            applied=True,
            fallback_ids=[c.id for c in fallback],
            reason="fallback" if fallback else "all_rejected",
        )
