"""Profiled fan-out retrieval against the daemon: fast, deep and expansion calls."""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field

from context_engine.config.settings import Settings
from context_engine.exceptions import RetrievalError, RetrievalTimeoutError
from context_engine.models.domain import (
    NormalizedQuery,
    RetrievalBatch,
    RetrievalProfile,
    Suggestion,
)
from context_engine.models.schemas import SuggestRequest
from context_engine.observability.logger import get_logger
from context_engine.observability.metrics import log_retrieval_metrics
from context_engine.pipeline.cancellation import CancellationToken
from context_engine.protocols.retriever import RetrievalBackend

logger = get_logger("retrieval_orchestrator")


def build_profiles(settings: Settings) -> dict[str, RetrievalProfile]:
    return {
        "primary_fast": RetrievalProfile(
            name="primary_fast",
            limit=settings.primary_fast_limit,
            typing_mode=True,
            cold_partition_fallback=False,
            timeout_s=settings.primary_fast_timeout_s,
        ),
        "primary_deep": RetrievalProfile(
            name="primary_deep",
            limit=settings.primary_deep_limit,
            typing_mode=False,
            cold_partition_fallback=True,
            timeout_s=settings.primary_deep_timeout_s,
        ),
        "expansion_fast": RetrievalProfile(
            name="expansion_fast",
            limit=settings.expansion_fast_limit,
            typing_mode=True,
            cold_partition_fallback=False,
            timeout_s=settings.expansion_fast_timeout_s,
            is_primary=False,
        ),
    }


@dataclass
class _CallResult:
    profile: RetrievalProfile
    query: str
    suggestions: list[Suggestion] = field(default_factory=list)
    error: str | None = None
    attempts: int = 0
    latency_ms: float = 0.0


class RetrievalOrchestrator:
    def __init__(self, backend: RetrievalBackend, settings: Settings) -> None:
        self._backend = backend
        self._settings = settings
        self._profiles = build_profiles(settings)

    @property
    def profiles(self) -> dict[str, RetrievalProfile]:
        return self._profiles

    def wants_deep(self, query: NormalizedQuery, fast_count: int) -> bool:
        s = self._settings
        return (
            len(query.draft) >= s.deep_min_query_chars
            and len(query.keywords) >= s.deep_min_keywords
            and fast_count < s.deep_sufficient_results
        )

    async def retrieve(
        self,
        query: NormalizedQuery,
        expansions: list[str],
        token: CancellationToken,
    ) -> RetrievalBatch:
        """Run the profiled calls and merge whatever came back.

        Failures only shrink the result; cancellation propagates as
        ``asyncio.CancelledError`` and leaves nothing behind.
        """
        results: list[_CallResult] = []

        fast = await self._call(self._profiles["primary_fast"], query.retrieval_query, token)
        results.append(fast)

        if self.wants_deep(query, len(fast.suggestions)):
            deep = await self._call(
                self._profiles["primary_deep"], query.retrieval_query, token
            )
            results.append(deep)

        if expansions:
            seen_ids = {s.id for r in results for s in r.suggestions if s.is_searchable}
            if len(seen_ids) < self._settings.expansion_candidate_cutoff:
                token.raise_if_cancelled()
                profile = self._profiles["expansion_fast"]
                expansion_results = await asyncio.gather(
                    *(self._call(profile, e, token) for e in expansions)
                )
                results.extend(expansion_results)

        token.raise_if_cancelled()

        suggestions: list[Suggestion] = []
        base_ids: set[str] = set()
        for r in results:
            suggestions.extend(r.suggestions)
            if r.profile.is_primary:
                base_ids.update(s.id for s in r.suggestions)

        errors = [r.error for r in results if r.error]
        return RetrievalBatch(
            suggestions=suggestions,
            base_ids=base_ids,
            calls=[
                {
                    "profile": r.profile.name,
                    "count": len(r.suggestions),
                    "attempts": r.attempts,
                    "latency_ms": round(r.latency_ms, 2),
                    "error": r.error,
                }
                for r in results
            ],
            error_message=errors[-1] if errors else None,
        )

    async def _call(
        self, profile: RetrievalProfile, query: str, token: CancellationToken
    ) -> _CallResult:
        result = _CallResult(profile, query)
        request = SuggestRequest(
            query=query,
            limit=profile.limit,
            typing_mode=profile.typing_mode,
            include_cold_partition_fallback=profile.cold_partition_fallback,
        )
        timeout = profile.timeout_s
        max_attempts = 1 + max(0, self._settings.retrieval_timeout_retries)
        start = time.monotonic()

        while result.attempts < max_attempts:
            token.raise_if_cancelled()
            result.attempts += 1
            try:
                response = await self._backend.suggest(request, timeout=timeout)
            except RetrievalTimeoutError as e:
                result.error = str(e)
                if result.attempts >= max_attempts:
                    logger.warning(
                        "retrieval_timeout_exhausted",
                        profile=profile.name,
                        attempts=result.attempts,
                    )
                    break
                logger.info(
                    "retrieval_timeout_retry",
                    profile=profile.name,
                    timeout_s=round(timeout, 3),
                )
                await token.sleep(self._settings.retrieval_retry_delay_s)
                timeout += self._settings.retrieval_retry_timeout_increment_s
                continue
            except RetrievalError as e:
                result.error = str(e)
                logger.warning("retrieval_call_failed", profile=profile.name, error=str(e))
                break
            except Exception as e:
                result.error = str(e) or type(e).__name__
                logger.warning(
                    "retrieval_call_crashed",
                    profile=profile.name,
                    error=str(e),
                    error_type=type(e).__name__,
                )
                break

            result.suggestions = [p.to_domain() for p in response.suggestions]
            result.error = None
            if response.partial:
                logger.info(
                    "retrieval_partial",
                    profile=profile.name,
                    total_candidates=response.total_candidate_count,
                )
            break

        result.latency_ms = (time.monotonic() - start) * 1000
        log_retrieval_metrics(
            profile.name,
            len(result.suggestions),
            result.attempts,
            result.latency_ms,
            result.error,
        )
        return result
