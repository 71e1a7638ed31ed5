"""Tests for profiled retrieval fan-out."""

import asyncio

import pytest

from conftest import FakeBackend, make_suggestion
from context_engine.config.settings import Settings
from context_engine.exceptions import RetrievalHTTPError, RetrievalTimeoutError
from context_engine.pipeline.cancellation import CancellationToken
from context_engine.query.normalizer import QueryNormalizer
from context_engine.retrieval.orchestrator import RetrievalOrchestrator, build_profiles

SHORT_DRAFT = "budget report"
LONG_DRAFT = "Summarize the Q3 budget spreadsheet for finance and compare it with last year's forecast"


def _query(settings, text):
    return QueryNormalizer(settings).normalize(text)


def test_profiles_match_defaults():
    profiles = build_profiles(Settings())
    fast, deep, expansion = (
        profiles["primary_fast"],
        profiles["primary_deep"],
        profiles["expansion_fast"],
    )
    assert (fast.limit, fast.typing_mode, fast.cold_partition_fallback) == (12, True, False)
    assert (deep.limit, deep.typing_mode, deep.cold_partition_fallback) == (24, False, True)
    assert (expansion.limit, expansion.typing_mode) == (8, True)
    assert fast.is_primary and deep.is_primary and not expansion.is_primary


async def test_short_draft_runs_fast_profile_only(settings):
    backend = FakeBackend(lambda r: [make_suggestion("a", 0.8)])
    orchestrator = RetrievalOrchestrator(backend, settings)

    batch = await orchestrator.retrieve(
        _query(settings, SHORT_DRAFT), [], CancellationToken()
    )

    assert len(backend.calls) == 1
    request, timeout = backend.calls[0]
    assert request.query == SHORT_DRAFT
    assert request.limit == 12
    assert request.typing_mode is True
    assert timeout == pytest.approx(1.2)
    assert [s.id for s in batch.suggestions] == ["a"]
    assert batch.base_ids == {"a"}
    assert batch.error_message is None


async def test_long_draft_with_few_results_adds_deep_call(settings):
    def handler(request):
        if request.typing_mode:
            return [make_suggestion("fast", 0.7)]
        return [make_suggestion("deep", 0.6)]

    backend = FakeBackend(handler)
    batch = await RetrievalOrchestrator(backend, settings).retrieve(
        _query(settings, LONG_DRAFT), [], CancellationToken()
    )

    deep_request, deep_timeout = backend.calls[1]
    assert deep_request.limit == 24
    assert deep_request.include_cold_partition_fallback is True
    assert deep_timeout == pytest.approx(1.8)
    assert batch.base_ids == {"fast", "deep"}


async def test_enough_fast_results_skip_deep(settings):
    backend = FakeBackend(lambda r: [make_suggestion(f"s{i}", 0.5) for i in range(8)])
    await RetrievalOrchestrator(backend, settings).retrieve(
        _query(settings, LONG_DRAFT), [], CancellationToken()
    )
    assert all(request.typing_mode for request, _ in backend.calls)
    assert len(backend.calls) == 1


async def test_expansion_results_are_not_base(settings):
    def handler(request):
        if request.query == "budget finance":
            return [make_suggestion("c", 0.85)]
        return [make_suggestion("a", 0.8)]

    backend = FakeBackend(handler)
    batch = await RetrievalOrchestrator(backend, settings).retrieve(
        _query(settings, SHORT_DRAFT), ["budget finance"], CancellationToken()
    )

    expansion_request, _ = backend.calls[-1]
    assert expansion_request.limit == 8
    assert {s.id for s in batch.suggestions} == {"a", "c"}
    assert batch.base_ids == {"a"}


async def test_expansion_skipped_when_enough_candidates(settings):
    backend = FakeBackend(lambda r: [make_suggestion(f"s{i}", 0.5) for i in range(12)])
    await RetrievalOrchestrator(backend, settings).retrieve(
        _query(settings, SHORT_DRAFT), ["budget finance"], CancellationToken()
    )
    assert [r.query for r, _ in backend.calls] == [SHORT_DRAFT]


async def test_timeout_is_retried_with_longer_timeout(settings):
    attempts = []

    def handler(request):
        attempts.append(request)
        if len(attempts) == 1:
            raise RetrievalTimeoutError("slow")
        return [make_suggestion("a", 0.8)]

    backend = FakeBackend(handler)
    batch = await RetrievalOrchestrator(backend, settings).retrieve(
        _query(settings, SHORT_DRAFT), [], CancellationToken()
    )

    timeouts = [timeout for _, timeout in backend.calls]
    assert timeouts == [pytest.approx(1.2), pytest.approx(1.8)]
    assert [s.id for s in batch.suggestions] == ["a"]
    assert batch.error_message is None
    assert batch.calls[0]["attempts"] == 2


async def test_timeout_retry_is_bounded(settings):
    def handler(request):
        raise RetrievalTimeoutError("slow")

    backend = FakeBackend(handler)
    batch = await RetrievalOrchestrator(backend, settings).retrieve(
        _query(settings, SHORT_DRAFT), [], CancellationToken()
    )

    assert len(backend.calls) == 2
    assert batch.suggestions == []
    assert batch.error_message == "slow"


async def test_other_errors_are_not_retried(settings):
    def handler(request):
        raise RetrievalHTTPError("boom", status_code=500)

    backend = FakeBackend(handler)
    batch = await RetrievalOrchestrator(backend, settings).retrieve(
        _query(settings, SHORT_DRAFT), [], CancellationToken()
    )

    assert len(backend.calls) == 1
    assert batch.suggestions == []
    assert batch.error_message == "boom"


async def test_failed_call_does_not_discard_other_results(settings):
    def handler(request):
        if request.query == "budget finance":
            raise RetrievalHTTPError("expansion failed", status_code=503)
        return [make_suggestion("a", 0.8)]

    backend = FakeBackend(handler)
    batch = await RetrievalOrchestrator(backend, settings).retrieve(
        _query(settings, SHORT_DRAFT), ["budget finance"], CancellationToken()
    )
    assert [s.id for s in batch.suggestions] == ["a"]


async def test_cancelled_token_stops_before_network(settings):
    backend = FakeBackend(lambda r: [make_suggestion("a", 0.8)])
    token = CancellationToken()
    token.cancel()

    with pytest.raises(asyncio.CancelledError):
        await RetrievalOrchestrator(backend, settings).retrieve(
            _query(settings, SHORT_DRAFT), [], token
        )
    assert backend.calls == []


async def test_cancellation_during_retry_backoff(settings):
    token = CancellationToken()

    def handler(request):
        token.cancel()
        raise RetrievalTimeoutError("slow")

    backend = FakeBackend(handler)
    with pytest.raises(asyncio.CancelledError):
        await RetrievalOrchestrator(backend, settings).retrieve(
            _query(settings, SHORT_DRAFT), [], token
        )
    assert len(backend.calls) == 1


async def test_unexpected_backend_error_only_drops_that_call(settings):
    def handler(request):
        if request.query == "budget finance":
            raise ConnectionResetError("peer reset")
        return [make_suggestion("A", 0.8)]

    backend = FakeBackend(handler)
    batch = await RetrievalOrchestrator(backend, settings).retrieve(
        _query(settings, SHORT_DRAFT), ["budget finance"], CancellationToken()
    )

    assert [s.id for s in batch.suggestions] == ["A"]
    assert batch.base_ids == {"A"}
    assert batch.error_message == "peer reset"


async def test_unexpected_primary_error_returns_empty(settings):
    def handler(request):
        raise RuntimeError("decoder exploded")

    backend = FakeBackend(handler)
    batch = await RetrievalOrchestrator(backend, settings).retrieve(
        _query(settings, SHORT_DRAFT), [], CancellationToken()
    )

    assert len(backend.calls) == 1
    assert batch.suggestions == []
    assert batch.error_message == "decoder exploded"
