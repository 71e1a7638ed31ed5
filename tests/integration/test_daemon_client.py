"""Tests for the retrieval daemon HTTP client against a mock transport."""

import json

import httpx
import pytest

from context_engine.exceptions import (
    ContextPackError,
    RetrievalError,
    RetrievalHTTPError,
    RetrievalTimeoutError,
)
from context_engine.models.domain import DeliveryMode
from context_engine.models.schemas import ContextPackRequestPayload, SuggestRequest
from context_engine.retrieval.daemon_client import RetrievalDaemonClient

SUGGESTION = {
    "id": "s1",
    "sourceType": "file",
    "title": "Budget.xlsx",
    "snippet": "Q3 numbers",
    "sourceId": "f1",
    "sourcePathOrHandle": "/Users/test/Budget.xlsx",
    "relevanceScore": 0.82,
}


def _client(handler, settings):
    return RetrievalDaemonClient.from_settings(
        settings, transport=httpx.MockTransport(handler)
    )


async def test_suggest_sends_contract_request(settings):
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"suggestions": [SUGGESTION], "partial": False})

    client = _client(handler, settings)
    try:
        response = await client.suggest(
            SuggestRequest(query="budget", limit=12, typing_mode=True), timeout=1.2
        )
    finally:
        await client.close()

    request = seen[0]
    assert request.method == "POST"
    assert request.url.path == "/api/v1/retrieval/suggest"
    assert request.headers["X-Retrieval-Token"] == "test-token"
    assert json.loads(request.content) == {
        "query": "budget",
        "sourceFilters": None,
        "limit": 12,
        "typingMode": True,
        "includeColdPartitionFallback": False,
    }
    assert response.suggestions[0].to_domain().relevance_score == pytest.approx(0.82)


async def test_suggest_timeout_maps_to_timeout_error(settings):
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("timed out", request=request)

    client = _client(handler, settings)
    try:
        with pytest.raises(RetrievalTimeoutError):
            await client.suggest(SuggestRequest(query="budget"), timeout=0.1)
    finally:
        await client.close()


async def test_suggest_error_status(settings):
    client = _client(lambda request: httpx.Response(500, text="boom"), settings)
    try:
        with pytest.raises(RetrievalHTTPError) as exc_info:
            await client.suggest(SuggestRequest(query="budget"), timeout=1.0)
    finally:
        await client.close()
    assert exc_info.value.status_code == 500


async def test_suggest_malformed_payload(settings):
    client = _client(
        lambda request: httpx.Response(200, json={"suggestions": [{"id": ""}]}), settings
    )
    try:
        with pytest.raises(RetrievalError):
            await client.suggest(SuggestRequest(query="budget"), timeout=1.0)
    finally:
        await client.close()


async def test_connection_failure_is_retrieval_error(settings):
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    client = _client(handler, settings)
    try:
        with pytest.raises(RetrievalError) as exc_info:
            await client.suggest(SuggestRequest(query="budget"), timeout=1.0)
    finally:
        await client.close()
    assert not isinstance(exc_info.value, RetrievalTimeoutError)


async def test_create_context_pack(settings):
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(json.loads(request.content))
        return httpx.Response(
            200,
            json={
                "id": "pack-9",
                "attachmentPaths": ["/Users/test/Budget.xlsx"],
                "inlinePromptBlocks": ["Q3 summary"],
            },
        )

    client = _client(handler, settings)
    try:
        pack = await client.create_context_pack(
            ContextPackRequestPayload(
                query="Summarize Q3",
                selected_suggestion_ids=["s1"],
                mode_overrides={"s1": DeliveryMode.FILE_REFERENCE},
            )
        )
    finally:
        await client.close()

    assert seen[0] == {
        "query": "Summarize Q3",
        "selectedSuggestionIds": ["s1"],
        "modeOverrides": {"s1": "fileRef"},
    }
    assert pack.id == "pack-9"
    assert pack.attachment_paths == ["/Users/test/Budget.xlsx"]


async def test_create_context_pack_failure(settings):
    client = _client(lambda request: httpx.Response(503), settings)
    try:
        with pytest.raises(ContextPackError):
            await client.create_context_pack(
                ContextPackRequestPayload(query="q", selected_suggestion_ids=["s1"])
            )
    finally:
        await client.close()


async def test_health(settings):
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/api/v1/health"
        return httpx.Response(200, json={"status": "ok", "version": "1.4.0"})

    client = _client(handler, settings)
    try:
        health = await client.health()
    finally:
        await client.close()
    assert health.status == "ok"
