"""Async HTTP client for the local retrieval daemon."""

from __future__ import annotations

from typing import TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from context_engine.config.settings import Settings
from context_engine.exceptions import (
    ContextPackError,
    RetrievalError,
    RetrievalHTTPError,
    RetrievalTimeoutError,
)
from context_engine.models.schemas import (
    ContextPackPayload,
    ContextPackRequestPayload,
    DaemonHealth,
    SuggestRequest,
    SuggestResponse,
)
from context_engine.observability.logger import get_logger

logger = get_logger("daemon_client")

ResponseT = TypeVar("ResponseT", bound=BaseModel)

AUTH_HEADER = "X-Retrieval-Token"


class RetrievalDaemonClient:
    def __init__(
        self,
        base_url: str,
        token: str = "",
        api_prefix: str = "/api/v1",
        context_pack_timeout: float = 5.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        headers = {"Accept": "application/json", "Content-Type": "application/json"}
        if token:
            headers[AUTH_HEADER] = token
        self._prefix = "/" + api_prefix.strip("/") if api_prefix.strip("/") else ""
        self._context_pack_timeout = context_pack_timeout
        self._client = httpx.AsyncClient(
            base_url=base_url,
            headers=headers,
            timeout=httpx.Timeout(context_pack_timeout),
            transport=transport,
        )

    @classmethod
    def from_settings(
        cls, settings: Settings, transport: httpx.AsyncBaseTransport | None = None
    ) -> RetrievalDaemonClient:
        return cls(
            base_url=settings.daemon_base_url,
            token=settings.daemon_auth_token,
            api_prefix=settings.daemon_api_prefix,
            context_pack_timeout=settings.context_pack_timeout_s,
            transport=transport,
        )

    async def close(self) -> None:
        await self._client.aclose()

    async def suggest(self, request: SuggestRequest, timeout: float) -> SuggestResponse:
        return await self._post(
            "/retrieval/suggest", request, SuggestResponse, timeout=timeout
        )

    async def create_context_pack(
        self, request: ContextPackRequestPayload
    ) -> ContextPackPayload:
        try:
            return await self._post(
                "/retrieval/context-pack",
                request,
                ContextPackPayload,
                timeout=self._context_pack_timeout,
            )
        except RetrievalError as e:
            raise ContextPackError(f"Context pack creation failed: {e}") from e

    async def health(self) -> DaemonHealth:
        try:
            response = await self._client.get(f"{self._prefix}/health", timeout=1.0)
            response.raise_for_status()
            return DaemonHealth.model_validate(response.json())
        except httpx.HTTPError as e:
            raise RetrievalError(f"Retrieval daemon health check failed: {e}") from e
        except (ValueError, ValidationError) as e:
            raise RetrievalError(f"Malformed health payload: {e}") from e

    async def _post(
        self,
        path: str,
        request: BaseModel,
        response_type: type[ResponseT],
        timeout: float,
    ) -> ResponseT:
        body = request.model_dump(mode="json", by_alias=True)
        try:
            response = await self._client.post(
                f"{self._prefix}{path}", json=body, timeout=timeout
            )
        except httpx.TimeoutException as e:
            raise RetrievalTimeoutError(
                f"Retrieval daemon timed out after {timeout:.2f}s on {path}"
            ) from e
        except httpx.RequestError as e:
            raise RetrievalError(f"Retrieval daemon request failed: {e}") from e

        if not response.is_success:
            raise RetrievalHTTPError(
                f"Retrieval daemon request failed with status {response.status_code}",
                status_code=response.status_code,
            )

        try:
            return response_type.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            raise RetrievalError(f"Malformed retrieval daemon response: {e}") from e
