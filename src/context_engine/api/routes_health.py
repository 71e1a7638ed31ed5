"""Health check endpoint."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request

from context_engine.api.dependencies import get_daemon_client, get_sessions
from context_engine.exceptions import RetrievalError
from context_engine.models.schemas import HealthResponse
from context_engine.pipeline.sessions import SessionRegistry
from context_engine.retrieval.daemon_client import RetrievalDaemonClient

router = APIRouter()


@router.get("/health", response_model=HealthResponse)
async def health(
    request: Request,
    sessions: SessionRegistry = Depends(get_sessions),
    daemon: RetrievalDaemonClient = Depends(get_daemon_client),
) -> HealthResponse:
    try:
        await daemon.health()
        reachable = True
    except RetrievalError:
        reachable = False
    return HealthResponse(
        status="ok" if reachable else "degraded",
        active_sessions=len(sessions),
        llm_configured=request.app.state.chat_client is not None,
        daemon_reachable=reachable,
    )
