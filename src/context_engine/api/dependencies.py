"""FastAPI dependency injection helpers."""

from __future__ import annotations

from fastapi import HTTPException, Request

from context_engine.exceptions import SessionNotFoundError
from context_engine.pipeline.controller import PipelineController
from context_engine.pipeline.sessions import SessionRegistry
from context_engine.retrieval.daemon_client import RetrievalDaemonClient


def get_sessions(request: Request) -> SessionRegistry:
    return request.app.state.sessions


def get_daemon_client(request: Request) -> RetrievalDaemonClient:
    return request.app.state.daemon_client


def get_controller(session_id: str, request: Request) -> PipelineController:
    try:
        return request.app.state.sessions.get(session_id)
    except SessionNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
