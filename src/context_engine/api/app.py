"""FastAPI application factory with lifespan management."""

from __future__ import annotations

from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI

from context_engine.api.middleware import SessionContextMiddleware
from context_engine.api.routes_health import router as health_router
from context_engine.api.routes_session import router as session_router
from context_engine.config.settings import Settings
from context_engine.generation.factory import create_chat_client
from context_engine.observability.logger import get_logger, setup_logging
from context_engine.pipeline.sessions import SessionRegistry
from context_engine.protocols.llm import ChatClient
from context_engine.retrieval.daemon_client import RetrievalDaemonClient

logger = get_logger("app")

_UNSET = object()


def create_app(
    settings: Settings | None = None,
    chat_client: ChatClient | None | object = _UNSET,
    daemon_transport: httpx.AsyncBaseTransport | None = None,
) -> FastAPI:
    settings = settings or Settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        setup_logging(settings.log_level, settings.log_json)

        daemon_client = RetrievalDaemonClient.from_settings(
            settings, transport=daemon_transport
        )
        llm = create_chat_client(settings) if chat_client is _UNSET else chat_client
        if llm is None:
            logger.warning("relevance_gate_disabled", provider=settings.llm_provider)

        app.state.settings = settings
        app.state.daemon_client = daemon_client
        app.state.chat_client = llm
        app.state.sessions = SessionRegistry(daemon_client, llm, settings)

        logger.info(
            "startup_complete",
            daemon=settings.daemon_base_url,
            llm_provider=settings.llm_provider if llm is not None else "none",
        )

        yield

        app.state.sessions.close_all()
        await daemon_client.close()
        logger.info("shutdown_complete")

    app = FastAPI(
        title="Prompt Context Engine",
        version="0.1.0",
        description="Incremental retrieval and relevance pipeline for task prompts",
        lifespan=lifespan,
    )
    app.add_middleware(SessionContextMiddleware)
    app.include_router(health_router, tags=["health"])
    app.include_router(session_router, tags=["sessions"])
    return app
