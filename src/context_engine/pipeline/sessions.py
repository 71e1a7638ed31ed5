"""Registry of live input sessions, one pipeline controller each."""

from __future__ import annotations

from uuid import uuid4

from context_engine.config.settings import Settings
from context_engine.exceptions import SessionNotFoundError
from context_engine.observability.logger import get_logger
from context_engine.pipeline.controller import PipelineController
from context_engine.protocols.llm import ChatClient
from context_engine.protocols.retriever import RetrievalBackend

logger = get_logger("sessions")


class SessionRegistry:
    def __init__(
        self,
        backend: RetrievalBackend,
        chat_client: ChatClient | None,
        settings: Settings,
    ) -> None:
        self._backend = backend
        self._chat_client = chat_client
        self._settings = settings
        self._sessions: dict[str, PipelineController] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    def create(self) -> PipelineController:
        session_id = str(uuid4())
        controller = PipelineController.create(
            self._backend, self._chat_client, self._settings, session_id=session_id
        )
        self._sessions[session_id] = controller
        logger.info("session_created", session_id=session_id)
        return controller

    def get(self, session_id: str) -> PipelineController:
        controller = self._sessions.get(session_id)
        if controller is None:
            raise SessionNotFoundError(f"Unknown session: {session_id}")
        return controller

    def close(self, session_id: str) -> None:
        controller = self._sessions.pop(session_id, None)
        if controller is None:
            raise SessionNotFoundError(f"Unknown session: {session_id}")
        controller.close()
        logger.info("session_closed", session_id=session_id)

    def close_all(self) -> None:
        for session_id in list(self._sessions):
            self.close(session_id)
