"""Session endpoints: draft updates, attachment changes and submission."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Response

from context_engine.api.dependencies import get_controller, get_sessions
from context_engine.exceptions import SessionNotFoundError
from context_engine.models.schemas import (
    AttachRequest,
    DraftUpdate,
    ModeUpdate,
    SessionCreated,
    SessionSnapshot,
    SubmitRequest,
    SubmitResponse,
    SuggestionPayload,
)
from context_engine.pipeline.controller import PipelineController
from context_engine.pipeline.sessions import SessionRegistry

router = APIRouter(prefix="/sessions")


def snapshot(controller: PipelineController) -> SessionSnapshot:
    state = controller.state
    return SessionSnapshot(
        session_id=controller.session_id,
        request_id=state.active_request_id,
        phase=state.phase.value,
        is_loading=state.is_loading,
        last_error=state.last_error,
        suggestions=[SuggestionPayload.from_domain(s) for s in state.suggestions],
        attached_suggestions=[
            SuggestionPayload.from_domain(s) for s in state.attached_suggestions
        ],
        modes=controller.selection.modes,
    )


@router.post("", response_model=SessionCreated, status_code=201)
async def create_session(
    sessions: SessionRegistry = Depends(get_sessions),
) -> SessionCreated:
    controller = sessions.create()
    return SessionCreated(session_id=controller.session_id)


@router.get("/{session_id}", response_model=SessionSnapshot)
async def get_session(
    controller: PipelineController = Depends(get_controller),
) -> SessionSnapshot:
    return snapshot(controller)


@router.put("/{session_id}/draft", response_model=SessionSnapshot)
async def update_draft(
    body: DraftUpdate,
    wait: bool = False,
    controller: PipelineController = Depends(get_controller),
) -> SessionSnapshot:
    controller.update_draft(body.text)
    if wait:
        await controller.settle()
    return snapshot(controller)


@router.post("/{session_id}/attachments", response_model=SessionSnapshot)
async def attach(
    body: AttachRequest,
    controller: PipelineController = Depends(get_controller),
) -> SessionSnapshot:
    if not controller.attach_by_id(body.suggestion_id) and not controller.selection.is_selected(
        body.suggestion_id
    ):
        raise HTTPException(
            status_code=404, detail=f"No attachable suggestion {body.suggestion_id}"
        )
    return snapshot(controller)


@router.delete("/{session_id}/attachments/{suggestion_id}", response_model=SessionSnapshot)
async def detach(
    suggestion_id: str,
    controller: PipelineController = Depends(get_controller),
) -> SessionSnapshot:
    controller.detach(suggestion_id)
    return snapshot(controller)


@router.post("/{session_id}/toggle", response_model=SessionSnapshot)
async def toggle(
    body: AttachRequest,
    controller: PipelineController = Depends(get_controller),
) -> SessionSnapshot:
    known = controller.state.suggestions + controller.state.attached_suggestions
    suggestion = next((s for s in known if s.id == body.suggestion_id), None)
    if suggestion is None:
        raise HTTPException(status_code=404, detail=f"Unknown suggestion {body.suggestion_id}")
    controller.toggle_selection(suggestion)
    return snapshot(controller)


@router.put("/{session_id}/modes/{suggestion_id}", response_model=SessionSnapshot)
async def set_mode(
    suggestion_id: str,
    body: ModeUpdate,
    controller: PipelineController = Depends(get_controller),
) -> SessionSnapshot:
    controller.set_mode(body.mode, suggestion_id)
    return snapshot(controller)


@router.post("/{session_id}/submit", response_model=SubmitResponse)
async def submit(
    body: SubmitRequest,
    controller: PipelineController = Depends(get_controller),
) -> SubmitResponse:
    submission = await controller.submit(body.query)
    pack = submission.context_pack
    return SubmitResponse(
        context_pack_id=pack.id if pack else None,
        attachment_paths=submission.attachment_paths,
        inline_prompt_blocks=submission.inline_prompt_blocks,
    )


@router.delete("/{session_id}", status_code=204)
async def close_session(
    session_id: str,
    sessions: SessionRegistry = Depends(get_sessions),
) -> Response:
    try:
        sessions.close(session_id)
    except SessionNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return Response(status_code=204)
