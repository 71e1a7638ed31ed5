"""Attached-suggestion bookkeeping and context-pack request assembly."""

from __future__ import annotations

from pathlib import PurePosixPath

from context_engine.models.domain import (
    ContextPackRequest,
    DeliveryMode,
    PipelineState,
    Suggestion,
    has_image_extension,
)


class SelectionManager:
    """Owns the suggestion/attachment fields of a session's ``PipelineState``.

    Lists are always replaced wholesale, never mutated in place, so a reader
    holding an old list never sees a half-applied update.
    """

    def __init__(self, state: PipelineState) -> None:
        self._state = state
        self._modes: dict[str, DeliveryMode] = {}

    @property
    def modes(self) -> dict[str, DeliveryMode]:
        return dict(self._modes)

    def is_selected(self, suggestion_id: str) -> bool:
        return any(s.id == suggestion_id for s in self._state.attached_suggestions)

    def selected_mode(self, suggestion_id: str, source_type: str) -> DeliveryMode:
        mode = self._modes.get(suggestion_id)
        if mode is not None:
            return mode
        return DeliveryMode.default_for(source_type)

    def attach(self, suggestion: Suggestion) -> bool:
        if not suggestion.is_searchable or self.is_selected(suggestion.id):
            return False
        if suggestion.id not in self._modes:
            self._modes[suggestion.id] = self.selected_mode(
                suggestion.id, suggestion.source_type
            )
        self._state.attached_suggestions = [*self._state.attached_suggestions, suggestion]
        self._state.suggestions = [
            s for s in self._state.suggestions if s.id != suggestion.id
        ]
        return True

    def detach(self, suggestion_id: str) -> bool:
        self._modes.pop(suggestion_id, None)
        attached = self._state.attached_suggestions
        detached = next((s for s in attached if s.id == suggestion_id), None)
        if detached is None:
            return False
        self._state.attached_suggestions = [s for s in attached if s.id != suggestion_id]
        visible_ids = {s.id for s in self._state.suggestions}
        if self._state.latest_draft and suggestion_id not in visible_ids:
            self._state.suggestions = [detached, *self._state.suggestions]
        return True

    def toggle(self, suggestion: Suggestion) -> bool:
        """Returns True when the suggestion ends up attached."""
        if self.is_selected(suggestion.id):
            self.detach(suggestion.id)
            return False
        return self.attach(suggestion)

    def set_mode(self, mode: DeliveryMode, suggestion_id: str) -> None:
        self._modes[suggestion_id] = mode

    def refresh(self, candidates: list[Suggestion]) -> None:
        by_id = {c.id: c for c in candidates}
        attached = [by_id.get(s.id, s) for s in self._state.attached_suggestions]
        attached_ids = {s.id for s in attached}
        self._state.attached_suggestions = attached
        self._state.suggestions = [c for c in candidates if c.id not in attached_ids]

    def selected_suggestion_ids(self) -> list[str]:
        return [s.id for s in self._state.attached_suggestions]

    def selected_mode_overrides(self) -> dict[str, str]:
        selected = set(self.selected_suggestion_ids())
        return {sid: mode.value for sid, mode in self._modes.items() if sid in selected}

    def build_context_pack_request(self, query: str) -> ContextPackRequest | None:
        ids = self.selected_suggestion_ids()
        if not ids:
            return None
        return ContextPackRequest(
            query=query,
            selected_suggestion_ids=ids,
            mode_overrides=self.selected_mode_overrides(),
        )

    def fallback_file_attachment_paths(self) -> list[str]:
        paths: set[str] = set()
        for s in self._state.attached_suggestions:
            if self._modes.get(s.id) is not DeliveryMode.FILE_REFERENCE or not s.is_file:
                continue
            path = s.source_path_or_handle.strip()
            if not PurePosixPath(path).is_absolute() or has_image_extension(path):
                continue
            paths.add(path)
        return sorted(paths)

    def reset(self) -> None:
        self._modes = {}
        self._state.suggestions = []
        self._state.attached_suggestions = []
        self._state.last_error = None
