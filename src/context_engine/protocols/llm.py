"""Protocol for LLM chat providers."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal, Protocol


@dataclass(frozen=True)
class ChatMessage:
    role: Literal["system", "user", "assistant"]
    content: str


@dataclass(frozen=True)
class ChatResponse:
    text: str


class ChatClient(Protocol):
    async def chat(self, messages: list[ChatMessage]) -> ChatResponse: ...
