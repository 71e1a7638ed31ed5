"""OpenAI chat client using the openai SDK."""

from __future__ import annotations

from openai import AsyncOpenAI

from context_engine.exceptions import GenerationError
from context_engine.observability.logger import get_logger
from context_engine.protocols.llm import ChatMessage, ChatResponse

logger = get_logger("openai")


class OpenAIChatClient:
    def __init__(
        self,
        api_key: str,
        model: str = "gpt-4o-mini",
        temperature: float = 0.0,
        max_tokens: int = 1024,
    ) -> None:
        self._client = AsyncOpenAI(api_key=api_key)
        self._model = model
        self._temperature = temperature
        self._max_tokens = max_tokens

    async def chat(self, messages: list[ChatMessage]) -> ChatResponse:
        try:
            response = await self._client.chat.completions.create(
                model=self._model,
                messages=[{"role": m.role, "content": m.content} for m in messages],
                temperature=self._temperature,
                max_tokens=self._max_tokens,
            )
            text = response.choices[0].message.content if response.choices else None
            return ChatResponse(text=text or "")
        except Exception as e:
            raise GenerationError(f"OpenAI chat failed: {e}") from e
