"""Google Gemini chat client using the google-genai SDK."""

from __future__ import annotations

from google import genai
from google.genai import types

from context_engine.exceptions import GenerationError
from context_engine.observability.logger import get_logger
from context_engine.protocols.llm import ChatMessage, ChatResponse

logger = get_logger("gemini")


class GeminiChatClient:
    def __init__(
        self,
        api_key: str,
        model: str = "gemini-2.0-flash",
        temperature: float = 0.0,
        max_tokens: int = 1024,
    ) -> None:
        self._client = genai.Client(api_key=api_key)
        self._model = model
        self._temperature = temperature
        self._max_tokens = max_tokens

    async def chat(self, messages: list[ChatMessage]) -> ChatResponse:
        system = "\n\n".join(m.content for m in messages if m.role == "system")
        contents = [
            types.Content(
                role="model" if m.role == "assistant" else "user",
                parts=[types.Part(text=m.content)],
            )
            for m in messages
            if m.role != "system"
        ]
        try:
            config = types.GenerateContentConfig(
                temperature=self._temperature,
                max_output_tokens=self._max_tokens,
            )
            if system:
                config.system_instruction = system

            response = await self._client.aio.models.generate_content(
                model=self._model,
                contents=contents,
                config=config,
            )
            return ChatResponse(text=response.text or "")
        except Exception as e:
            raise GenerationError(f"Gemini chat failed: {e}") from e
