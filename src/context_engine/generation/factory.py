"""Build the configured chat client, or none when no provider is usable."""

from __future__ import annotations

from context_engine.config.settings import Settings
from context_engine.exceptions import ConfigurationError
from context_engine.observability.logger import get_logger
from context_engine.protocols.llm import ChatClient

logger = get_logger("llm_factory")


def create_chat_client(settings: Settings) -> ChatClient | None:
    provider = settings.llm_provider.strip().lower()

    if provider == "none":
        return None

    if provider == "gemini":
        if not settings.google_api_key:
            logger.warning("llm_provider_unconfigured", provider=provider)
            return None
        from context_engine.generation.gemini_provider import GeminiChatClient

        return GeminiChatClient(
            api_key=settings.google_api_key,
            model=settings.gemini_model,
            temperature=settings.llm_temperature,
            max_tokens=settings.llm_max_tokens,
        )

    if provider == "openai":
        if not settings.openai_api_key:
            logger.warning("llm_provider_unconfigured", provider=provider)
            return None
        from context_engine.generation.openai_provider import OpenAIChatClient

        return OpenAIChatClient(
            api_key=settings.openai_api_key,
            model=settings.openai_model,
            temperature=settings.llm_temperature,
            max_tokens=settings.llm_max_tokens,
        )

    raise ConfigurationError(f"Unknown LLM provider: {settings.llm_provider!r}")
