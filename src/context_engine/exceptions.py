"""Custom exception hierarchy for the context engine."""


class ContextEngineError(Exception):
    """Base exception for all context engine errors."""


class ConfigurationError(ContextEngineError):
    """Error in system configuration."""


class RetrievalError(ContextEngineError):
    """Error talking to the retrieval daemon."""


class RetrievalTimeoutError(RetrievalError):
    """A retrieval call exceeded its timeout."""


class RetrievalHTTPError(RetrievalError):
    """The retrieval daemon answered with a non-2xx status."""

    def __init__(self, message: str, status_code: int) -> None:
        super().__init__(message)
        self.status_code = status_code


class ContextPackError(RetrievalError):
    """Error creating a context pack."""


class GenerationError(ContextEngineError):
    """Error calling an LLM chat provider."""


class RelevanceGateError(ContextEngineError):
    """Error during the LLM relevance check."""


class RelevanceParseError(RelevanceGateError):
    """The relevance verdict payload could not be parsed."""


class SessionNotFoundError(ContextEngineError):
    """No input session exists for the given id."""
