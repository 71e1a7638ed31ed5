"""Central configuration via Pydantic Settings. All values driven by env vars."""

from __future__ import annotations

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Retrieval daemon
    daemon_base_url: str = "http://127.0.0.1:46299"
    daemon_api_prefix: str = "/api/v1"
    daemon_auth_token: str = ""
    context_pack_timeout_s: float = 5.0

    # LLM relevance gate
    llm_provider: str = "gemini"  # "gemini", "openai" or "none"
    google_api_key: str = ""
    openai_api_key: str = ""
    gemini_model: str = "gemini-2.0-flash"
    openai_model: str = "gpt-4o-mini"
    llm_temperature: float = 0.0
    llm_max_tokens: int = 1024

    # Pipeline timing
    debounce_s: float = 0.18
    gate_stabilization_delay_s: float = 0.12
    gate_min_idle_s: float = 0.65

    # Query normalizer
    query_passthrough_max_chars: int = 180
    query_max_keywords: int = 14
    query_max_chars: int = 260

    # Query expander
    expansion_min_query_chars: int = 56
    expansion_min_keywords: int = 4
    expansion_max_count: int = 1
    spacy_model: str = "en_core_web_sm"

    # Retrieval profiles
    primary_fast_limit: int = 12
    primary_fast_timeout_s: float = 1.2
    primary_deep_limit: int = 24
    primary_deep_timeout_s: float = 1.8
    expansion_fast_limit: int = 8
    expansion_fast_timeout_s: float = 1.2

    # Retrieval orchestration
    deep_min_query_chars: int = 56
    deep_min_keywords: int = 4
    deep_sufficient_results: int = 8
    expansion_candidate_cutoff: int = 12
    retrieval_timeout_retries: int = 1
    retrieval_retry_delay_s: float = 0.12
    retrieval_retry_timeout_increment_s: float = 0.6

    # Merge / rank
    expansion_only_penalty: float = 0.09
    base_tie_break_delta: float = 0.05
    max_candidates: int = 18

    # Relevance gate
    gate_min_draft_chars: int = 56
    gate_min_keywords: int = 4
    gate_min_candidates: int = 4
    gate_accept_confidence: float = 0.72
    gate_min_keyword_overlap: float = 0.10
    gate_high_confidence: float = 0.90
    gate_high_confidence_min_overlap: float = 0.05
    gate_no_keyword_confidence: float = 0.82
    gate_snippet_max_chars: int = 320
    gate_fallback_max: int = 3
    gate_fallback_min_overlap: float = 0.12
    gate_fallback_min_score: float = 0.24
    gate_fallback_exclude_confidence: float = 0.85

    # Server
    host: str = "127.0.0.1"
    port: int = 8077
    log_level: str = "INFO"
    log_json: bool = True

    model_config = {"env_file": ".env", "env_prefix": "CTX_"}
