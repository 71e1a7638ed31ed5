"""Metric recording helpers for pipeline runs."""

from __future__ import annotations

from context_engine.observability.logger import get_logger

logger = get_logger("metrics")


def log_retrieval_metrics(
    profile: str,
    num_suggestions: int,
    attempts: int,
    latency_ms: float,
    error: str | None = None,
) -> None:
    logger.info(
        "retrieval_metrics",
        profile=profile,
        num_suggestions=num_suggestions,
        attempts=attempts,
        latency_ms=round(latency_ms, 2),
        failed=error is not None,
    )


def log_gate_metrics(
    num_candidates: int,
    accepted: int,
    fallback: int,
    applied: bool,
    reason: str,
) -> None:
    logger.info(
        "relevance_gate_metrics",
        num_candidates=num_candidates,
        accepted=accepted,
        fallback=fallback,
        applied=applied,
        reason=reason,
    )


def log_pipeline_trace(trace: dict) -> None:
    logger.info("pipeline_trace", **trace)
