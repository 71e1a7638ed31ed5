"""Per-run stage timing for the suggestion pipeline."""

from __future__ import annotations

import time
from contextlib import contextmanager
from dataclasses import dataclass, field


@dataclass
class Span:
    name: str
    start_ms: float
    end_ms: float = 0.0
    metadata: dict = field(default_factory=dict)

    @property
    def duration_ms(self) -> float:
        return self.end_ms - self.start_ms


class PipelineTrace:
    def __init__(self, session_id: str, request_id: int) -> None:
        self.session_id = session_id
        self.request_id = request_id
        self.spans: list[Span] = []
        self.start_time = time.monotonic()
        self.outcome = "running"

    @contextmanager
    def span(self, name: str, **metadata):
        s = Span(
            name=name,
            start_ms=(time.monotonic() - self.start_time) * 1000,
            metadata=metadata,
        )
        try:
            yield s
        finally:
            s.end_ms = (time.monotonic() - self.start_time) * 1000
            self.spans.append(s)

    @property
    def elapsed_ms(self) -> float:
        return (time.monotonic() - self.start_time) * 1000

    def to_dict(self) -> dict:
        return {
            "session_id": self.session_id,
            "request_id": self.request_id,
            "outcome": self.outcome,
            "latency_ms": round(self.elapsed_ms, 2),
            "spans": [
                {
                    "name": s.name,
                    "duration_ms": round(s.duration_ms, 2),
                    **s.metadata,
                }
                for s in self.spans
            ],
        }
