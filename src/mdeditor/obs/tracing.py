"""Tracing and summary metrics for render passes and assistant calls."""

from __future__ import annotations

import time
import uuid
from collections import Counter
from dataclasses import dataclass
from datetime import datetime, timezone

from mdeditor.types import PassResult


@dataclass(slots=True)
class RenderTrace:
    trace_id: str
    timestamp_utc: str
    input_chars: int
    output_chars: int
    passes: list[PassResult]
    latency_ms: float


@dataclass(slots=True)
class AssistantTrace:
    trace_id: str
    timestamp_utc: str
    action: str
    mode: str
    output_preview: str
    failed: bool
    latency_ms: float


class TraceStore:
    """In-memory trace storage for API-level observability.

    Only the most recent `capacity` records of each kind are kept, since a
    render trace is produced on every keystroke.
    """

    def __init__(self, *, capacity: int = 500) -> None:
        self._capacity = capacity
        self._render: dict[str, RenderTrace] = {}
        self._assistant: dict[str, AssistantTrace] = {}
        self._failed_passes: Counter[str] = Counter()
        self._render_total = 0
        self._render_latency_total = 0.0

    def create_render_record(
        self,
        *,
        input_chars: int,
        output_chars: int,
        passes: list[PassResult],
        latency_ms: float,
    ) -> RenderTrace:
        record = RenderTrace(
            trace_id=str(uuid.uuid4()),
            timestamp_utc=_utc_now(),
            input_chars=input_chars,
            output_chars=output_chars,
            passes=list(passes),
            latency_ms=latency_ms,
        )
        self._render[record.trace_id] = record
        self._render_total += 1
        self._render_latency_total += latency_ms
        self._failed_passes.update(result.name for result in passes if not result.ok)
        _evict(self._render, self._capacity)
        return record

    def create_assistant_record(
        self,
        *,
        action: str,
        mode: str,
        output: str,
        failed: bool,
        latency_ms: float,
    ) -> AssistantTrace:
        record = AssistantTrace(
            trace_id=str(uuid.uuid4()),
            timestamp_utc=_utc_now(),
            action=action,
            mode=mode,
            output_preview=output[:320],
            failed=failed,
            latency_ms=latency_ms,
        )
        self._assistant[record.trace_id] = record
        _evict(self._assistant, self._capacity)
        return record

    def get(self, trace_id: str) -> RenderTrace | AssistantTrace:
        record = self._render.get(trace_id) or self._assistant.get(trace_id)
        if record is None:
            raise KeyError(f"Trace not found: {trace_id}")
        return record

    def list_render(self, limit: int = 20) -> list[RenderTrace]:
        return list(self._render.values())[-limit:]

    def list_assistant(self, limit: int = 20) -> list[AssistantTrace]:
        return list(self._assistant.values())[-limit:]

    def summary(self) -> dict[str, object]:
        """Aggregate render and assistant metrics for dashboard display."""
        assistant = list(self._assistant.values())
        assistant_latency = (
            sum(record.latency_ms for record in assistant) / len(assistant)
            if assistant
            else 0.0
        )
        return {
            "total_renders": self._render_total,
            "avg_render_latency_ms": (
                self._render_latency_total / self._render_total if self._render_total else 0.0
            ),
            "failed_passes": dict(self._failed_passes),
            "total_assistant_requests": len(assistant),
            "failed_assistant_requests": sum(1 for record in assistant if record.failed),
            "avg_assistant_latency_ms": assistant_latency,
        }


class Timer:
    """Simple context timer used by the pipeline and dispatcher."""

    def __init__(self) -> None:
        self._start = 0.0
        self.elapsed_ms = 0.0

    def __enter__(self) -> "Timer":
        self._start = time.perf_counter()
        return self

    def __exit__(self, exc_type: object, exc: object, tb: object) -> None:
        self.elapsed_ms = (time.perf_counter() - self._start) * 1000.0


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _evict(records: dict[str, object], capacity: int) -> None:
    while len(records) > capacity:
        records.pop(next(iter(records)))
