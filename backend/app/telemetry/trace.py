from __future__ import annotations

import json
from contextvars import ContextVar, Token
from dataclasses import dataclass, field
from time import perf_counter
from uuid import UUID, uuid4

_current: ContextVar["RequestTrace | None"] = ContextVar("places_request_trace", default=None)


@dataclass
class StageTiming:
    elapsed_ms: float = 0.0
    calls: int = 0

    def add(self, duration_ms: float) -> None:
        self.elapsed_ms += duration_ms
        self.calls += 1


@dataclass
class RequestTrace:
    """Per-request timings, keyed by stage name (``db`` for store round trips)."""

    path: str = ""
    method: str = "GET"
    request_id: UUID = field(default_factory=uuid4)
    stages: dict[str, StageTiming] = field(default_factory=dict)
    result_count: int | None = None
    total_time_ms: float | None = None
    _started: float = field(default_factory=perf_counter, repr=False)

    def record_stage_time(self, stage: str, duration_ms: float) -> None:
        self.stages.setdefault(stage, StageTiming()).add(duration_ms)

    @property
    def db_time_ms(self) -> float:
        timing = self.stages.get("db")
        return timing.elapsed_ms if timing else 0.0

    @property
    def db_round_trips(self) -> int:
        timing = self.stages.get("db")
        return timing.calls if timing else 0

    def set_result_count(self, result_count: int) -> None:
        self.result_count = result_count

    def finalize(self) -> None:
        if self.total_time_ms is None:
            self.total_time_ms = (perf_counter() - self._started) * 1000.0

    def to_header_value(self) -> str:
        return json.dumps(
            {
                "request_id": str(self.request_id),
                "db_time_ms": round(self.db_time_ms, 3),
                "db_round_trips": self.db_round_trips,
                "total_time_ms": None if self.total_time_ms is None else round(self.total_time_ms, 3),
                "result_count": self.result_count,
            },
            separators=(",", ":"),
        )


def get_current_trace() -> RequestTrace | None:
    return _current.get()


def set_current_trace(trace: RequestTrace) -> Token:
    return _current.set(trace)


def reset_current_trace(token: Token) -> None:
    _current.reset(token)
