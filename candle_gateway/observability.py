"""Request timing and per-route outcome counters for the HTTP layer."""
from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timezone
from threading import Lock
from time import perf_counter


@dataclass
class RouteStats:
    count: int = 0
    total_ms: float = 0.0
    max_ms: float = 0.0
    statuses: Counter = field(default_factory=Counter)


class RuntimeObservability:
    """Aggregates API latency and status codes per route since process start."""

    def __init__(self):
        self.process_started_at = datetime.now(timezone.utc)
        self._routes: dict[str, RouteStats] = {}
        self._lock = Lock()

    def record_request(self, path: str, status_code: int, elapsed_ms: float):
        with self._lock:
            stats = self._routes.setdefault(path, RouteStats())
            stats.count += 1
            stats.total_ms += elapsed_ms
            stats.max_ms = max(stats.max_ms, elapsed_ms)
            stats.statuses[str(status_code)] += 1

    def snapshot(self) -> dict[str, dict]:
        with self._lock:
            return {
                path: {
                    "request_count": s.count,
                    "average_ms": round(s.total_ms / s.count, 3) if s.count else 0.0,
                    "max_ms": round(s.max_ms, 3),
                    "status_codes": dict(s.statuses),
                }
                for path, s in self._routes.items()
            }

    def request_count(self) -> int:
        with self._lock:
            return sum(s.count for s in self._routes.values())

    def uptime_seconds(self) -> float:
        return (datetime.now(timezone.utc) - self.process_started_at).total_seconds()


class RequestTimer:
    def __init__(self):
        self._started = perf_counter()

    def elapsed_ms(self) -> float:
        return (perf_counter() - self._started) * 1000


observability = RuntimeObservability()
