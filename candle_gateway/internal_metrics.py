from __future__ import annotations

from dataclasses import dataclass
from threading import Lock


@dataclass
class UpstreamMetrics:
    total_pages: int = 0
    successful_pages: int = 0
    failed_pages: int = 0
    rows_received: int = 0
    latency_total_ms: float = 0.0

    def avg_latency_ms(self) -> float:
        if self.total_pages == 0:
            return 0.0
        return self.latency_total_ms / self.total_pages


class MetricsCollector:
    def __init__(self):
        self._per_upstream: dict[str, UpstreamMetrics] = {}
        self._lock = Lock()

    def _get(self, upstream: str) -> UpstreamMetrics:
        if upstream not in self._per_upstream:
            self._per_upstream[upstream] = UpstreamMetrics()
        return self._per_upstream[upstream]

    def record_page(self, upstream: str, success: bool, latency_ms: float, rows: int = 0):
        with self._lock:
            m = self._get(upstream)
            m.total_pages += 1
            m.latency_total_ms += max(latency_ms, 0.0)
            if success:
                m.successful_pages += 1
                m.rows_received += rows
            else:
                m.failed_pages += 1

    def upstream_status(self) -> dict[str, dict[str, float | int]]:
        with self._lock:
            out: dict[str, dict[str, float | int]] = {}
            for name, m in self._per_upstream.items():
                failure_rate = 0.0 if m.total_pages == 0 else (m.failed_pages / m.total_pages)
                out[name] = {
                    "total_pages": m.total_pages,
                    "successful_pages": m.successful_pages,
                    "failed_pages": m.failed_pages,
                    "rows_received": m.rows_received,
                    "failure_rate": round(failure_rate, 4),
                    "average_latency_ms": round(m.avg_latency_ms(), 3),
                }
            return out

    def global_metrics(self) -> dict[str, float | int | dict]:
        per = self.upstream_status()
        total_pages = sum(v["total_pages"] for v in per.values())
        total_failed = sum(v["failed_pages"] for v in per.values())
        weighted_latency = sum((v["average_latency_ms"] * v["total_pages"]) for v in per.values())
        average_latency = 0.0 if total_pages == 0 else (weighted_latency / total_pages)
        return {
            "page_count": total_pages,
            "failed_page_count": total_failed,
            "average_page_latency_ms": round(average_latency, 3),
            "per_upstream": per,
        }


metrics = MetricsCollector()
