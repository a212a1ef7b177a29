"""Exchange latency and retransmission metrics for the run report.

Latencies are kept in a bounded reservoir so unbounded runs use flat memory;
percentiles are computed from that sample when the report is built.
"""

from __future__ import annotations

import asyncio
import random
from dataclasses import dataclass, field
from typing import Any

from radgen.logger import Logger, session_logger


def _interpolated_percentile(ordered: list[int], fraction: float) -> float | None:
    """Percentile of an ascending list, interpolating between neighbours."""
    if not ordered:
        return None

    position = min(max(fraction, 0.0), 1.0) * (len(ordered) - 1)
    lower = int(position)
    upper = min(lower + 1, len(ordered) - 1)
    return float(ordered[lower] + (ordered[upper] - ordered[lower]) * (position - lower))


class _LatencyReservoir:
    """Uniform sample of at most ``capacity`` latencies (Algorithm R)."""

    def __init__(self, capacity: int, *, seed: int | None = None) -> None:
        if capacity <= 0:
            raise ValueError("capacity must be > 0")
        self._capacity = capacity
        self._rng = random.Random(seed)
        self._offered = 0
        self._kept: list[int] = []

    def offer(self, latency_ms: int) -> None:
        self._offered += 1
        if len(self._kept) < self._capacity:
            self._kept.append(latency_ms)
            return

        slot = self._rng.randrange(self._offered)
        if slot < self._capacity:
            self._kept[slot] = latency_ms

    def snapshot(self) -> list[int]:
        """Sampled latencies, ascending."""
        return sorted(self._kept)


@dataclass
class _ExchangeTotals:
    exchanges: int = 0
    failures: int = 0
    total_ms: int = 0
    fastest_ms: int | None = None
    slowest_ms: int | None = None
    failures_by_code: dict[str, int] = field(default_factory=dict)
    # Successful exchanges keyed by how many sends they needed.
    sends_needed: dict[int, int] = field(default_factory=dict)


class MetricsCollector:
    """Collects exchange latency and retransmission counts for a run."""

    def __init__(
        self,
        *,
        sample_size: int = 5000,
        logger: Logger | None = None,
    ) -> None:
        self._logger = logger or session_logger
        self._lock = asyncio.Lock()
        self._totals = _ExchangeTotals()
        self._latencies = _LatencyReservoir(sample_size)

    async def record(
        self,
        *,
        duration_ms: int,
        success: bool,
        sends: int = 1,
        error_type: str | None = None,
    ) -> None:
        """Record one finished exchange; ``error_type`` is the failure's error code."""
        duration_ms = max(0, duration_ms)

        async with self._lock:
            totals = self._totals
            totals.exchanges += 1
            totals.total_ms += duration_ms
            if totals.fastest_ms is None or duration_ms < totals.fastest_ms:
                totals.fastest_ms = duration_ms
            if totals.slowest_ms is None or duration_ms > totals.slowest_ms:
                totals.slowest_ms = duration_ms

            if success:
                totals.sends_needed[sends] = totals.sends_needed.get(sends, 0) + 1
            else:
                code = error_type or "unknown"
                totals.failures += 1
                totals.failures_by_code[code] = totals.failures_by_code.get(code, 0) + 1

            self._latencies.offer(duration_ms)

        if not success and error_type:
            self._logger.debug(
                "gen.metric_error_recorded",
                event="gen.metric_error_recorded",
                error_type=error_type,
            )

    async def build_report(self) -> dict[str, Any]:
        async with self._lock:
            totals = self._totals
            latencies = self._latencies.snapshot()

            if totals.exchanges:
                mean_ms: float | None = totals.total_ms / totals.exchanges
                error_rate = totals.failures / totals.exchanges * 100
            else:
                mean_ms = None
                error_rate = 0.0

            return {
                "overall": {
                    "count": totals.exchanges,
                    "error_count": totals.failures,
                    "error_rate_pct": round(error_rate, 2),
                    "error_types": dict(totals.failures_by_code),
                    "min_ms": totals.fastest_ms,
                    "max_ms": totals.slowest_ms,
                    "mean_ms": mean_ms,
                    "p50_ms": _interpolated_percentile(latencies, 0.50),
                    "p95_ms": _interpolated_percentile(latencies, 0.95),
                    "p99_ms": _interpolated_percentile(latencies, 0.99),
                    "sample_size": len(latencies),
                },
                "sends_per_exchange": {
                    str(sends): count for sends, count in sorted(totals.sends_needed.items())
                },
            }
