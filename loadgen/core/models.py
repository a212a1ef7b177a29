from __future__ import annotations

import sys
from dataclasses import dataclass
from enum import Enum
from typing import Any

DEFAULT_PORT = 1813
DEFAULT_NAS_IP_ADDRESS = "127.0.0.1"
DEFAULT_NAS_PORT = 5666
DEFAULT_RATE_PER_SEC = 10.0
DEFAULT_RETRY_INTERVAL_SECONDS = 3.0
DEFAULT_MAX_RETRIES = 20
DEFAULT_NO_RETRY_TIMEOUT_SECONDS = 3.0

# Largest request count; treated as "run until stopped".
UNBOUNDED_REQUESTS = sys.maxsize


class TaskState(str, Enum):
    """Lifecycle of a single dispatch task."""

    PENDING = "pending"
    ASSEMBLING = "assembling"
    SENDING = "sending"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass(frozen=True)
class DispatchConfig:
    """Run parameters, validated once at startup and shared read-only by all tasks."""

    server: str
    secret: str
    port: int = DEFAULT_PORT
    nas_ip_address: str = DEFAULT_NAS_IP_ADDRESS
    nas_port: int = DEFAULT_NAS_PORT
    rate_per_sec: float = DEFAULT_RATE_PER_SEC
    total_requests: int = UNBOUNDED_REQUESTS
    retry_interval_seconds: float = DEFAULT_RETRY_INTERVAL_SECONDS
    max_retries: int = DEFAULT_MAX_RETRIES
    custom_fields: str = ""
    show_stats: bool = False
    no_retry_timeout_seconds: float = DEFAULT_NO_RETRY_TIMEOUT_SECONDS

    @property
    def secret_bytes(self) -> bytes:
        return self.secret.encode("utf-8")

    @property
    def exchange_deadline_seconds(self) -> float:
        """Overall bound on one exchange, measured from task start.

        ``retry interval x max retries``; when retry is disabled (non-positive
        interval) the single send is bounded by ``no_retry_timeout_seconds``.
        """
        deadline = self.retry_interval_seconds * self.max_retries
        if deadline <= 0:
            return self.no_retry_timeout_seconds
        return deadline

    @property
    def is_unbounded(self) -> bool:
        return self.total_requests >= UNBOUNDED_REQUESTS


@dataclass
class RunResult:
    started_at_monotonic: float
    ended_at_monotonic: float
    issued_count: int
    completed_count: int
    stopped_early: bool = False
    metrics_report: dict[str, Any] | None = None

    @property
    def duration_seconds(self) -> float:
        return max(0.0, self.ended_at_monotonic - self.started_at_monotonic)

    @property
    def throughput_rps(self) -> float:
        duration = self.duration_seconds
        return (self.completed_count / duration) if duration > 0 else 0.0
