from __future__ import annotations

from typing import Any

from loadgen.core.models import DispatchConfig, RunResult


def build_run_report(config: DispatchConfig, result: RunResult) -> dict[str, Any]:
    config_payload = {
        "server": config.server,
        "port": config.port,
        "nas_ip_address": config.nas_ip_address,
        "nas_port": config.nas_port,
        "rate_per_sec": config.rate_per_sec,
        "total_requests": None if config.is_unbounded else config.total_requests,
        "retry_interval_seconds": config.retry_interval_seconds,
        "max_retries": config.max_retries,
        "exchange_deadline_seconds": config.exchange_deadline_seconds,
        "custom_fields": config.custom_fields,
    }
    return {
        "config": config_payload,
        "result": {
            "issued_count": result.issued_count,
            "completed_count": result.completed_count,
            "stopped_early": result.stopped_early,
            "duration_seconds": result.duration_seconds,
            "throughput_rps": result.throughput_rps,
        },
        "metrics": result.metrics_report,
    }
