from __future__ import annotations

import pytest

from loadgen.core.metrics import MetricsCollector, _interpolated_percentile, _LatencyReservoir


@pytest.mark.asyncio
async def test_metrics_collector_percentiles_and_errors(recording_logger):
    collector = MetricsCollector(sample_size=50, logger=recording_logger)

    durations = [10, 20, 30, 40, 50]
    for d in durations:
        await collector.record(duration_ms=d, success=True)

    # Add a failure to ensure error_count is tracked.
    await collector.record(duration_ms=60, success=False, error_type="DEADLINE_EXCEEDED")

    report = await collector.build_report()
    overall = report["overall"]

    assert overall["count"] == 6
    assert overall["error_count"] == 1
    assert overall["min_ms"] == 10
    assert overall["max_ms"] == 60
    assert overall["mean_ms"] == pytest.approx(35.0)

    # Values are [10,20,30,40,50,60] => median is (30+40)/2 = 35.
    assert overall["p50_ms"] == 35.0
    assert overall["sample_size"] == 6

    assert overall["error_rate_pct"] == pytest.approx(16.67, abs=0.01)
    assert overall["error_types"] == {"DEADLINE_EXCEEDED": 1}
    assert "gen.metric_error_recorded" in recording_logger.events("debug")


@pytest.mark.asyncio
async def test_sends_histogram_counts_successes_only(recording_logger):
    collector = MetricsCollector(logger=recording_logger)

    await collector.record(duration_ms=5, success=True, sends=1)
    await collector.record(duration_ms=5, success=True, sends=1)
    await collector.record(duration_ms=3005, success=True, sends=2)
    await collector.record(duration_ms=9000, success=False, sends=3, error_type="NO_REPLY")

    report = await collector.build_report()

    assert report["sends_per_exchange"] == {"1": 2, "2": 1}


@pytest.mark.asyncio
async def test_empty_report(recording_logger):
    report = await MetricsCollector(logger=recording_logger).build_report()

    overall = report["overall"]
    assert overall["count"] == 0
    assert overall["mean_ms"] is None
    assert overall["p99_ms"] is None
    assert overall["error_rate_pct"] == 0.0
    assert report["sends_per_exchange"] == {}


@pytest.mark.asyncio
async def test_negative_durations_are_clamped(recording_logger):
    collector = MetricsCollector(logger=recording_logger)

    await collector.record(duration_ms=-5, success=True)

    report = await collector.build_report()
    assert report["overall"]["min_ms"] == 0


def test_percentile_interpolates():
    values = [10, 20, 30, 40]

    assert _interpolated_percentile(values, 0.0) == 10.0
    assert _interpolated_percentile(values, 1.0) == 40.0
    assert _interpolated_percentile(values, 0.5) == 25.0
    assert _interpolated_percentile([], 0.5) is None


def test_latency_reservoir_is_bounded():
    reservoir = _LatencyReservoir(10, seed=1)
    for value in range(1000):
        reservoir.offer(value)

    values = reservoir.snapshot()
    assert len(values) == 10
    assert all(0 <= v < 1000 for v in values)


def test_latency_reservoir_rejects_zero_size():
    with pytest.raises(ValueError):
        _LatencyReservoir(0)
