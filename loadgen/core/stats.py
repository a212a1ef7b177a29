from __future__ import annotations

import asyncio
from dataclasses import dataclass

from radgen.logger import Logger, session_logger


class ProgressCounter:
    """Count of successful exchanges in the current run.

    Only touched from the event-loop thread: ``increment`` never awaits, so
    concurrent dispatch tasks cannot interleave inside it.
    """

    def __init__(self) -> None:
        self._value = 0

    @property
    def value(self) -> int:
        return self._value

    def increment(self) -> int:
        self._value += 1
        return self._value


@dataclass(frozen=True)
class StatsSample:
    per_second: float
    total: int


class StatsCollector:
    """Periodically samples the progress counter and logs throughput."""

    def __init__(
        self,
        counter: ProgressCounter,
        total_requests: int,
        *,
        interval_seconds: float = 1.0,
        logger: Logger | None = None,
    ) -> None:
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be > 0")
        self._counter = counter
        self._total_requests = total_requests
        self._interval = interval_seconds
        self._logger = logger or session_logger
        self.last_sample: StatsSample | None = None
        self.sample_count = 0

    async def run(self, stop_event: asyncio.Event | None = None) -> None:
        """Report until the counter reaches the total or ``stop_event`` is set."""
        while True:
            before = self._counter.value
            if before >= self._total_requests:
                break

            if stop_event is None:
                await asyncio.sleep(self._interval)
            else:
                try:
                    await asyncio.wait_for(stop_event.wait(), timeout=self._interval)
                except asyncio.TimeoutError:
                    pass
                else:
                    break

            after = self._counter.value
            sample = StatsSample(per_second=(after - before) / self._interval, total=after)
            self.last_sample = sample
            self.sample_count += 1

            self._logger.info(
                "gen.stats",
                event="gen.stats",
                estimated_per_second=round(sample.per_second, 2),
                total=sample.total,
            )
