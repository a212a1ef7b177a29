from __future__ import annotations

import asyncio
import signal
import time
from typing import Coroutine

from radgen.exceptions import ExchangeFailure, ExchangeTimeoutError, RadgenError
from radgen.logger import Logger, session_logger
from radgen.rate_limit import RateLimiter

from loadgen.core.attributes import assemble_attributes
from loadgen.core.custom_fields import CustomFieldTable, parse_custom_fields
from loadgen.core.metrics import MetricsCollector
from loadgen.core.models import DispatchConfig, RunResult, TaskState
from loadgen.core.records import RecordSource, SyntheticRecordSource
from loadgen.core.stats import ProgressCounter, StatsCollector
from loadgen.core.transport import RadiusTransport, Transport


class TaskSupervisor:
    """Owns every outstanding dispatch task.

    The first task that fails records its exception and sets ``stop_event``;
    ``join()`` then cancels the remaining tasks.
    """

    def __init__(self, stop_event: asyncio.Event) -> None:
        self._stop_event = stop_event
        self._tasks: set[asyncio.Task[None]] = set()
        self.failure: BaseException | None = None

    @property
    def outstanding(self) -> int:
        return len(self._tasks)

    def spawn(self, coro: Coroutine[object, object, None], *, name: str | None = None) -> asyncio.Task[None]:
        task = asyncio.create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._on_done)
        return task

    def _on_done(self, task: asyncio.Task[None]) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None and self.failure is None:
            self.failure = exc
            self._stop_event.set()

    async def join(self) -> None:
        """Wait for every task to finish, or for the first failure."""
        while self._tasks and self.failure is None:
            await asyncio.wait(set(self._tasks), return_when=asyncio.FIRST_EXCEPTION)
        await self.cancel_all()

    async def cancel_all(self) -> None:
        pending = list(self._tasks)
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)


class DispatchEngine:
    """Issues rate-limited Accounting-Request exchanges until the total is reached.

    Every permit from the rate limiter spawns one independent task. A single
    failed exchange stops the run: issuing stops, in-flight tasks are
    cancelled and the failure is re-raised from ``run()``.
    """

    def __init__(
        self,
        config: DispatchConfig,
        *,
        transport: Transport | None = None,
        record_source: RecordSource | None = None,
        rate_limiter: RateLimiter | None = None,
        custom_fields: CustomFieldTable | None = None,
        metrics: MetricsCollector | None = None,
        logger: Logger | None = None,
        stats_interval_seconds: float = 1.0,
    ) -> None:
        self._config = config
        self._logger = logger or session_logger
        self._transport = transport or RadiusTransport(logger=self._logger)
        self._records = record_source or SyntheticRecordSource()
        self._limiter = rate_limiter or RateLimiter(config.rate_per_sec)
        self._custom_fields = (
            custom_fields if custom_fields is not None else parse_custom_fields(config.custom_fields)
        )
        self._metrics = metrics or MetricsCollector(logger=self._logger)
        self._stats_interval = stats_interval_seconds

        self.progress = ProgressCounter()
        self.issued = 0

    async def run(self) -> RunResult:
        stop_event = asyncio.Event()
        supervisor = TaskSupervisor(stop_event)
        stats_task: asyncio.Task[None] | None = None
        interrupted = False

        self._logger.info(
            "gen.start",
            event="gen.start",
            server=self._config.server,
            port=self._config.port,
            rate_per_sec=self._config.rate_per_sec,
            total_requests=None if self._config.is_unbounded else self._config.total_requests,
            retry_interval_seconds=self._config.retry_interval_seconds,
            max_retries=self._config.max_retries,
            exchange_deadline_seconds=self._config.exchange_deadline_seconds,
            custom_fields=len(self._custom_fields),
        )

        def _handle_signal(signum: int, _frame) -> None:  # pragma: no cover
            nonlocal interrupted
            interrupted = True
            self._logger.warning("gen.signal", event="gen.signal", signum=signum)
            stop_event.set()

        started = time.monotonic()
        try:
            with _SignalHandlers(_handle_signal):
                if self._config.show_stats:
                    collector = StatsCollector(
                        self.progress,
                        self._config.total_requests,
                        interval_seconds=self._stats_interval,
                        logger=self._logger,
                    )
                    stats_task = asyncio.create_task(collector.run(stop_event), name="stats")

                while self.issued < self._config.total_requests and not stop_event.is_set():
                    await self._limiter.take()
                    if stop_event.is_set():
                        break
                    self.issued += 1
                    supervisor.spawn(self._dispatch(self.issued), name=f"dispatch-{self.issued}")

                await supervisor.join()
                if stats_task is not None:
                    # Returns once the counter reaches the total or the stop event is set.
                    await stats_task
        finally:
            await supervisor.cancel_all()
            if stats_task is not None and not stats_task.done():
                stop_event.set()
                await asyncio.gather(stats_task, return_exceptions=True)

        ended = time.monotonic()

        if supervisor.failure is not None:
            self._logger.error(
                "gen.aborted",
                event="gen.aborted",
                issued=self.issued,
                completed=self.progress.value,
                duration_seconds=round(ended - started, 3),
            )
            raise supervisor.failure

        result = RunResult(
            started_at_monotonic=started,
            ended_at_monotonic=ended,
            issued_count=self.issued,
            completed_count=self.progress.value,
            stopped_early=interrupted,
            metrics_report=await self._metrics.build_report(),
        )

        self._logger.info(
            "gen.end",
            event="gen.end",
            issued=result.issued_count,
            completed=result.completed_count,
            stopped_early=result.stopped_early,
            duration_seconds=round(result.duration_seconds, 3),
            throughput_rps=round(result.throughput_rps, 2),
        )
        return result

    async def _dispatch(self, sequence: int) -> None:
        config = self._config
        loop = asyncio.get_running_loop()
        started = loop.time()
        deadline = config.exchange_deadline_seconds
        state = TaskState.PENDING

        try:
            state = TaskState.ASSEMBLING
            record = self._records.next_record()
            attributes = assemble_attributes(record, config, self._custom_fields)

            state = TaskState.SENDING
            remaining = max(0.0, deadline - (loop.time() - started))
            result = await asyncio.wait_for(
                self._transport.exchange(
                    attributes,
                    secret=config.secret_bytes,
                    server=config.server,
                    port=config.port,
                    retry_interval=config.retry_interval_seconds,
                    max_retries=config.max_retries,
                ),
                timeout=remaining,
            )
        except asyncio.TimeoutError as exc:
            error: RadgenError = ExchangeTimeoutError(
                "DEADLINE_EXCEEDED",
                f"exchange did not complete within {deadline:g}s",
                {"sequence": sequence, "deadline_seconds": deadline},
            )
            await self._fail(sequence, state, started, error)
            raise error from exc
        except RadgenError as exc:
            await self._fail(sequence, state, started, exc)
            raise
        except Exception as exc:
            error = ExchangeFailure(
                "EXCHANGE_ERROR",
                f"{type(exc).__name__}: {exc}",
                {"sequence": sequence},
            )
            await self._fail(sequence, state, started, error)
            raise error from exc

        total = self.progress.increment()
        await self._metrics.record(duration_ms=result.duration_ms, success=True, sends=result.attempts)
        self._logger.debug(
            "gen.dispatch_ok",
            event="gen.dispatch_ok",
            sequence=sequence,
            state=TaskState.SUCCEEDED.value,
            acct_session_id=record.acct_session_id,
            reply_code=result.reply_code,
            sends=result.attempts,
            duration_ms=result.duration_ms,
            total=total,
        )

    async def _fail(self, sequence: int, state: TaskState, started: float, error: RadgenError) -> None:
        duration_ms = int((asyncio.get_running_loop().time() - started) * 1000)
        self._logger.error(
            "gen.dispatch_failed",
            event="gen.dispatch_failed",
            sequence=sequence,
            state=TaskState.FAILED.value,
            failed_while=state.value,
            error_type=type(error).__name__,
            error=str(error),
            duration_ms=duration_ms,
        )
        await self._metrics.record(duration_ms=duration_ms, success=False, error_type=error.code)


class _SignalHandlers:
    def __init__(self, handler) -> None:
        self._handler = handler
        self._previous: dict[int, object] = {}

    def __enter__(self):
        for signum in (signal.SIGINT, signal.SIGTERM):
            try:
                self._previous[signum] = signal.signal(signum, self._handler)
            except (ValueError, OSError):
                # Only the main thread may install handlers.
                continue
        return self

    def __exit__(self, exc_type, exc, tb):
        for signum, previous in self._previous.items():
            signal.signal(signum, previous)  # type: ignore[arg-type]
        return False
