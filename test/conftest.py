"""Pytest configuration and fixtures

Provides shared fixtures for all tests: a local accounting server, fake
transports for engine tests and a logger that records calls instead of
printing them.
"""

import asyncio
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import pytest

# Add project root to sys.path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from radgen.exceptions import ExchangeFailure
from radgen.logger import Logger

from loadgen.core.attributes import AttributeSet
from loadgen.core.models import DispatchConfig
from loadgen.core.records import SyntheticRecordSource
from loadgen.core.transport import ExchangeResult
from loadgen.fixtures import AccountingFixtureServer


# ============================================================================
# SHARED CONSTANTS
# ============================================================================

TEST_SECRET = "testing123"
FIXED_TIMESTAMP = datetime(2024, 5, 17, 12, 30, 0, tzinfo=timezone.utc)


def make_config(**overrides: Any) -> DispatchConfig:
    """DispatchConfig pointing at localhost with fast retry settings."""
    values: dict[str, Any] = {
        "server": "127.0.0.1",
        "secret": TEST_SECRET,
        "port": 1813,
        "rate_per_sec": 1000.0,
        "total_requests": 10,
        "retry_interval_seconds": 0.5,
        "max_retries": 3,
    }
    values.update(overrides)
    return DispatchConfig(**values)


def fixed_record_source(seed: int = 7) -> SyntheticRecordSource:
    return SyntheticRecordSource(seed=seed, clock=lambda: FIXED_TIMESTAMP)


# ============================================================================
# FAKES
# ============================================================================


class RecordingLogger(Logger):
    """Logger that keeps (level, message, fields) tuples for assertions."""

    def __init__(self) -> None:
        self.records: list[tuple[str, str, dict[str, Any]]] = []

    def events(self, level: str | None = None) -> list[str]:
        return [message for lvl, message, _ in self.records if level is None or lvl == level]

    def fields_for(self, message: str) -> list[dict[str, Any]]:
        return [fields for _, msg, fields in self.records if msg == message]

    def debug(self, message: str, **kwargs: Any) -> None:
        self.records.append(("debug", message, kwargs))

    def info(self, message: str, **kwargs: Any) -> None:
        self.records.append(("info", message, kwargs))

    def warning(self, message: str, **kwargs: Any) -> None:
        self.records.append(("warning", message, kwargs))

    def error(self, message: str, **kwargs: Any) -> None:
        self.records.append(("error", message, kwargs))

    def critical(self, message: str, **kwargs: Any) -> None:
        self.records.append(("critical", message, kwargs))


class FakeTransport:
    """In-process transport: answers every exchange after ``delay`` seconds.

    ``fail_on`` / ``hang_on`` hold 1-based call numbers that raise an
    ExchangeFailure or never complete. ``raise_on`` maps call numbers to an
    arbitrary exception instance.
    """

    def __init__(
        self,
        *,
        delay: float = 0.0,
        fail_on: set[int] | None = None,
        hang_on: set[int] | None = None,
        raise_on: dict[int, Exception] | None = None,
    ) -> None:
        self._delay = delay
        self._fail_on = fail_on or set()
        self._hang_on = hang_on or set()
        self._raise_on = raise_on or {}
        self.calls: list[AttributeSet] = []
        self.exchange_kwargs: list[dict[str, Any]] = []
        self.in_flight = 0
        self.max_in_flight = 0
        self.cancelled = 0

    async def exchange(
        self,
        attributes: AttributeSet,
        *,
        secret: bytes,
        server: str,
        port: int,
        retry_interval: float,
        max_retries: int,
    ) -> ExchangeResult:
        self.calls.append(attributes)
        self.exchange_kwargs.append(
            {
                "secret": secret,
                "server": server,
                "port": port,
                "retry_interval": retry_interval,
                "max_retries": max_retries,
            }
        )
        call_number = len(self.calls)

        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self._delay:
                await asyncio.sleep(self._delay)
            if call_number in self._hang_on:
                await asyncio.sleep(3600)
            if call_number in self._fail_on:
                raise ExchangeFailure("INJECTED", "injected failure", {"call": call_number})
            if call_number in self._raise_on:
                raise self._raise_on[call_number]
        except asyncio.CancelledError:
            self.cancelled += 1
            raise
        finally:
            self.in_flight -= 1

        return ExchangeResult(reply_code=5, attempts=1, duration_ms=int(self._delay * 1000))


# ============================================================================
# FIXTURES
# ============================================================================


@pytest.fixture
def recording_logger():
    return RecordingLogger()


@pytest.fixture
def acct_server(recording_logger):
    """
    Provide a local accounting server on an ephemeral UDP port.

    Answers every Accounting-Request signed with TEST_SECRET.

    Usage:
        async def test_exchange(acct_server):
            config = make_config(port=acct_server.port)
    """
    with AccountingFixtureServer(secret=TEST_SECRET.encode(), logger=recording_logger) as server:
        yield server


@pytest.fixture
def silent_acct_server(recording_logger):
    """Accounting server that records requests but never answers."""
    with AccountingFixtureServer(
        secret=TEST_SECRET.encode(), respond=False, logger=recording_logger
    ) as server:
        yield server
