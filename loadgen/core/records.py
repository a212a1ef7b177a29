from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from random import Random
from typing import Callable, Protocol


@dataclass(frozen=True)
class CallRecord:
    """One synthetic call-detail record, consumed by exactly one dispatch task."""

    acct_session_id: str
    from_tag: str
    to_tag: str
    caller_id: str
    callee_id: str
    dst_number: str
    response_code: str
    event_timestamp: datetime
    ms_duration: int
    setup_time: int


class RecordSource(Protocol):
    def next_record(self) -> CallRecord: ...


# Weighted towards answered calls, like a real SIP proxy's accounting feed.
_RESPONSE_CODES = ("200", "200", "200", "200", "200", "404", "408", "480", "486", "487", "503")
_COUNTRY_CODE = "55"
_AREA_CODES = ("11", "21", "31", "41", "47", "48", "51", "61", "71", "81")


class SyntheticRecordSource:
    """Generates plausible SIP call records.

    Pass ``seed`` for a reproducible sequence and ``clock`` to pin the event
    timestamp in tests.
    """

    def __init__(
        self,
        *,
        seed: int | None = None,
        clock: Callable[[], datetime] | None = None,
        max_duration_ms: int = 3_600_000,
    ) -> None:
        if max_duration_ms < 1:
            raise ValueError("max_duration_ms must be >= 1")
        self._rng = Random(seed)
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._max_duration_ms = max_duration_ms

    def next_record(self) -> CallRecord:
        response_code = self._rng.choice(_RESPONSE_CODES)
        answered = response_code == "200"
        callee = self._phone_number()

        return CallRecord(
            acct_session_id=self._call_id(),
            from_tag=self._tag(),
            to_tag=self._tag(),
            caller_id=self._phone_number(),
            callee_id=callee,
            dst_number=callee[len(_COUNTRY_CODE):],
            response_code=response_code,
            event_timestamp=self._clock(),
            ms_duration=self._rng.randint(1, self._max_duration_ms) if answered else 0,
            setup_time=self._rng.randint(0, 30),
        )

    def _tag(self) -> str:
        return f"{self._rng.getrandbits(32):08x}"

    def _call_id(self) -> str:
        return str(uuid.UUID(int=self._rng.getrandbits(128), version=4))

    def _phone_number(self) -> str:
        area = self._rng.choice(_AREA_CODES)
        subscriber = "9" + "".join(str(self._rng.randint(0, 9)) for _ in range(8))
        return f"{_COUNTRY_CODE}{area}{subscriber}"
