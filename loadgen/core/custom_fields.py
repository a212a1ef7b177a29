"""Parsing of the ``--custom-fields`` option.

The option is a comma-separated list of ``ID=VALUE`` pairs; each pair becomes
an extra attribute on every Accounting-Request. Entries are keyed by their
position in the input, so repeating an attribute id adds the attribute once
per occurrence instead of overwriting the earlier value.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterator, Mapping

from radgen.exceptions import MalformedCustomFieldError

_ATTRIBUTE_ID_RE = re.compile(r"[0-9]+")
MIN_ATTRIBUTE_ID = 1
MAX_ATTRIBUTE_ID = 255


@dataclass(frozen=True)
class CustomFieldEntry:
    attribute_id: int
    value: str


class CustomFieldTable(Mapping[int, CustomFieldEntry]):
    """Immutable mapping from input position (0..N-1) to custom field entry."""

    def __init__(self, entries: tuple[CustomFieldEntry, ...] = ()) -> None:
        self._entries = tuple(entries)

    def __getitem__(self, position: int) -> CustomFieldEntry:
        if not isinstance(position, int) or not 0 <= position < len(self._entries):
            raise KeyError(position)
        return self._entries[position]

    def __iter__(self) -> Iterator[int]:
        return iter(range(len(self._entries)))

    def __len__(self) -> int:
        return len(self._entries)

    def __repr__(self) -> str:
        return f"CustomFieldTable({list(self._entries)!r})"

    def entries(self) -> tuple[CustomFieldEntry, ...]:
        return self._entries


def parse_custom_fields(spec: str) -> CustomFieldTable:
    """Parse ``"ID=VALUE,ID=VALUE"`` into a table.

    An empty spec yields an empty table. Any malformed segment rejects the
    whole spec.

    Raises:
        MalformedCustomFieldError: a segment has no ``=``, or its ID is not a
            base-10 integer in 1..255.
    """
    if not spec:
        return CustomFieldTable()

    entries: list[CustomFieldEntry] = []
    for position, segment in enumerate(spec.split(",")):
        raw_id, sep, value = segment.partition("=")
        if not sep:
            raise MalformedCustomFieldError(
                "MISSING_SEPARATOR",
                f"custom field {segment!r} is not of the form ID=VALUE",
                {"position": position, "segment": segment},
            )

        raw_id = raw_id.strip()
        if not _ATTRIBUTE_ID_RE.fullmatch(raw_id):
            raise MalformedCustomFieldError(
                "INVALID_ATTRIBUTE_ID",
                f"custom field ID {raw_id!r} is not an integer",
                {"position": position, "segment": segment},
            )

        attribute_id = int(raw_id, 10)
        if not MIN_ATTRIBUTE_ID <= attribute_id <= MAX_ATTRIBUTE_ID:
            raise MalformedCustomFieldError(
                "ATTRIBUTE_ID_OUT_OF_RANGE",
                f"custom field ID {attribute_id} is outside {MIN_ATTRIBUTE_ID}..{MAX_ATTRIBUTE_ID}",
                {"position": position, "segment": segment},
            )

        entries.append(CustomFieldEntry(attribute_id=attribute_id, value=value))

    return CustomFieldTable(tuple(entries))
