from __future__ import annotations

import ipaddress
from dataclasses import dataclass
from typing import Any, Iterator

from radgen.exceptions import InvalidAddressError

from loadgen.core.custom_fields import CustomFieldTable
from loadgen.core.models import DispatchConfig
from loadgen.core.records import CallRecord

# Dictionary attribute names (see loadgen/dictionaries/dictionary.routecall).
ACCT_STATUS_TYPE = "Sip-Acct-Status-Type"
SERVICE_TYPE = "Sip-Service-Type"
RESPONSE_CODE = "Sip-Response-Code"
METHOD = "Sip-Method"
EVENT_TIMESTAMP = "Sip-Event-Timestamp"
FROM_TAG = "Sip-From-Tag"
TO_TAG = "Sip-To-Tag"
CALLER_ID = "Sip-Caller-ID"
CALLEE_ID = "Sip-Callee-ID"
DST_NUMBER = "Sip-Dst-Number"
ACCT_SESSION_ID = "Sip-Acct-Session-ID"
CALL_MS_DURATION = "Sip-Call-MSDuration"
CALL_SETUPTIME = "Sip-Call-Setuptime"
NAS_PORT = "NAS-Port"
NAS_IP_ADDRESS = "NAS-IP-Address"

STATUS_STOP = "Stop"
SERVICE_SIP_SESSION = "Sip-Session"
METHOD_INVITE = "INVITE"


@dataclass(frozen=True)
class Attribute:
    """One attribute: a dictionary name, or a raw attribute id for custom fields."""

    key: str | int
    value: Any


class AttributeSet:
    """Ordered attributes for one Accounting-Request.

    The same key may appear more than once; every occurrence is sent.
    """

    def __init__(self) -> None:
        self._attributes: list[Attribute] = []

    def add(self, key: str | int, value: Any) -> None:
        self._attributes.append(Attribute(key, value))

    def get_all(self, key: str | int) -> list[Any]:
        return [attr.value for attr in self._attributes if attr.key == key]

    def get(self, key: str | int) -> Any:
        values = self.get_all(key)
        if not values:
            raise KeyError(key)
        return values[0]

    def custom(self) -> list[Attribute]:
        """Attributes addressed by raw id (the custom-field overlay)."""
        return [attr for attr in self._attributes if isinstance(attr.key, int)]

    def __iter__(self) -> Iterator[Attribute]:
        return iter(self._attributes)

    def __len__(self) -> int:
        return len(self._attributes)

    def __contains__(self, key: object) -> bool:
        return any(attr.key == key for attr in self._attributes)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, AttributeSet):
            return NotImplemented
        return self._attributes == other._attributes

    def __repr__(self) -> str:
        return f"AttributeSet({self._attributes!r})"


def parse_nas_address(raw: str) -> ipaddress.IPv4Address:
    """Parse the configured NAS-IP-Address.

    Raises:
        InvalidAddressError: not an IP address, or an IPv6 address (the
            NAS-IP-Address attribute carries four octets).
    """
    try:
        address = ipaddress.ip_address(raw.strip())
    except ValueError as exc:
        raise InvalidAddressError(
            "UNPARSEABLE_ADDRESS",
            f"NAS address {raw!r} is not a valid IP address",
            {"nas_ip_address": raw},
        ) from exc

    if not isinstance(address, ipaddress.IPv4Address):
        raise InvalidAddressError(
            "NOT_IPV4",
            f"NAS address {raw!r} is not an IPv4 address",
            {"nas_ip_address": raw},
        )
    return address


def assemble_attributes(
    record: CallRecord,
    config: DispatchConfig,
    custom_fields: CustomFieldTable | None = None,
) -> AttributeSet:
    """Map one call record and the run config onto an Accounting-Request attribute set."""
    nas_address = parse_nas_address(config.nas_ip_address)

    attributes = AttributeSet()
    attributes.add(ACCT_STATUS_TYPE, STATUS_STOP)
    attributes.add(SERVICE_TYPE, SERVICE_SIP_SESSION)
    attributes.add(RESPONSE_CODE, str(record.response_code))
    attributes.add(METHOD, METHOD_INVITE)
    attributes.add(EVENT_TIMESTAMP, record.event_timestamp)
    attributes.add(FROM_TAG, record.from_tag)
    attributes.add(TO_TAG, record.to_tag)
    attributes.add(CALLER_ID, record.caller_id)
    attributes.add(CALLEE_ID, record.callee_id)
    attributes.add(DST_NUMBER, record.dst_number)
    attributes.add(ACCT_SESSION_ID, record.acct_session_id)
    attributes.add(CALL_MS_DURATION, int(record.ms_duration))
    attributes.add(CALL_SETUPTIME, int(record.setup_time))
    attributes.add(NAS_PORT, int(config.nas_port))
    attributes.add(NAS_IP_ADDRESS, nas_address)

    if custom_fields:
        for position in custom_fields:
            entry = custom_fields[position]
            attributes.add(entry.attribute_id, entry.value.encode("utf-8"))

    return attributes
