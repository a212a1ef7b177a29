"""Tests for Accounting-Request attribute assembly."""

from ipaddress import IPv4Address

import pytest

from radgen.exceptions import InvalidAddressError

from loadgen.core import attributes as attrs
from loadgen.core.attributes import AttributeSet, assemble_attributes, parse_nas_address
from loadgen.core.custom_fields import parse_custom_fields
from loadgen.core.records import CallRecord

from conftest import FIXED_TIMESTAMP, make_config


def _record(**overrides) -> CallRecord:
    values = {
        "acct_session_id": "3f1c2a9e-7d44-4a51-9d7e-0b6f2d1c8e11",
        "from_tag": "a1b2c3d4",
        "to_tag": "e5f6a7b8",
        "caller_id": "5511987654321",
        "callee_id": "5521912345678",
        "dst_number": "21912345678",
        "response_code": "200",
        "event_timestamp": FIXED_TIMESTAMP,
        "ms_duration": 65_000,
        "setup_time": 3,
    }
    values.update(overrides)
    return CallRecord(**values)


class TestAssembleAttributes:
    """Tests for assemble_attributes()."""

    def test_fixed_values(self):
        attributes = assemble_attributes(_record(), make_config())

        assert attributes.get(attrs.ACCT_STATUS_TYPE) == "Stop"
        assert attributes.get(attrs.SERVICE_TYPE) == "Sip-Session"
        assert attributes.get(attrs.METHOD) == "INVITE"

    def test_record_values(self):
        record = _record()
        attributes = assemble_attributes(record, make_config())

        assert attributes.get(attrs.RESPONSE_CODE) == "200"
        assert attributes.get(attrs.EVENT_TIMESTAMP) == FIXED_TIMESTAMP
        assert attributes.get(attrs.FROM_TAG) == record.from_tag
        assert attributes.get(attrs.TO_TAG) == record.to_tag
        assert attributes.get(attrs.CALLER_ID) == record.caller_id
        assert attributes.get(attrs.CALLEE_ID) == record.callee_id
        assert attributes.get(attrs.DST_NUMBER) == record.dst_number
        assert attributes.get(attrs.ACCT_SESSION_ID) == record.acct_session_id
        assert attributes.get(attrs.CALL_MS_DURATION) == 65_000
        assert attributes.get(attrs.CALL_SETUPTIME) == 3

    def test_nas_identity_from_config(self):
        config = make_config(nas_ip_address="10.20.30.40", nas_port=7000)
        attributes = assemble_attributes(_record(), config)

        assert attributes.get(attrs.NAS_IP_ADDRESS) == IPv4Address("10.20.30.40")
        assert attributes.get(attrs.NAS_PORT) == 7000

    def test_response_code_is_sent_as_text(self):
        attributes = assemble_attributes(_record(response_code="486"), make_config())

        assert attributes.get(attrs.RESPONSE_CODE) == "486"

    def test_each_named_attribute_appears_once(self):
        attributes = assemble_attributes(_record(), make_config())

        named = [attr.key for attr in attributes if isinstance(attr.key, str)]
        assert len(named) == len(set(named)) == 15

    def test_no_custom_fields(self):
        attributes = assemble_attributes(_record(), make_config())

        assert attributes.custom() == []

    def test_custom_fields_are_multiplexed(self):
        table = parse_custom_fields("26=foo,26=bar")
        attributes = assemble_attributes(_record(), make_config(), table)

        assert attributes.get_all(26) == [b"foo", b"bar"]
        assert len(attributes.custom()) == 2

    def test_custom_fields_follow_named_attributes(self):
        table = parse_custom_fields("190=x,191=y")
        attributes = assemble_attributes(_record(), make_config(), table)

        keys = [attr.key for attr in attributes]
        assert keys[-2:] == [190, 191]
        assert all(isinstance(key, str) for key in keys[:-2])

    def test_custom_values_are_utf8_encoded(self):
        table = parse_custom_fields("190=São Paulo")
        attributes = assemble_attributes(_record(), make_config(), table)

        assert attributes.get(190) == "São Paulo".encode("utf-8")

    def test_deterministic(self):
        """Same inputs always give the same attribute set."""
        record = _record()
        config = make_config(nas_ip_address="192.0.2.1")
        table = parse_custom_fields("26=foo,26=bar,190=baz")

        first = assemble_attributes(record, config, table)
        second = assemble_attributes(record, config, table)

        assert first == second
        assert sorted((a.key, a.value) for a in first.custom()) == sorted(
            (a.key, a.value) for a in second.custom()
        )

    def test_invalid_nas_address_raises(self):
        with pytest.raises(InvalidAddressError) as exc_info:
            assemble_attributes(_record(), make_config(nas_ip_address="not-an-ip"))

        assert exc_info.value.code == "UNPARSEABLE_ADDRESS"


class TestParseNasAddress:
    """Tests for parse_nas_address()."""

    def test_ipv4(self):
        assert parse_nas_address("127.0.0.1") == IPv4Address("127.0.0.1")

    def test_surrounding_whitespace(self):
        assert parse_nas_address(" 10.0.0.1 ") == IPv4Address("10.0.0.1")

    @pytest.mark.parametrize("raw", ["not-an-ip", "", "256.1.1.1", "10.0.0"])
    def test_unparseable(self, raw):
        with pytest.raises(InvalidAddressError) as exc_info:
            parse_nas_address(raw)

        assert exc_info.value.code == "UNPARSEABLE_ADDRESS"
        assert exc_info.value.details == {"nas_ip_address": raw}

    def test_ipv6_rejected(self):
        with pytest.raises(InvalidAddressError) as exc_info:
            parse_nas_address("::1")

        assert exc_info.value.code == "NOT_IPV4"


class TestAttributeSet:
    """Tests for the AttributeSet container."""

    def test_keeps_duplicates_in_order(self):
        attributes = AttributeSet()
        attributes.add(26, b"foo")
        attributes.add("Sip-Method", "INVITE")
        attributes.add(26, b"bar")

        assert len(attributes) == 3
        assert attributes.get_all(26) == [b"foo", b"bar"]
        assert attributes.get(26) == b"foo"

    def test_contains(self):
        attributes = AttributeSet()
        attributes.add("NAS-Port", 5666)

        assert "NAS-Port" in attributes
        assert 26 not in attributes

    def test_get_missing_raises_key_error(self):
        with pytest.raises(KeyError):
            AttributeSet().get("NAS-Port")
