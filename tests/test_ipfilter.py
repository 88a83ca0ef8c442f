from __future__ import annotations

import pytest

from aiven_broker.ipfilter import EnvironmentIPFilterSource, MalformedAddressError, parse_ip_whitelist


def test_parse_empty_string_means_no_restriction() -> None:
    assert parse_ip_whitelist("") == []


def test_parse_multiple_addresses() -> None:
    assert parse_ip_whitelist("1.2.3.4,5.6.7.8") == ["1.2.3.4", "5.6.7.8"]


def test_parse_strips_whitespace_around_segments() -> None:
    assert parse_ip_whitelist(" 1.2.3.4 , 5.6.7.8") == ["1.2.3.4", "5.6.7.8"]


def test_parse_accepts_cidr_suffix_on_last_octet() -> None:
    assert parse_ip_whitelist("10.0.0.0/8") == ["10.0.0.0/8"]


def test_parse_rejects_short_address() -> None:
    with pytest.raises(MalformedAddressError) as excinfo:
        parse_ip_whitelist("1.2.3")

    assert excinfo.value.segment == "1.2.3"
    assert "1.2.3" in str(excinfo.value)


def test_parse_stops_at_first_malformed_segment() -> None:
    with pytest.raises(MalformedAddressError) as excinfo:
        parse_ip_whitelist("1.2.3.4,1.2.3.4.5,bad")

    assert excinfo.value.segment == "1.2.3.4.5"


def test_parse_rejects_empty_segment() -> None:
    with pytest.raises(ValueError):
        parse_ip_whitelist("1.2.3.4,")


def test_environment_source_reads_latest_value(monkeypatch: pytest.MonkeyPatch) -> None:
    source = EnvironmentIPFilterSource("TEST_IP_WHITELIST")
    monkeypatch.delenv("TEST_IP_WHITELIST", raising=False)

    assert source() == ""

    monkeypatch.setenv("TEST_IP_WHITELIST", "1.2.3.4")
    assert source() == "1.2.3.4"

    monkeypatch.setenv("TEST_IP_WHITELIST", "5.6.7.8,9.9.9.9")
    assert source() == "5.6.7.8,9.9.9.9"


def test_parse_error_names_stripped_segment() -> None:
    with pytest.raises(MalformedAddressError) as excinfo:
        parse_ip_whitelist("1.2.3.4, 1.2.3 ")

    assert excinfo.value.segment == "1.2.3"
