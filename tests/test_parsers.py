"""Tests for xltools.parsers module."""

from __future__ import annotations

from ipaddress import IPv4Address
from unittest.mock import patch

import pytest

from xltools.exceptions import ParseError
from xltools.models import DomainFlag, DomainState
from xltools.parsers import (
    parse_domid,
    parse_domname,
    parse_list,
    parse_list_row,
    parse_neighbor_row,
    parse_neighbors,
    parse_network_list,
    parse_network_list_row,
)


class TestParseListRow:
    def test_running_domain(self):
        assert parse_list_row("agent1 3 2048 2 r----- 12.5") == DomainState(
            name="agent1",
            id=3,
            memory_mb=2048,
            vcpu_count=2,
            flags=frozenset({DomainFlag.RUNNING}),
            cpu_time_seconds=12.5,
        )

    def test_all_flags(self):
        state = parse_list_row("busy 9 512 1 rbpscd 0.0")
        assert state.flags == frozenset(DomainFlag)

    def test_no_flags(self):
        assert parse_list_row("idle 4 512 1 ------ 1.0").flags == frozenset()

    def test_unknown_flag(self):
        with pytest.raises(ParseError, match="unknown domain state flag 'x'"):
            parse_list_row("odd 4 512 1 x----- 1.0")

    def test_missing_fields(self):
        with pytest.raises(ParseError, match="expected 6 fields"):
            parse_list_row("short 1 2")

    def test_non_numeric_id(self):
        with pytest.raises(ParseError, match="id is not an integer"):
            parse_list_row("name abc 512 1 r----- 1.0")

    def test_non_numeric_time(self):
        with pytest.raises(ParseError, match="time is not a number"):
            parse_list_row("name 1 512 1 r----- soon")


class TestParseList:
    def test_skips_header(self, xl_list_output):
        domains = parse_list(xl_list_output)
        assert [d.name for d in domains] == ["Domain-0", "agent1", "agent3", "other7"]
        assert domains[2].flags == frozenset({DomainFlag.BLOCKED})
        assert domains[3].flags == frozenset({DomainFlag.PAUSED})

    def test_bad_row_is_skipped(self):
        text = "Name ID Mem VCPUs State Time(s)\nagent1 3 2048 2 r----- 12.5\nbroken 4 512 1 z----- 1.0\nagent2 5 1024 1 -b---- 2.0\n"
        with patch("xltools.parsers.log") as mock_log:
            domains = parse_list(text)
        assert [d.name for d in domains] == ["agent1", "agent2"]
        level, message = mock_log.call_args[0]
        assert level == "WARN"
        assert "broken" in message

    def test_header_only(self):
        assert parse_list("Name ID Mem VCPUs State Time(s)\n") == []

    def test_empty(self):
        assert parse_list("") == []


class TestParseNetworkList:
    def test_row(self):
        entry = parse_network_list_row("0   0  00:16:3E:5A:0B:01 0  4  19  768/769  /local/domain/0/backend/vif/3/0")
        assert entry.index == 0
        assert entry.backend_id == 0
        assert entry.mac == "00:16:3e:5a:0b:01"
        assert entry.handle == 0
        assert entry.state == 4
        assert entry.event_channel == 19
        assert entry.tx_ring_ref == 768
        assert entry.rx_ring_ref == 769
        assert entry.backend_store_path == "/local/domain/0/backend/vif/3/0"

    def test_bad_ring_refs(self):
        with pytest.raises(ParseError, match="tx/rx"):
            parse_network_list_row("0 0 00:16:3e:5a:0b:01 0 4 19 768 /path")

    def test_bad_mac(self):
        with pytest.raises(ParseError, match="invalid MAC"):
            parse_network_list_row("0 0 zz:16:3e:5a:0b:01 0 4 19 768/769 /path")

    def test_output(self, xl_network_list_output):
        entries = parse_network_list(xl_network_list_output)
        assert [e.mac for e in entries] == ["00:16:3e:5a:0b:01", "00:16:3e:5a:0b:02"]
        assert entries[1].tx_ring_ref == 1280

    def test_bad_row_is_skipped(self, xl_network_list_output):
        text = xl_network_list_output + "garbage\n"
        with patch("xltools.parsers.log"):
            assert len(parse_network_list(text)) == 2


class TestParseNeighbors:
    def test_reachable_router(self):
        entry = parse_neighbor_row("192.168.1.1 dev eth0 lladdr aa:bb:cc:dd:ee:ff router REACHABLE")
        assert entry.ip == IPv4Address("192.168.1.1")
        assert entry.device == "eth0"
        assert entry.link_addr == "aa:bb:cc:dd:ee:ff"
        assert entry.state == "REACHABLE"

    def test_failed_has_no_lladdr(self):
        entry = parse_neighbor_row("10.0.0.9 dev xenbr0 FAILED")
        assert entry.link_addr is None
        assert entry.state == "FAILED"

    def test_ipv6_rejected(self):
        with pytest.raises(ParseError, match="not an IPv4"):
            parse_neighbor_row("fe80::1 dev eth0 lladdr aa:bb:cc:dd:ee:ff STALE")

    def test_output_keeps_ipv4_only(self, ip_neigh_output):
        entries = parse_neighbors(ip_neigh_output)
        assert [str(e.ip) for e in entries] == ["192.168.1.1", "10.0.0.42", "10.0.0.9"]


class TestSingleValues:
    def test_domid(self):
        assert parse_domid(" 12\n") == 12

    @pytest.mark.parametrize("text", ["", "abc", "-1", "1.5"])
    def test_domid_invalid(self, text):
        with pytest.raises(ParseError):
            parse_domid(text)

    def test_domname(self):
        assert parse_domname("agent1\n") == "agent1"

    def test_domname_empty(self):
        with pytest.raises(ParseError):
            parse_domname("  \n")
