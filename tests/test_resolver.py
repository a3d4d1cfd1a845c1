"""Tests for xltools.resolver module."""

from __future__ import annotations

import subprocess
from ipaddress import IPv4Address
from typing import List
from unittest.mock import patch

import pytest

from xltools.exceptions import ExecutionError, ResolveTimeoutError, XlToolsError
from xltools.models import NeighborEntry
from xltools.resolver import dom_ip, ip_neighbors, match_neighbors, resolve_ip

MAC = "00:16:3e:5a:0b:01"


class FakeClock:
    """Monotonic clock that only moves when the resolver sleeps."""

    def __init__(self) -> None:
        self.now = 0.0
        self.sleeps: List[float] = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


def neighbor(ip: str, mac, state: str = "REACHABLE", device: str = "xenbr0") -> NeighborEntry:
    return NeighborEntry(ip=IPv4Address(ip), device=device, link_addr=mac, state=state)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


class TestIpNeighbors:
    def test_runs_ip_neighbor_show(self, monkeypatch, ip_neigh_output):
        monkeypatch.setattr("xltools.constants.IP_BIN", "ip")
        result = subprocess.CompletedProcess([], 0, stdout=ip_neigh_output, stderr="")
        with patch("xltools.resolver.run", return_value=result) as mock_run:
            entries = ip_neighbors()
        mock_run.assert_called_once_with(["ip", "neighbor", "show"])
        assert len(entries) == 3


class TestMatchNeighbors:
    def test_no_match(self):
        assert match_neighbors([neighbor("10.0.0.1", "aa:bb:cc:dd:ee:ff")], {MAC}) is None

    def test_entries_without_lladdr_ignored(self):
        assert match_neighbors([neighbor("10.0.0.9", None, "FAILED")], {MAC}) is None

    def test_lowest_address_wins(self):
        entries = [
            neighbor("10.0.0.42", MAC, "STALE"),
            neighbor("10.0.0.7", "00:16:3e:5a:0b:02"),
            neighbor("10.0.0.100", MAC),
        ]
        assert match_neighbors(entries, {MAC, "00:16:3e:5a:0b:02"}) == IPv4Address("10.0.0.7")

    def test_numeric_not_lexical_order(self):
        entries = [neighbor("10.0.0.10", MAC), neighbor("10.0.0.9", MAC)]
        assert match_neighbors(entries, {MAC}) == IPv4Address("10.0.0.9")


class TestResolveIp:
    def test_immediate_hit(self, clock):
        with patch("xltools.resolver.ip_neighbors", return_value=[neighbor("10.0.0.42", MAC)]):
            ip = resolve_ip({MAC.upper()}, timeout=10, sleep=clock.sleep, clock=clock)
        assert ip == IPv4Address("10.0.0.42")
        assert clock.sleeps == []

    def test_backoff_doubles_until_found(self, clock):
        answers = [[], [], [], [neighbor("10.0.0.42", MAC)]]
        with patch("xltools.resolver.ip_neighbors", side_effect=answers):
            ip = resolve_ip({MAC}, timeout=60, sleep=clock.sleep, clock=clock)
        assert ip == IPv4Address("10.0.0.42")
        assert clock.sleeps == [1.0, 2.0, 4.0]

    def test_query_failure_is_a_miss(self, clock):
        answers = [ExecutionError(["ip"], 1, [], ["busy"]), [neighbor("10.0.0.42", MAC)]]
        with patch("xltools.resolver.ip_neighbors", side_effect=answers), patch("xltools.resolver.log"):
            ip = resolve_ip({MAC}, timeout=10, sleep=clock.sleep, clock=clock)
        assert ip == IPv4Address("10.0.0.42")
        assert clock.sleeps == [1.0]

    def test_timeout(self, clock):
        with patch("xltools.resolver.ip_neighbors", return_value=[]):
            with pytest.raises(ResolveTimeoutError) as exc:
                resolve_ip({MAC}, timeout=10, domain="agent1", sleep=clock.sleep, clock=clock)
        assert clock.sleeps == [1.0, 2.0, 4.0, 3.0]
        assert exc.value.domain == "agent1"
        assert exc.value.timeout == 10
        assert exc.value.elapsed == 10
        assert isinstance(exc.value, TimeoutError)

    @pytest.mark.parametrize("timeout", [0, 0.5, 1, 3, 7.5, 20, 100])
    def test_timeout_bounds(self, clock, timeout):
        with patch("xltools.resolver.ip_neighbors", return_value=[]):
            with pytest.raises(ResolveTimeoutError) as exc:
                resolve_ip({MAC}, timeout=timeout, sleep=clock.sleep, clock=clock)
        last_backoff = 2 ** max(len(clock.sleeps) - 1, 0)
        assert timeout <= exc.value.elapsed < timeout + last_backoff

    def test_invalid_mac(self, clock):
        with pytest.raises(XlToolsError):
            resolve_ip({"nope"}, timeout=1, sleep=clock.sleep, clock=clock)


class TestDomIp:
    def test_resolves_domain_macs(self):
        with (
            patch("xltools.resolver.dom_macs", return_value={MAC}) as mock_macs,
            patch("xltools.resolver.resolve_ip", return_value=IPv4Address("10.0.0.42")) as mock_resolve,
        ):
            assert dom_ip("agent1", timeout=5) == IPv4Address("10.0.0.42")
        mock_macs.assert_called_once_with("agent1")
        mock_resolve.assert_called_once_with({MAC}, timeout=5, domain="agent1")

    def test_domain_without_nics(self):
        with patch("xltools.resolver.dom_macs", return_value=set()):
            with pytest.raises(XlToolsError, match="no network interfaces"):
                dom_ip("agent1")
