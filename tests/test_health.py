"""Tests for HTTP/TCP probes and the roster report."""

import socket
import threading

import pytest
import requests

from log_dashboard_core import health
from log_dashboard_core.health import Endpoint, HealthProber, check_http, check_tcp, load_roster


@pytest.fixture
def listener():
    server = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    server.bind(("127.0.0.1", 0))
    server.listen(8)
    yield server.getsockname()[1]
    server.close()


@pytest.fixture
def closed_port():
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    sock.bind(("127.0.0.1", 0))
    port = sock.getsockname()[1]
    sock.close()
    return port


class FakeResponse:
    def __init__(self, status_code):
        self.status_code = status_code
        self.closed = False

    def close(self):
        self.closed = True


def test_tcp_reachable(listener) -> None:
    assert check_tcp("127.0.0.1", listener, timeout=1) == "active"


def test_tcp_unreachable(closed_port) -> None:
    assert check_tcp("127.0.0.1", closed_port, timeout=1) == "error"


@pytest.mark.parametrize("code, expected", [
    (200, "active"),
    (204, "active"),
    (302, "active"),
    (404, "error"),
    (503, "error"),
])
def test_http_status_mapping(monkeypatch, code, expected) -> None:
    monkeypatch.setattr(health.requests, "get", lambda url, **kw: FakeResponse(code))
    assert check_http("http://example.test/health", timeout=1) == expected


def test_http_transport_error(monkeypatch) -> None:
    def refuse(url, **kwargs):
        raise requests.ConnectionError("refused")

    monkeypatch.setattr(health.requests, "get", refuse)
    assert check_http("http://example.test/health") == "error"


def test_http_timeout_is_passed(monkeypatch) -> None:
    seen = {}

    def fake_get(url, **kwargs):
        seen.update(kwargs)
        return FakeResponse(200)

    monkeypatch.setattr(health.requests, "get", fake_get)
    check_http("http://example.test/", timeout=2.5)
    assert seen["timeout"] == 2.5
    assert seen["allow_redirects"] is False


def test_roster_report_is_always_complete(listener, closed_port) -> None:
    reports = []
    roster = [
        Endpoint("up", "127.0.0.1", listener),
        Endpoint("down", "127.0.0.1", closed_port),
        Endpoint("down-again", "127.0.0.1", closed_port),
    ]
    prober = HealthProber({}, roster, on_http_status=lambda n, s: None,
                          on_roster=reports.append, timeout=1)
    results = prober.check_roster()
    assert [r.id for r in results] == ["up", "down", "down-again"]
    assert [r.status for r in results] == ["active", "error", "error"]
    assert reports == [results]
    assert prober.get_status()["last_roster_check"] is not None


def test_empty_roster_still_reports() -> None:
    reports = []
    prober = HealthProber({}, [], on_http_status=lambda n, s: None, on_roster=reports.append)
    prober.check_roster()
    assert reports == [[]]


def test_http_targets_reported_by_name(monkeypatch) -> None:
    monkeypatch.setattr(health.requests, "get",
                        lambda url, **kw: FakeResponse(200 if "window" in url else 500))
    seen = []
    prober = HealthProber({"window": "http://window/", "nginx": "http://nginx/"}, [],
                          on_http_status=lambda n, s: seen.append((n, s)), on_roster=lambda d: None)
    prober.check_http_targets()
    assert seen == [("window", "active"), ("nginx", "error")]


def test_start_runs_immediately_and_stops(monkeypatch) -> None:
    monkeypatch.setattr(health.requests, "get", lambda url, **kw: FakeResponse(200))
    http_seen = threading.Event()
    roster_seen = threading.Event()
    prober = HealthProber({"window": "http://window/"}, [],
                          on_http_status=lambda n, s: http_seen.set(),
                          on_roster=lambda d: roster_seen.set(),
                          http_interval=60, tcp_interval=60)
    prober.start()
    try:
        assert http_seen.wait(timeout=5)
        assert roster_seen.wait(timeout=5)
    finally:
        prober.stop()
    assert prober._threads == []


def test_load_roster_from_config() -> None:
    config = {"health": {"roster": [{"id": "linux01", "host": "10.0.0.1", "port": "7011"}]}}
    assert load_roster(config) == [Endpoint("linux01", "10.0.0.1", 7011)]


def test_from_config_interval_fallback() -> None:
    config = {"health": {"interval_sec": 10, "tcp_interval_sec": 5, "timeout_sec": 2}}
    prober = HealthProber.from_config(config, lambda n, s: None, lambda d: None)
    assert prober.http_interval == 10
    assert prober.tcp_interval == 5
    assert prober.timeout == 2
