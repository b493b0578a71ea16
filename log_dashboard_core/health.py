"""HealthProber — periodic reachability checks for the analysis fleet.

Two independent schedules:
  1. HTTP targets (Windows app server, nginx): GET with timeout, 2xx/3xx = active
  2. TCP roster (Linux analysis servers): raw connect with timeout

Both run once immediately at start, then every interval. Results go out
through two callbacks: ``on_http_status(name, status)`` per target and
``on_roster(details)`` with the complete roster every cycle.
"""
import logging
import socket
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Dict, List, Optional

import requests

from .events import EndpointStatus

logger = logging.getLogger("health")

ACTIVE = "active"
ERROR = "error"


@dataclass(frozen=True)
class Endpoint:
    """Static roster entry."""
    id: str
    host: str
    port: int
    kind: str = "tcp"


def check_http(url: str, timeout: float = 5.0) -> str:
    """GET ``url``; status codes in [200, 400) are active, anything else is error."""
    try:
        resp = requests.get(url, timeout=timeout, allow_redirects=False)
        try:
            code = resp.status_code
        finally:
            resp.close()
    except requests.RequestException as e:
        logger.debug(f"[health] HTTP check for {url} failed: {e}")
        return ERROR
    logger.debug(f"[health] HTTP check for {url} returned {code}")
    return ACTIVE if 200 <= code < 400 else ERROR


def check_tcp(host: str, port: int, timeout: float = 5.0) -> str:
    """Open and immediately close a TCP connection to (host, port)."""
    try:
        conn = socket.create_connection((host, port), timeout=timeout)
    except OSError as e:
        logger.debug(f"[health] TCP check for {host}:{port} failed: {e}")
        return ERROR
    conn.close()
    return ACTIVE


def load_roster(config: dict) -> List[Endpoint]:
    roster = []
    for entry in config.get("health", {}).get("roster", []) or []:
        roster.append(Endpoint(
            id=str(entry["id"]),
            host=str(entry["host"]),
            port=int(entry["port"]),
            kind=entry.get("kind", "tcp"),
        ))
    return roster


class HealthProber:
    """Background probe threads for the HTTP targets and the TCP roster."""

    def __init__(
        self,
        http_targets: Dict[str, str],
        roster: List[Endpoint],
        on_http_status: Callable[[str, str], None],
        on_roster: Callable[[List[EndpointStatus]], None],
        http_interval: float = 300,
        tcp_interval: float = 300,
        timeout: float = 5.0,
        max_workers: int = 16,
    ):
        self.http_targets = dict(http_targets)
        self.roster = list(roster)
        self.on_http_status = on_http_status
        self.on_roster = on_roster
        self.http_interval = http_interval
        self.tcp_interval = tcp_interval
        self.timeout = timeout
        self.max_workers = max(1, max_workers)

        self._stop_event = threading.Event()
        self._threads: List[threading.Thread] = []
        self.last_http_check: Optional[str] = None
        self.last_roster_check: Optional[str] = None

    @classmethod
    def from_config(cls, config: dict, on_http_status, on_roster) -> "HealthProber":
        health_cfg = config.get("health", {})
        interval = health_cfg.get("interval_sec", 300)
        return cls(
            http_targets=health_cfg.get("http_targets", {}) or {},
            roster=load_roster(config),
            on_http_status=on_http_status,
            on_roster=on_roster,
            http_interval=health_cfg.get("http_interval_sec", interval),
            tcp_interval=health_cfg.get("tcp_interval_sec", interval),
            timeout=health_cfg.get("timeout_sec", 5),
            max_workers=health_cfg.get("max_workers", 16),
        )

    # ── Single passes ─────────────────────────────────────────

    def check_http_targets(self):
        for name, url in self.http_targets.items():
            status = check_http(url, self.timeout)
            self.on_http_status(name, status)
        self.last_http_check = datetime.now().isoformat()

    def check_roster(self) -> List[EndpointStatus]:
        """Probe every roster endpoint concurrently and report the full list."""
        if not self.roster:
            results: List[EndpointStatus] = []
        else:
            workers = min(self.max_workers, len(self.roster))
            with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="tcp-probe") as pool:
                statuses = list(pool.map(
                    lambda ep: check_tcp(ep.host, ep.port, self.timeout), self.roster
                ))
            results = [
                EndpointStatus(id=ep.id, host=ep.host, port=ep.port, status=status)
                for ep, status in zip(self.roster, statuses)
            ]
        self.on_roster(results)
        self.last_roster_check = datetime.now().isoformat()
        return results

    # ── Lifecycle ─────────────────────────────────────────────

    def start(self):
        if self._threads:
            return
        self._stop_event.clear()
        self._threads = [
            threading.Thread(target=self._loop, args=(self.check_http_targets, self.http_interval),
                             daemon=True, name="health-http"),
            threading.Thread(target=self._loop, args=(self.check_roster, self.tcp_interval),
                             daemon=True, name="health-tcp"),
        ]
        for t in self._threads:
            t.start()
        logger.info(f"[health] Probing {len(self.http_targets)} HTTP targets, "
                    f"{len(self.roster)} TCP endpoints")

    def stop(self):
        self._stop_event.set()
        for t in self._threads:
            if t.is_alive():
                t.join(timeout=3)
        self._threads = []

    def _loop(self, check: Callable[[], object], interval: float):
        """Immediate pass, then one pass per interval until stopped."""
        while not self._stop_event.is_set():
            try:
                check()
            except Exception as e:
                logger.exception(f"[health] check pass failed: {e}")
            if self._stop_event.wait(interval):
                break

    def get_status(self) -> dict:
        return {
            "http_targets": list(self.http_targets),
            "roster_size": len(self.roster),
            "last_http_check": self.last_http_check,
            "last_roster_check": self.last_roster_check,
        }
