"""StateAggregator — single writer of the dashboard's in-memory state.

Producers (log tailer, health prober, KPI ticker) never touch the state
directly: they ``submit()`` events to a queue that one daemon thread drains,
calling the matching ``apply_*`` mutation. Every mutation and every
``snapshot()`` runs under the same lock, so readers never see a mutation
half applied.

Lifecycle:
    agg = StateAggregator.from_config(config, on_change=dispatcher.notify)
    agg.start()          # actor thread + KPI ticker
    agg.submit(event)    # from any thread
    agg.snapshot()       # JSON-safe dict, from any thread
    agg.stop()
"""
import logging
import queue
import threading
from collections import OrderedDict, deque
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Deque, Dict, Iterable, List, Optional

from .events import (
    EndpointStatus,
    FindSaveEvent,
    HttpStatusReport,
    ImagePathEvent,
    KpiTick,
    MapImageRequestEvent,
    PlainLineEvent,
    RosterReport,
)

logger = logging.getLogger("state")

UNKNOWN = "unknown"


@dataclass
class ServerRecord:
    """Per hole/camera analysis status, created on first reference."""
    id: str
    processing_window: int = 10
    status: str = "idle"          # idle | analyzing | error | found
    last_activity: Optional[str] = None
    request_count: int = 0
    success_count: int = 0
    error_count: int = 0
    server: Optional[str] = None
    recent_processing_times: Deque[float] = field(init=False)
    average_processing_time: float = 0.0

    def __post_init__(self):
        self.recent_processing_times = deque(maxlen=self.processing_window)

    def add_processing_times(self, durations: Iterable[float]):
        added = False
        for d in durations:
            self.recent_processing_times.append(float(d))
            added = True
        if added:
            window = self.recent_processing_times
            self.average_processing_time = sum(window) / len(window)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "status": self.status,
            "lastActivity": self.last_activity,
            "requestCount": self.request_count,
            "successCount": self.success_count,
            "errorCount": self.error_count,
            "server": self.server,
            "recentProcessingTimes": list(self.recent_processing_times),
            "averageProcessingTime": round(self.average_processing_time, 2),
        }


@dataclass
class LinuxFleet:
    total: int = 0
    online: int = 0
    offline: int = 0
    issues: int = 0
    details: List[EndpointStatus] = field(default_factory=list)

    def counts(self) -> tuple:
        return (self.total, self.online, self.offline, self.issues)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total": self.total,
            "online": self.online,
            "offline": self.offline,
            "issues": self.issues,
            "details": [d.to_dict() for d in self.details],
        }


@dataclass
class SystemState:
    """Root aggregate. Only StateAggregator mutates it."""
    recent_logs_max: int = 50
    pending_max: int = 100
    kpi_window: int = 30

    version: int = 0
    total_log_lines: int = 0
    error_count: int = 0
    last_update: Optional[str] = None
    http_statuses: Dict[str, str] = field(default_factory=dict)
    fleet: LinuxFleet = field(default_factory=LinuxFleet)
    servers: Dict[str, ServerRecord] = field(default_factory=dict)
    recent_logs: Deque[dict] = field(init=False)
    pending_image_requests: "OrderedDict[str, dict]" = field(default_factory=OrderedDict)
    kpi_data: Deque[dict] = field(init=False)

    def __post_init__(self):
        self.recent_logs = deque(maxlen=self.recent_logs_max)
        self.kpi_data = deque(maxlen=self.kpi_window)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "version": self.version,
            "global": {
                "totalLogLines": self.total_log_lines,
                "errorCount": self.error_count,
                "lastUpdate": self.last_update,
                "httpEndpointStatuses": dict(self.http_statuses),
                "linuxFleet": self.fleet.to_dict(),
            },
            "servers": {sid: rec.to_dict() for sid, rec in self.servers.items()},
            "recentLogs": [dict(entry) for entry in self.recent_logs],
            "pendingImageRequests": {pid: dict(req) for pid, req in self.pending_image_requests.items()},
            "kpiData": [dict(point) for point in self.kpi_data],
        }


class StateAggregator:
    """Applies events to SystemState on a single actor thread."""

    def __init__(
        self,
        on_change: Optional[Callable[[], None]] = None,
        http_targets: Iterable[str] = (),
        roster_size: int = 0,
        recent_logs_max: int = 50,
        processing_window: int = 10,
        pending_max: int = 100,
        kpi_window: int = 30,
        kpi_interval: float = 60,
    ):
        self.on_change = on_change or (lambda: None)
        self.processing_window = processing_window
        self.kpi_interval = kpi_interval

        self._state = SystemState(
            recent_logs_max=recent_logs_max,
            pending_max=pending_max,
            kpi_window=kpi_window,
        )
        self._state.http_statuses = {name: UNKNOWN for name in http_targets}
        self._state.fleet.total = roster_size

        self._lock = threading.RLock()
        self._log_seq = 0
        self._queue: "queue.Queue[object]" = queue.Queue()
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._ticker: Optional[threading.Thread] = None

    @classmethod
    def from_config(cls, config: dict, on_change=None) -> "StateAggregator":
        state_cfg = config.get("state", {})
        health_cfg = config.get("health", {})
        return cls(
            on_change=on_change,
            http_targets=list((health_cfg.get("http_targets") or {}).keys()),
            roster_size=len(health_cfg.get("roster") or []),
            recent_logs_max=state_cfg.get("recent_logs_max", 50),
            processing_window=state_cfg.get("processing_window", 10),
            pending_max=state_cfg.get("pending_image_max", 100),
            kpi_window=state_cfg.get("kpi_window", 30),
            kpi_interval=state_cfg.get("kpi_interval_sec", 60),
        )

    # ── Producer side ─────────────────────────────────────────

    def submit(self, event: object):
        """Queue an event for the actor thread. Safe from any thread."""
        self._queue.put(event)

    def report_http_status(self, name: str, status: str):
        self.submit(HttpStatusReport(name=name, status=status))

    def report_roster(self, details: List[EndpointStatus]):
        self.submit(RosterReport(details=tuple(details)))

    @property
    def queue_size(self) -> int:
        return self._queue.qsize()

    # ── Lifecycle ─────────────────────────────────────────────

    def start(self):
        if self._thread and self._thread.is_alive():
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._run, daemon=True, name="state-aggregator")
        self._thread.start()
        if self.kpi_interval and self.kpi_interval > 0:
            self._ticker = threading.Thread(target=self._tick_loop, daemon=True, name="kpi-ticker")
            self._ticker.start()
        logger.info("[state] Aggregator started")

    def stop(self):
        self._stop_event.set()
        for t in (self._thread, self._ticker):
            if t and t.is_alive():
                t.join(timeout=3)
        self._thread = None
        self._ticker = None

    def _run(self):
        while not self._stop_event.is_set():
            try:
                event = self._queue.get(timeout=1.0)
            except queue.Empty:
                continue
            try:
                self.handle(event)
            except Exception as e:
                logger.exception(f"[state] failed to apply {type(event).__name__}: {e}")

    def _tick_loop(self):
        while not self._stop_event.wait(self.kpi_interval):
            self.submit(KpiTick())

    def drain(self) -> int:
        """Apply everything queued on the calling thread. Returns the count applied."""
        applied = 0
        while True:
            try:
                event = self._queue.get_nowait()
            except queue.Empty:
                return applied
            self.handle(event)
            applied += 1

    # ── Dispatch ──────────────────────────────────────────────

    def handle(self, event: object) -> bool:
        """Apply one event; notify observers if it changed anything."""
        if isinstance(event, (FindSaveEvent, MapImageRequestEvent, PlainLineEvent)):
            changed = self.apply_log_event(event)
        elif isinstance(event, ImagePathEvent):
            changed = self.apply_image_path(event)
        elif isinstance(event, HttpStatusReport):
            changed = self.apply_http_status(event.name, event.status)
        elif isinstance(event, RosterReport):
            changed = self.apply_roster(list(event.details))
        elif isinstance(event, KpiTick):
            changed = self.apply_kpi_tick(event.at)
        else:
            logger.warning(f"[state] rejected unknown event type: {type(event).__name__}")
            return False

        if changed:
            try:
                self.on_change()
            except Exception as e:
                logger.exception(f"[state] change listener failed: {e}")
        return changed

    # ── Mutations ─────────────────────────────────────────────

    @staticmethod
    def _validate_log_event(event) -> Optional[str]:
        if isinstance(event, FindSaveEvent):
            if not event.hole_no or not event.camera_no:
                return "find-save event without hole/camera number"
        elif isinstance(event, MapImageRequestEvent):
            if not event.play_id:
                return "map image request without play id"
        elif isinstance(event, PlainLineEvent):
            if not event.level:
                return "log line without level"
        else:
            return f"not a log event: {type(event).__name__}"
        return None

    def _server(self, server_id: str) -> ServerRecord:
        rec = self._state.servers.get(server_id)
        if rec is None:
            rec = ServerRecord(id=server_id, processing_window=self.processing_window)
            self._state.servers[server_id] = rec
        return rec

    def _append_log(self, event, server_id: Optional[str]):
        self._log_seq += 1
        entry = event.to_dict()
        entry["id"] = self._log_seq
        entry["serverId"] = server_id
        self._state.recent_logs.append(entry)

    def _touch(self):
        st = self._state
        st.version += 1
        st.last_update = datetime.now().isoformat()

    def apply_log_event(self, event) -> bool:
        """Block or line event: counters, server record, log feed."""
        problem = self._validate_log_event(event)
        if problem:
            logger.warning(f"[state] rejected event: {problem}")
            return False

        with self._lock:
            st = self._state
            st.total_log_lines += 1
            server_id = None

            if isinstance(event, FindSaveEvent):
                server_id = event.server_id
                rec = self._server(server_id)
                rec.status = "found"
                rec.success_count += 1
                rec.request_count += 1
                rec.last_activity = event.timestamp
                rec.server = event.server

            elif isinstance(event, MapImageRequestEvent):
                previous = st.pending_image_requests.pop(event.play_id, None)
                request = event.to_dict()
                request.pop("kind", None)
                request["imagePath"] = previous.get("imagePath") if previous else None
                st.pending_image_requests[event.play_id] = request
                while len(st.pending_image_requests) > st.pending_max:
                    st.pending_image_requests.popitem(last=False)

            else:
                if event.is_error:
                    st.error_count += 1
                if event.camera_id:
                    server_id = event.camera_id
                    rec = self._server(server_id)
                    rec.request_count += 1
                    rec.last_activity = event.timestamp
                    if event.is_error:
                        rec.status = "error"
                        rec.error_count += 1
                    elif event.login_result == "success":
                        rec.status = "idle"
                    elif event.durations_ms:
                        rec.status = "analyzing"
                    rec.add_processing_times(event.durations_ms)

            self._append_log(event, server_id)
            self._touch()
        return True

    def apply_image_path(self, event: ImagePathEvent) -> bool:
        """Attach an image path to its pending request; unknown play ids are dropped."""
        if not isinstance(event, ImagePathEvent) or not event.play_id:
            logger.warning("[state] rejected malformed image path event")
            return False
        with self._lock:
            request = self._state.pending_image_requests.get(event.play_id)
            if request is None:
                return False
            request["imagePath"] = event.path
            self._touch()
        return True

    def apply_http_status(self, name: str, status: str) -> bool:
        """Write-if-changed status of a named HTTP target."""
        with self._lock:
            if self._state.http_statuses.get(name) == status:
                return False
            self._state.http_statuses[name] = status
            self._touch()
        logger.info(f"[state] {name} is now {status}")
        return True

    def apply_roster(self, details: List[EndpointStatus]) -> bool:
        """Replace the roster details wholesale; report whether anything differs."""
        if any(not isinstance(d, EndpointStatus) for d in details):
            logger.warning("[state] rejected malformed roster report")
            return False
        with self._lock:
            fleet = self._state.fleet
            previous = {d.id: d.status for d in fleet.details}
            online = sum(1 for d in details if d.status == "active")
            offline = sum(1 for d in details if d.status == "error")
            issues = sum(
                1 for d in details
                if d.status == "error" and previous.get(d.id) == "active"
            )
            new_counts = (len(details), online, offline, issues)
            if list(details) == fleet.details and new_counts == fleet.counts():
                return False
            fleet.details = list(details)
            fleet.total, fleet.online, fleet.offline, fleet.issues = new_counts
            self._touch()
        return True

    def apply_kpi_tick(self, at: Optional[datetime] = None) -> bool:
        """Append one KPI point (request total, mean processing time) for the current minute."""
        at = at or datetime.now()
        with self._lock:
            servers = list(self._state.servers.values())
            averages = [s.average_processing_time for s in servers if s.average_processing_time > 0]
            self._state.kpi_data.append({
                "name": at.strftime("%H:%M"),
                "hourlyRequests": sum(s.request_count for s in servers),
                "avgProcessingTime": round(sum(averages) / len(averages), 2) if averages else 0,
            })
            self._touch()
        return True

    # ── Readers ───────────────────────────────────────────────

    def snapshot(self) -> Dict[str, Any]:
        """Consistent, JSON-safe copy of the whole state."""
        with self._lock:
            return self._state.to_dict()

    @property
    def version(self) -> int:
        with self._lock:
            return self._state.version

    def get_status(self) -> dict:
        return {
            "running": bool(self._thread and self._thread.is_alive()),
            "queue_size": self.queue_size,
            "version": self.version,
        }
