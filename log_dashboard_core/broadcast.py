"""BroadcastDispatcher — debounced full-snapshot push to SSE subscribers.

Each subscriber owns a bounded Queue that its SSE generator drains. A burst
of ``notify()`` calls within the debounce window collapses into one flush
carrying the latest snapshot. Snapshots supersede each other, so a full
queue drops its stale frame instead of the subscriber.
"""
import logging
import threading
from queue import Empty, Full, Queue
from typing import Any, Callable, Dict, List, Optional

logger = logging.getLogger("broadcast")


class BroadcastDispatcher:
    """At most one scheduled flush at a time: a pending flag plus one Timer."""

    def __init__(self, snapshot: Callable[[], Dict[str, Any]],
                 debounce_seconds: float = 0.25, client_queue_size: int = 10):
        self._snapshot = snapshot
        self._debounce = debounce_seconds
        self._queue_size = max(1, client_queue_size)
        self._client_queues: List[Queue] = []
        self._lock = threading.Lock()
        self._send_lock = threading.RLock()
        self._sending = False
        self._resend = False
        self._timer: Optional[threading.Timer] = None
        self._pending = False
        self._closed = False
        self.flush_count = 0

    @classmethod
    def from_config(cls, config: dict, snapshot) -> "BroadcastDispatcher":
        cfg = config.get("broadcast", {})
        return cls(
            snapshot,
            debounce_seconds=cfg.get("debounce_ms", 250) / 1000.0,
            client_queue_size=cfg.get("client_queue_size", 10),
        )

    # ── Client management ─────────────────────────────────────

    def register_client(self) -> Queue:
        """Register a subscriber; it receives the current snapshot right away."""
        q: Queue = Queue(maxsize=self._queue_size)
        with self._send_lock:
            with self._lock:
                self._client_queues.append(q)
            try:
                self._deliver(only=q)
            except Exception:
                self.unregister_client(q)
                raise
        return q

    def unregister_client(self, q: Queue):
        with self._lock:
            if q in self._client_queues:
                self._client_queues.remove(q)

    @property
    def client_count(self) -> int:
        with self._lock:
            return len(self._client_queues)

    # ── Scheduling ────────────────────────────────────────────

    def notify(self):
        """Mark state dirty; arm the debounce timer unless one is already armed."""
        with self._lock:
            if self._closed or self._pending:
                return
            self._pending = True
            self._timer = threading.Timer(self._debounce, self.flush)
            self._timer.daemon = True
            self._timer.start()

    def flush(self):
        """Push the latest snapshot to every subscriber."""
        with self._lock:
            self._pending = False
            self._timer = None
            if not self._client_queues:
                return

        with self._send_lock:
            if self._sending:
                # Called back from inside a snapshot; the running send repeats.
                self._resend = True
                return
            try:
                self._deliver()
            except Exception as e:
                logger.exception(f"[broadcast] snapshot failed: {e}")

    def _deliver(self, only: Optional[Queue] = None):
        """Snapshot and enqueue while holding the send lock.

        Sends never interleave, so a subscriber's newest frame is always the
        newest snapshot taken. A flush requested during the snapshot call
        triggers one more pass to every subscriber.
        """
        self._sending = True
        try:
            while True:
                self._resend = False
                snapshot = self._snapshot()
                with self._lock:
                    clients = [only] if only is not None else list(self._client_queues)
                for q in clients:
                    try:
                        self._offer(q, snapshot)
                    except Exception as e:
                        logger.warning(f"[broadcast] push to subscriber failed: {e}")
                if only is None:
                    self.flush_count += 1
                if not self._resend:
                    return
                only = None
        finally:
            self._sending = False

    @staticmethod
    def _offer(q: Queue, snapshot: Dict[str, Any]):
        while True:
            try:
                q.put_nowait(snapshot)
                return
            except Full:
                try:
                    q.get_nowait()
                except Empty:
                    pass

    def close(self):
        """Cancel any armed timer; further notifies are ignored."""
        with self._lock:
            self._closed = True
            if self._timer:
                self._timer.cancel()
            self._timer = None
            self._pending = False
