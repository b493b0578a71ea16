"""LogFileWatcher — watchdog-based monitoring of the single log file.

Uses the polling observer: the producer (Tomcat on Windows) keeps the file
open for append, so native change notifications arrive late or not at all.
The file may not exist at startup; if even its directory is missing, the
watcher waits for the directory before scheduling.
"""
import logging
import threading
from pathlib import Path
from typing import Optional

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers.polling import PollingObserver

from .reader import LogTailer

logger = logging.getLogger("watcher")


class _LogFileHandler(FileSystemEventHandler):
    """Routes create/modify events for the target path into the tailer."""

    def __init__(self, tailer: LogTailer):
        super().__init__()
        self._tailer = tailer
        self._target = self._normalize(tailer.path)

    @staticmethod
    def _normalize(path) -> str:
        return str(Path(path).absolute())

    def _is_target(self, path) -> bool:
        if not path:
            return False
        if isinstance(path, bytes):
            path = path.decode(errors="replace")
        return self._normalize(path) == self._target

    def _poll(self, force_full: bool):
        try:
            self._tailer.poll(force_full=force_full)
        except Exception as e:
            logger.exception(f"[watcher] poll failed: {e}")

    def on_created(self, event: FileSystemEvent):
        if event.is_directory or not self._is_target(event.src_path):
            return
        logger.info(f"[watcher] {event.src_path} has been added, processing from the start")
        self._poll(force_full=True)

    def on_modified(self, event: FileSystemEvent):
        if event.is_directory or not self._is_target(event.src_path):
            return
        self._poll(force_full=False)

    def on_moved(self, event: FileSystemEvent):
        # Rotation by rename: the new file appears under the target name.
        if event.is_directory or not self._is_target(getattr(event, "dest_path", None)):
            return
        logger.info(f"[watcher] {event.dest_path} replaced by rename, processing from the start")
        self._poll(force_full=True)


class LogFileWatcher:
    """Wraps the watchdog polling observer for one log file."""

    def __init__(self, tailer: LogTailer, poll_interval: float = 1.0):
        self._tailer = tailer
        self._interval = poll_interval
        self._handler = _LogFileHandler(tailer)
        self._observer: Optional[PollingObserver] = None
        self._waiter: Optional[threading.Thread] = None
        self._stop_event = threading.Event()
        self._running = False

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def path(self) -> Path:
        return self._tailer.path

    def start(self):
        if self._running:
            return
        self._stop_event.clear()
        self._running = True
        directory = self.path.absolute().parent
        if directory.is_dir():
            self._schedule(directory)
        else:
            logger.warning(f"[watcher] {directory} does not exist yet, waiting for it")
            self._waiter = threading.Thread(
                target=self._wait_for_directory, args=(directory,),
                daemon=True, name="log-watcher-wait",
            )
            self._waiter.start()

    def _wait_for_directory(self, directory: Path):
        while not self._stop_event.wait(self._interval):
            if directory.is_dir():
                self._schedule(directory)
                return

    def _schedule(self, directory: Path):
        observer = PollingObserver(timeout=self._interval)
        observer.schedule(self._handler, str(directory), recursive=False)
        observer.daemon = True
        observer.start()
        self._observer = observer
        logger.info(f"[watcher] Watching {self.path} (poll every {self._interval}s)")

        # Initial scan settled: read everything once in case the create event was missed.
        self._handler._poll(force_full=True)

    def stop(self):
        self._stop_event.set()
        if self._waiter and self._waiter.is_alive():
            self._waiter.join(timeout=3)
        if self._observer:
            self._observer.stop()
            self._observer.join(timeout=3)
            self._observer = None
        if self._running:
            logger.info("[watcher] stopped")
        self._running = False
