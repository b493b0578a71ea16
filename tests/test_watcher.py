"""Tests for the watchdog-driven log file watcher."""

import time

from watchdog.events import DirModifiedEvent, FileCreatedEvent, FileModifiedEvent, FileMovedEvent

from log_dashboard_core.tailer import BlockAssembler, IncrementalFileReader, LogFileWatcher, LogTailer
from log_dashboard_core.tailer.watcher import _LogFileHandler

from conftest import ERROR_LINE, INFO_LINE


class FakeTailer:
    def __init__(self, path):
        self.path = path
        self.calls = []

    def poll(self, force_full=False):
        self.calls.append(force_full)
        return []


def wait_for(predicate, timeout=5.0):
    deadline = time.time() + timeout
    while time.time() < deadline:
        if predicate():
            return True
        time.sleep(0.05)
    return predicate()


def test_handler_routes_target_events(log_file) -> None:
    tailer = FakeTailer(log_file)
    handler = _LogFileHandler(tailer)

    handler.on_created(FileCreatedEvent(str(log_file)))
    handler.on_modified(FileModifiedEvent(str(log_file)))
    handler.on_moved(FileMovedEvent(str(log_file) + ".tmp", str(log_file)))
    assert tailer.calls == [True, False, True]


def test_handler_ignores_other_paths(log_file) -> None:
    tailer = FakeTailer(log_file)
    handler = _LogFileHandler(tailer)

    handler.on_modified(FileModifiedEvent(str(log_file.parent / "other.log")))
    handler.on_modified(DirModifiedEvent(str(log_file.parent)))
    handler.on_moved(FileMovedEvent(str(log_file), str(log_file) + ".1"))
    assert tailer.calls == []


def test_handler_survives_tailer_errors(log_file) -> None:
    class Exploding(FakeTailer):
        def poll(self, force_full=False):
            raise RuntimeError("disk gone")

    handler = _LogFileHandler(Exploding(log_file))
    handler.on_modified(FileModifiedEvent(str(log_file)))


def make_tailer(path):
    collected = []
    return LogTailer(IncrementalFileReader(path), BlockAssembler(), sink=collected.append), collected


def test_watcher_reads_existing_file_and_appends(log_file) -> None:
    log_file.write_text(ERROR_LINE + "\n", encoding="utf-8")
    tailer, collected = make_tailer(log_file)
    watcher = LogFileWatcher(tailer, poll_interval=0.1)
    watcher.start()
    try:
        assert watcher.is_running
        assert [e.level for e in collected] == ["ERROR"]

        with open(log_file, "a", encoding="utf-8") as f:
            f.write(INFO_LINE + "\n" + INFO_LINE + "\n")
        assert wait_for(lambda: len(collected) == 3)
    finally:
        watcher.stop()
    assert not watcher.is_running


def test_watcher_waits_for_missing_directory(tmp_path) -> None:
    log_path = tmp_path / "logs" / "AegaServerLog.log"
    tailer, collected = make_tailer(log_path)
    watcher = LogFileWatcher(tailer, poll_interval=0.1)
    watcher.start()
    try:
        assert collected == []
        log_path.parent.mkdir()
        log_path.write_text(ERROR_LINE + "\n", encoding="utf-8")
        # a create event seen after scheduling forces a second full read
        assert wait_for(lambda: len(collected) >= 1)
        assert collected[0].level == "ERROR"
    finally:
        watcher.stop()


def test_stop_before_start_is_harmless(log_file) -> None:
    tailer, _ = make_tailer(log_file)
    LogFileWatcher(tailer).stop()
