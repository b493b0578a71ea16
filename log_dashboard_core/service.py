"""MonitorService — wires the tailer, prober, aggregator and dispatcher.

Data flow:
    log file -> LogFileWatcher -> LogTailer (reader + assembler)
             -> StateAggregator <- HealthProber
             -> BroadcastDispatcher -> SSE subscribers

Config-driven via defaults.yaml + the user's config.yaml.
"""
import logging
from pathlib import Path
from typing import Any, Dict, Optional

from .actions import FolderOpener
from .broadcast import BroadcastDispatcher
from .health import HealthProber
from .state import StateAggregator
from .tailer import BlockAssembler, GrammarConfig, IncrementalFileReader, LogFileWatcher, LogTailer

logger = logging.getLogger("monitor")


class MonitorService:
    """Top-level component owning every producer and the single state writer."""

    def __init__(self, config: dict, folder_launcher=None):
        self.config = config
        log_cfg = config.get("log", {})

        self.log_path = Path(log_cfg["path"])
        self.aggregator = StateAggregator.from_config(config)
        self.dispatcher = BroadcastDispatcher.from_config(config, self.aggregator.snapshot)
        self.aggregator.on_change = self.dispatcher.notify

        self.reader = IncrementalFileReader(self.log_path, encoding=log_cfg.get("encoding", "utf-8"))
        self.assembler = BlockAssembler(GrammarConfig.from_config(config))
        self.tailer = LogTailer(self.reader, self.assembler, sink=self.aggregator.submit)
        self.watcher = LogFileWatcher(self.tailer, poll_interval=log_cfg.get("poll_interval_sec", 1.0))

        self.prober = HealthProber.from_config(
            config,
            on_http_status=self.aggregator.report_http_status,
            on_roster=self.aggregator.report_roster,
        )

        allowed_base = config.get("actions", {}).get("allowed_base")
        self.folder_opener: Optional[FolderOpener] = (
            FolderOpener(allowed_base, launcher=folder_launcher) if allowed_base else None
        )
        self._started = False

    # ── Lifecycle ─────────────────────────────────────────────

    def start(self):
        if self._started:
            return
        self.aggregator.start()
        if self.config.get("health", {}).get("enabled", True):
            self.prober.start()
        self.watcher.start()
        self._started = True
        logger.info(f"[monitor] Service started for {self.log_path}")

    def stop(self):
        if not self._started:
            return
        self.watcher.stop()
        self.prober.stop()
        self.aggregator.stop()
        self.dispatcher.close()
        self._started = False
        logger.info("[monitor] Service stopped")

    @property
    def is_running(self) -> bool:
        return self._started

    # ── Queries ───────────────────────────────────────────────

    def snapshot(self) -> Dict[str, Any]:
        return self.aggregator.snapshot()

    def get_status(self) -> Dict[str, Any]:
        """Component status for /api/monitor/status."""
        return {
            "running": self._started,
            "log_path": str(self.log_path),
            "log_exists": self.log_path.exists(),
            "watcher_running": self.watcher.is_running,
            "read_offset": self.reader.offset,
            "waiting_for_image": self.assembler.waiting_for_image,
            "subscribers": self.dispatcher.client_count,
            "aggregator": self.aggregator.get_status(),
            "health": self.prober.get_status(),
            "folder_open_enabled": self.folder_opener is not None,
        }
