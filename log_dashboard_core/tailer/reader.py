"""Incremental reading of an append-only log file.

IncrementalFileReader keeps a byte offset into the file and returns only the
lines written since the previous poll. LogTailer pairs it with a
BlockAssembler and serializes polls so the cursor and block buffer are never
touched by two reads at once.

A shrinking file means truncation or rotation: reading restarts at byte 0.
The cursor advances only after the whole byte range was read.
"""
import logging
import re
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, List, Optional

from .assembler import BlockAssembler

logger = logging.getLogger("tailer")

_LINE_SPLIT = re.compile(r"\r?\n")


@dataclass
class ReadCursor:
    last_offset: int = 0


@dataclass
class ReadResult:
    lines: List[str] = field(default_factory=list)
    reset: bool = False      # cursor restarted at 0 (truncation or forced full read)
    size: int = 0


def split_lines(text: str) -> List[str]:
    """Split on \\n or \\r\\n and drop the trailing empty fragment."""
    lines = _LINE_SPLIT.split(text)
    if lines and lines[-1] == "":
        lines.pop()
    return lines


class IncrementalFileReader:
    """Byte-offset tail of a single file.

    Example:
        >>> reader = IncrementalFileReader(Path("AegaServerLog.log"))
        >>> result = reader.poll()   # lines appended since the last poll
    """

    def __init__(self, path: Path, encoding: str = "utf-8"):
        self.path = Path(path)
        self.encoding = encoding
        self.cursor = ReadCursor()

    @property
    def offset(self) -> int:
        return self.cursor.last_offset

    def poll(self, force_full: bool = False) -> ReadResult:
        """Read lines appended since the last successful poll.

        Unreachable files and read errors return an empty result and leave
        the cursor where it was, so the same range is retried next time.
        """
        try:
            size = self.path.stat().st_size
        except OSError as e:
            logger.debug(f"[tailer] stat failed for {self.path}: {e}")
            return ReadResult()

        reset = False
        start = self.cursor.last_offset
        if force_full or size < start:
            if force_full:
                logger.info(f"[tailer] Full read of {self.path}")
            else:
                logger.info(f"[tailer] {self.path} truncated ({start} -> {size} bytes), restarting at 0")
            start = 0
            self.cursor.last_offset = 0
            reset = True

        if size <= start:
            return ReadResult(reset=reset, size=size)

        try:
            with self.path.open("rb") as f:
                f.seek(start)
                data = f.read(size - start)
        except OSError as e:
            logger.warning(f"[tailer] read failed for {self.path}: {e}")
            return ReadResult(reset=reset, size=size)

        text = data.decode(self.encoding, errors="replace")
        self.cursor.last_offset = start + len(data)
        return ReadResult(lines=split_lines(text), reset=reset, size=size)

    def reset(self):
        self.cursor = ReadCursor()


class LogTailer:
    """Reader + assembler triad entry point used by the watcher.

    Events from one poll are handed to ``sink`` in file order after the read
    completed.
    """

    def __init__(self, reader: IncrementalFileReader, assembler: BlockAssembler,
                 sink: Optional[Callable[[object], None]] = None):
        self.reader = reader
        self.assembler = assembler
        self._sink = sink or (lambda e: None)
        self._lock = threading.Lock()
        self.polls = 0
        self.lines_read = 0

    @property
    def path(self) -> Path:
        return self.reader.path

    def set_sink(self, sink: Callable[[object], None]):
        self._sink = sink

    def poll(self, force_full: bool = False) -> list:
        """Read, assemble and emit. Concurrent callers wait for the one in flight."""
        with self._lock:
            result = self.reader.poll(force_full=force_full)
            if result.reset:
                self.assembler.reset()
            events = self.assembler.feed_lines(result.lines)
            self.polls += 1
            self.lines_read += len(result.lines)
            for event in events:
                self._sink(event)
            return events
