"""Log tailing: grammar, block assembly, incremental reading and file watching."""
from .assembler import BlockAssembler
from .grammar import GrammarConfig, parse_line
from .reader import IncrementalFileReader, LogTailer
from .watcher import LogFileWatcher

__all__ = [
    "BlockAssembler",
    "GrammarConfig",
    "IncrementalFileReader",
    "LogFileWatcher",
    "LogTailer",
    "parse_line",
]
