"""Folder-open action: reveal a saved map image's directory on the host.

Only paths inside the configured base directory are accepted. Both sides
are resolved (symlinks, "..") before the containment check; a plain string
prefix check would let "C:\\maps_evil" or "C:\\maps\\..\\Windows" through.
"""
import logging
import platform
import subprocess
from pathlib import Path
from typing import Callable, List, Optional

logger = logging.getLogger("actions")


class FolderOpenError(Exception):
    """Base class for folder-open failures."""


class FolderAccessError(FolderOpenError):
    """Requested path is outside the allowed base directory."""


class FolderActionError(FolderOpenError):
    """The host file manager could not be launched."""


def _default_command(directory: str) -> List[str]:
    system = platform.system()
    if system == "Windows":
        return ["explorer", directory]
    if system == "Darwin":
        return ["open", directory]
    return ["xdg-open", directory]


def launch_file_manager(directory: str):
    try:
        subprocess.Popen(_default_command(directory))
    except OSError as e:
        raise FolderActionError(str(e)) from e


def is_within(path: Path, base: Path) -> bool:
    return path == base or base in path.parents


class FolderOpener:
    """Validates requested paths and hands the containing folder to the host."""

    def __init__(self, allowed_base: str,
                 launcher: Optional[Callable[[str], None]] = None):
        if not allowed_base:
            raise ValueError("actions.allowed_base is required")
        self.allowed_base = Path(allowed_base).resolve()
        self._launcher = launcher or launch_file_manager

    def resolve_target(self, raw_path: str) -> Path:
        """Directory to reveal for ``raw_path``; FolderAccessError if outside the base."""
        if not raw_path or "\x00" in raw_path:
            raise FolderAccessError("empty or invalid path")
        resolved = Path(raw_path).resolve()
        if not is_within(resolved, self.allowed_base):
            raise FolderAccessError(f"{raw_path} is outside {self.allowed_base}")
        return resolved if resolved.is_dir() else resolved.parent

    def open(self, raw_path: str) -> Path:
        target = self.resolve_target(raw_path)
        try:
            self._launcher(str(target))
        except FolderActionError:
            raise
        except Exception as e:
            raise FolderActionError(str(e)) from e
        logger.info(f"[actions] Opened {target}")
        return target
