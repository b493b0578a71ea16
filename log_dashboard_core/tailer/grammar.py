"""Line and block grammar for the analysis server log.

Single line format:
    2024-01-01 10:00:00.000 - ERROR 123 [main] some.Logger : Login fail DeviceIp[10.0.0.5]

Block format (interior lines are "Key : Value"):
    ////////////FindSaveRequest////////////
    HoleNo : 3
    CameraNo : 1
    ...
    ///////////////////////////////////////

Every function here is pure and never raises on malformed input: anything
that does not match is simply not recognized (None).
"""

import re
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional

from ..events import (
    BlockKind,
    FindSaveEvent,
    MapImageRequestEvent,
    PlainLineEvent,
)


LINE_PATTERN = re.compile(
    r"^(?P<timestamp>\d{4}-\d{2}-\d{2}[ T]\d{2}:\d{2}:\d{2}(?:[.,]\d{1,6})?)\s+-\s+"
    r"(?P<level>[A-Z]+)\s+"
    r"(?P<pid>\d+)\s+"
    r"\[(?P<thread>[^\]]*)\]\s+"
    r"(?P<logger>\S+)\s+:\s?"
    r"(?P<message>.*)$"
)

# ── Message sub-patterns (all optional and independent) ──
LOGIN_PATTERN = re.compile(r"\bLogin\s+(success|fail)", re.IGNORECASE)
IP_PATTERN = re.compile(r"(?<![\d.])((?:\d{1,3}\.){3}\d{1,3})(?![\d.])")
DURATION_MS_PATTERN = re.compile(r"(?<![\w.])(\d+)\s?ms\b")
DURATION_SEC_PATTERN = re.compile(r"(?<![\w.])(\d+(?:\.\d+)?)\s?sec\b")
SAVE_PATH_PATTERN = re.compile(r"(https?://\S+|[A-Za-z]:\\\S+)")
CAMERA_ID_PATTERN = re.compile(r"(?<![\w/.\\-])(\d+)/(\d+)(?!\.?\d)(?![\w/\\])")
PLAY_ID_PATTERN = re.compile(r"PlayId\s*:\s*([^\s,\]]+)", re.IGNORECASE)

SERVER_NAME_PATTERN = re.compile(r"리눅스:\s*([\w-]+)")


@dataclass
class GrammarConfig:
    """Marker strings and correlation patterns. Defaults match the producer."""
    find_save_marker: str = "////////////FindSaveRequest////////////"
    map_image_marker: str = "////////////GetMapImageRequest////////////"
    close_marker_min_run: int = 20
    image_logger: str = "c.a.w.d.s.s.ImageService"
    image_path_prefix: str = "C:\\"

    @classmethod
    def from_config(cls, config: dict) -> "GrammarConfig":
        cfg = config.get("grammar", {}) or {}
        defaults = cls()
        return cls(
            find_save_marker=cfg.get("find_save_marker", defaults.find_save_marker),
            map_image_marker=cfg.get("map_image_marker", defaults.map_image_marker),
            close_marker_min_run=int(cfg.get("close_marker_min_run", defaults.close_marker_min_run)),
            image_logger=cfg.get("image_logger", defaults.image_logger),
            image_path_prefix=cfg.get("image_path_prefix", defaults.image_path_prefix),
        )

    @property
    def close_marker(self) -> str:
        return "/" * self.close_marker_min_run


# ── Single line ────────────────────────────────────────

def extract_durations(message: str) -> List[float]:
    """All duration tokens in milliseconds, in order of appearance."""
    found = []
    for m in DURATION_MS_PATTERN.finditer(message):
        found.append((m.start(), float(m.group(1))))
    for m in DURATION_SEC_PATTERN.finditer(message):
        found.append((m.start(), float(m.group(1)) * 1000))
    found.sort(key=lambda pair: pair[0])
    return [value for _, value in found]


def parse_line(line: str) -> Optional[PlainLineEvent]:
    """Parse one physical log line. Returns None when the line is not recognized."""
    if not line:
        return None
    m = LINE_PATTERN.match(line.strip())
    if not m:
        return None

    message = m.group("message").strip()

    ip = None
    login_result = None
    login = LOGIN_PATTERN.search(message)
    if login:
        login_result = login.group(1).lower()
        ip_match = IP_PATTERN.search(message)
        if ip_match:
            ip = ip_match.group(1)

    save_path = None
    path_match = SAVE_PATH_PATTERN.search(message)
    if path_match:
        save_path = path_match.group(1)

    camera_id = None
    camera_match = CAMERA_ID_PATTERN.search(message)
    if camera_match:
        camera_id = f"{int(camera_match.group(1))}/{int(camera_match.group(2))}"

    play_id = None
    play_match = PLAY_ID_PATTERN.search(message)
    if play_match:
        play_id = play_match.group(1)

    return PlainLineEvent(
        timestamp=m.group("timestamp"),
        level=m.group("level"),
        pid=m.group("pid"),
        thread=m.group("thread").strip(),
        logger=m.group("logger"),
        message=message,
        ip=ip,
        login_result=login_result,
        durations_ms=tuple(extract_durations(message)),
        save_path=save_path,
        camera_id=camera_id,
        play_id=play_id,
    )


def parse_image_path(line: str, grammar: GrammarConfig) -> Optional[str]:
    """Return the image path carried by an ImageService line, if any."""
    if grammar.image_logger not in line or grammar.image_path_prefix not in line:
        return None
    start = line.find(grammar.image_path_prefix)
    token = line[start:].split()
    if not token:
        return None
    return token[0]


# ── Blocks ─────────────────────────────────────────────

def fold_block(lines: Iterable[str], lower_keys: bool = False) -> Dict[str, str]:
    """Fold "Key : Value" interior lines into a mapping. First ':' wins."""
    data: Dict[str, str] = {}
    for line in lines:
        if ":" not in line:
            continue
        key, value = line.split(":", 1)
        key = key.strip()
        if not key:
            continue
        if lower_keys:
            key = key.lower()
        data[key] = value.strip()
    return data


def parse_find_save_block(lines: Iterable[str]) -> Optional[FindSaveEvent]:
    """Successful-match event, or None when MatchingResult is not exactly "true"."""
    data = fold_block(lines)
    if data.get("MatchingResult") != "true":
        return None

    message = data.get("Message", "")
    server = "N/A"
    m = SERVER_NAME_PATTERN.search(message)
    if m:
        server = m.group(1)

    return FindSaveEvent(
        hole_no=data.get("HoleNo", ""),
        camera_no=data.get("CameraNo", ""),
        play_id=data.get("PlayId", ""),
        kiosk_ty_code=data.get("KioskTyCode"),
        matching_result=data["MatchingResult"],
        coordinate_x=data.get("CoordinateX"),
        coordinate_y=data.get("CoordinateY"),
        message=message,
        server=server,
    )


def parse_map_image_block(lines: Iterable[str]) -> Optional[MapImageRequestEvent]:
    """Map image request event, or None when no play id is present."""
    data = fold_block(lines, lower_keys=True)
    play_id = data.get("playid")
    if not play_id:
        return None
    return MapImageRequestEvent(
        play_id=play_id,
        glcr=data.get("glcr"),
        golf_course_id=data.get("golfcoursid"),
        hole_no=data.get("holeno"),
        kiosk_ty_code=data.get("kiosktycode"),
    )


BLOCK_PARSERS = {
    BlockKind.FIND_SAVE: parse_find_save_block,
    BlockKind.MAP_IMAGE: parse_map_image_block,
}


def parse_block(kind: BlockKind, lines: Iterable[str]):
    """Interpret a closed block according to the marker that opened it."""
    try:
        return BLOCK_PARSERS[kind](lines)
    except (KeyError, ValueError, TypeError):
        return None
