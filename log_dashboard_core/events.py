"""Log event types produced by the tailer and consumed by the state aggregator."""
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional, Tuple


class BlockKind(Enum):
    FIND_SAVE = "FindSaveRequest"
    MAP_IMAGE = "GetMapImageRequest"


class EventKind(Enum):
    FIND_SAVE = "find_save"
    MAP_IMAGE_REQUEST = "map_image_request"
    IMAGE_PATH = "image_path"
    PLAIN_LINE = "plain_line"


def _now_iso() -> str:
    return datetime.now().isoformat()


@dataclass(frozen=True)
class FindSaveEvent:
    """A closed FindSaveRequest block whose MatchingResult was "true"."""
    hole_no: str
    camera_no: str
    play_id: str
    kiosk_ty_code: Optional[str] = None
    matching_result: str = "true"
    coordinate_x: Optional[str] = None
    coordinate_y: Optional[str] = None
    message: str = ""
    server: str = "N/A"       # analysing host named in the message
    timestamp: str = field(default_factory=_now_iso)

    kind = EventKind.FIND_SAVE

    @property
    def server_id(self) -> str:
        return f"{self.hole_no}/{self.camera_no}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind.value,
            "holeNo": self.hole_no,
            "cameraNo": self.camera_no,
            "kioskTyCode": self.kiosk_ty_code,
            "playId": self.play_id,
            "matchingResult": self.matching_result,
            "coordinateX": self.coordinate_x,
            "coordinateY": self.coordinate_y,
            "message": self.message,
            "server": self.server,
            "timestamp": self.timestamp,
        }


@dataclass(frozen=True)
class MapImageRequestEvent:
    """A closed GetMapImageRequest block carrying a play id."""
    play_id: str
    glcr: Optional[str] = None
    golf_course_id: Optional[str] = None
    hole_no: Optional[str] = None
    kiosk_ty_code: Optional[str] = None
    timestamp: str = field(default_factory=_now_iso)

    kind = EventKind.MAP_IMAGE_REQUEST

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind.value,
            "glcr": self.glcr,
            "golfCoursId": self.golf_course_id,
            "holeNo": self.hole_no,
            "kioskTyCode": self.kiosk_ty_code,
            "playId": self.play_id,
            "timestamp": self.timestamp,
        }


@dataclass(frozen=True)
class ImagePathEvent:
    """Image path line correlated with the most recent map image request."""
    play_id: str
    path: str
    timestamp: str = field(default_factory=_now_iso)

    kind = EventKind.IMAGE_PATH

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind.value,
            "playId": self.play_id,
            "path": self.path,
            "timestamp": self.timestamp,
        }


@dataclass(frozen=True)
class PlainLineEvent:
    """One structured single-line log entry plus the fields found in its message."""
    timestamp: str
    level: str
    pid: str
    thread: str
    logger: str
    message: str
    ip: Optional[str] = None
    login_result: Optional[str] = None        # "success" | "fail"
    durations_ms: Tuple[float, ...] = ()
    save_path: Optional[str] = None
    camera_id: Optional[str] = None           # "<hole>/<camera>"
    play_id: Optional[str] = None

    kind = EventKind.PLAIN_LINE

    ERROR_LEVELS = frozenset({"ERROR", "FATAL", "CRITICAL"})

    @property
    def is_error(self) -> bool:
        return self.level in self.ERROR_LEVELS

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind.value,
            "timestamp": self.timestamp,
            "level": self.level,
            "pid": self.pid,
            "thread": self.thread,
            "logger": self.logger,
            "message": self.message,
            "ip": self.ip,
            "loginResult": self.login_result,
            "durationsMs": list(self.durations_ms),
            "savePath": self.save_path,
            "cameraId": self.camera_id,
            "playId": self.play_id,
        }


@dataclass(frozen=True)
class EndpointStatus:
    """Latest probe result for one roster endpoint."""
    id: str
    host: str
    port: int
    status: str               # "active" | "error"

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "host": self.host, "port": self.port, "status": self.status}


@dataclass(frozen=True)
class HttpStatusReport:
    """Probe result for one named HTTP target."""
    name: str
    status: str


@dataclass(frozen=True)
class RosterReport:
    """Probe results for the full TCP roster, never a delta."""
    details: Tuple[EndpointStatus, ...]


@dataclass(frozen=True)
class KpiTick:
    """Timer tick asking the aggregator to append a KPI point."""
    at: datetime = field(default_factory=datetime.now)
