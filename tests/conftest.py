"""Shared log samples for the tailer and aggregator tests."""

import pytest

CLOSE = "/" * 39

FIND_SAVE_BLOCK = [
    "////////////FindSaveRequest////////////",
    "HoleNo : 3",
    "CameraNo : 1",
    "KioskTyCode : K1",
    "PlayId : P123",
    "MatchingResult : true",
    "CoordinateX : 10.5",
    "CoordinateY : 20.25",
    "Message : 리눅스: srv01, Ball found",
    CLOSE,
]

MAP_IMAGE_BLOCK = [
    "////////////GetMapImageRequest////////////",
    "Glcr : GL",
    "GolfCoursId : 77",
    "HoleNo : 4",
    "KioskTyCode : K2",
    "PlayId : M900",
    CLOSE,
]

ERROR_LINE = "2024-01-01 10:00:00.000 - ERROR 123 [main] some.Logger : Login fail DeviceIp[10.0.0.5]"
INFO_LINE = "2024-01-01 10:00:01.000 -  INFO 123 [           main] c.a.w.d.s.s.AnalysisService : Analysis 3/1 done in 120ms"
IMAGE_LINE = ("2024-01-01 10:00:02.000 -  INFO 123 [exec-1] c.a.w.d.s.s.ImageService : "
              "Map image saved C:\\maps\\M900.png")


def map_image_block(play_id):
    return [line.replace("M900", play_id) for line in MAP_IMAGE_BLOCK]


@pytest.fixture
def log_file(tmp_path):
    return tmp_path / "AegaServerLog.log"
