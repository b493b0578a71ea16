"""Tests for the folder-open containment check."""

import pytest

from log_dashboard_core.actions import (
    FolderAccessError,
    FolderActionError,
    FolderOpener,
    is_within,
)


@pytest.fixture
def base(tmp_path):
    maps = tmp_path / "maps"
    (maps / "2024").mkdir(parents=True)
    (maps / "2024" / "M900.png").write_bytes(b"png")
    return maps


@pytest.fixture
def launched():
    return []


@pytest.fixture
def opener(base, launched):
    return FolderOpener(str(base), launcher=launched.append)


def test_file_inside_base_opens_parent(opener, base, launched) -> None:
    target = opener.open(str(base / "2024" / "M900.png"))
    assert target == (base / "2024").resolve()
    assert launched == [str(target)]


def test_directory_inside_base_opens_itself(opener, base, launched) -> None:
    opener.open(str(base / "2024"))
    assert launched == [str((base / "2024").resolve())]


def test_path_outside_base_is_forbidden(opener, tmp_path, launched) -> None:
    outside = tmp_path / "elsewhere" / "x.png"
    with pytest.raises(FolderAccessError):
        opener.open(str(outside))
    assert launched == []


def test_sibling_with_shared_prefix_is_forbidden(opener, base, launched) -> None:
    evil = base.parent / (base.name + "_evil")
    evil.mkdir()
    with pytest.raises(FolderAccessError):
        opener.open(str(evil / "x.png"))
    assert launched == []


def test_traversal_is_forbidden(opener, base, launched) -> None:
    with pytest.raises(FolderAccessError):
        opener.open(str(base / "2024" / ".." / ".." / "x.png"))
    assert launched == []


@pytest.mark.parametrize("raw", ["", "bad\x00path"])
def test_empty_or_invalid_path(opener, raw) -> None:
    with pytest.raises(FolderAccessError):
        opener.resolve_target(raw)


def test_launcher_failure_is_action_error(base) -> None:
    def broken(directory):
        raise OSError("no file manager")

    opener = FolderOpener(str(base), launcher=broken)
    with pytest.raises(FolderActionError):
        opener.open(str(base / "2024" / "M900.png"))


def test_missing_base_is_rejected() -> None:
    with pytest.raises(ValueError):
        FolderOpener("")


def test_is_within(tmp_path) -> None:
    base = tmp_path / "a"
    assert is_within(base, base)
    assert is_within(base / "b" / "c", base)
    assert not is_within(tmp_path / "ab", base)
    assert not is_within(tmp_path, base)
