from __future__ import annotations

import stat
from pathlib import Path

import pytest

from jrewrap.errors import FilesystemError
from jrewrap.utils.fs import (
    copy_tree,
    delete_tree,
    is_populated_dir,
    match_glob,
    set_executable,
)


def test_copy_tree_merges_and_keeps_permissions(tmp_path: Path) -> None:
    src = tmp_path / "src"
    (src / "bin").mkdir(parents=True)
    tool = src / "bin" / "tool"
    tool.write_text("run")
    tool.chmod(0o750)
    dst = tmp_path / "dst"
    dst.mkdir()
    (dst / "existing.txt").write_text("keep")

    copy_tree(src, dst)

    assert (dst / "existing.txt").read_text() == "keep"
    assert stat.S_IMODE((dst / "bin" / "tool").stat().st_mode) == 0o750


def test_copy_tree_requires_source(tmp_path: Path) -> None:
    with pytest.raises(FilesystemError):
        copy_tree(tmp_path / "missing", tmp_path / "dst")


def test_delete_tree_ignores_missing_paths(tmp_path: Path) -> None:
    delete_tree(tmp_path / "missing")

    folder = tmp_path / "folder"
    (folder / "nested").mkdir(parents=True)
    (folder / "nested" / "file").write_text("x")
    delete_tree(folder)
    assert not folder.exists()


def test_match_glob_star_stays_within_one_segment(tmp_path: Path) -> None:
    (tmp_path / "bin" / "server").mkdir(parents=True)
    (tmp_path / "bin" / "java.exe").write_text("")
    (tmp_path / "bin" / "javaw.exe").write_text("")
    (tmp_path / "bin" / "server" / "jvm.exe").write_text("")

    assert match_glob(tmp_path, "bin/*.exe") == {
        tmp_path / "bin" / "java.exe",
        tmp_path / "bin" / "javaw.exe",
    }
    assert match_glob(tmp_path, "bin\\server") == {tmp_path / "bin" / "server"}
    assert match_glob(tmp_path, "lib/*.jar") == set()


def test_match_glob_rejects_parent_references(tmp_path: Path) -> None:
    with pytest.raises(FilesystemError):
        match_glob(tmp_path, "../outside")


def test_set_executable_adds_all_execute_bits(tmp_path: Path) -> None:
    launcher = tmp_path / "launcher"
    launcher.write_text("")
    launcher.chmod(0o644)

    set_executable(launcher)

    assert stat.S_IMODE(launcher.stat().st_mode) == 0o755


def test_is_populated_dir(tmp_path: Path) -> None:
    cache = tmp_path / "cache"
    assert not is_populated_dir(cache)
    cache.mkdir()
    assert not is_populated_dir(cache)
    (cache / "marker").write_text("")
    assert is_populated_dir(cache)
