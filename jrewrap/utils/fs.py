import os
import shutil
import stat
from pathlib import Path

from jrewrap.errors import FilesystemError


def ensure_dir(path: Path) -> None:
    try:
        path.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise FilesystemError(
            f"Failed to create directory: {path}"
        ) from exc


def delete_tree(path: Path) -> None:
    """Delete a file or directory tree. A missing path is not an error."""
    try:
        if path.is_symlink() or path.is_file():
            path.unlink()
        elif path.is_dir():
            shutil.rmtree(path)
    except FileNotFoundError:
        return
    except OSError as exc:
        raise FilesystemError(
            f"Failed to remove: {path}"
        ) from exc


def copy_file(src: Path, dst: Path) -> None:
    if not src.is_file():
        raise FilesystemError(f"File not found: {src}")
    try:
        shutil.copy2(src, dst)
    except OSError as exc:
        raise FilesystemError(
            f"Failed to copy '{src}' to '{dst}'"
        ) from exc


def copy_tree(src: Path, dst: Path) -> None:
    """Recursively copy ``src`` into ``dst``, merging with existing content.

    Permission bits are preserved and symbolic links are copied as links.
    """
    if not src.is_dir():
        raise FilesystemError(f"Directory not found: {src}")
    try:
        shutil.copytree(src, dst, symlinks=True, dirs_exist_ok=True)
    except (OSError, shutil.Error) as exc:
        raise FilesystemError(
            f"Failed to copy '{src}' to '{dst}': {exc}"
        ) from exc


def copy_entry(src: Path, dst_dir: Path) -> Path:
    """Copy a file or directory into ``dst_dir`` under its own name."""
    target = dst_dir / src.name
    if src.is_dir():
        copy_tree(src, target)
    else:
        copy_file(src, target)
    return target


def match_glob(root: Path, pattern: str) -> set[Path]:
    """Paths under ``root`` matching a shell-style pattern.

    ``*`` matches within a single path segment, ``**`` spans segments.
    Either separator is accepted in ``pattern``.
    """
    normalized = pattern.replace("\\", "/").strip("/")
    if not normalized or not root.is_dir():
        return set()
    parts = [part for part in normalized.split("/") if part not in ("", ".")]
    if ".." in parts:
        raise FilesystemError(f"Pattern escapes its root: {pattern}")
    return set(root.glob("/".join(parts)))


def set_executable(path: Path) -> None:
    try:
        mode = path.stat().st_mode
        path.chmod(mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    except OSError as exc:
        raise FilesystemError(
            f"Failed to mark executable: {path}"
        ) from exc


def is_populated_dir(path: Path) -> bool:
    if not path.is_dir():
        return False
    return any(path.iterdir())


def atomic_write(path: Path, data: bytes) -> None:
    tmp_path = path.with_suffix(path.suffix + ".tmp")

    try:
        with tmp_path.open("wb") as f:
            f.write(data)
        os.replace(tmp_path, path)
    except OSError as exc:
        delete_tree(tmp_path)
        raise FilesystemError(
            f"Failed to write file atomically: {path}"
        ) from exc
