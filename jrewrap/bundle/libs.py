import fnmatch
import logging
from pathlib import Path, PurePosixPath
from typing import Callable, Iterable, Optional

from jrewrap.config import Platform
from jrewrap.utils.archive import is_archive, list_entries, rewrite_excluding
from jrewrap.utils.fs import delete_tree

logger = logging.getLogger(__name__)

KeepPredicate = Callable[[str], bool]

MISMATCHED_LIBRARY_EXTENSIONS = {
    "windows": frozenset({".dylib", ".so"}),
    "linux": frozenset({".dll", ".dylib"}),
    "macos": frozenset({".dll", ".so"}),
}


def glob_keeper(patterns: Iterable[str]) -> Optional[KeepPredicate]:
    """Keep predicate for glob patterns, tried against the path and its name."""
    patterns = tuple(patterns)
    if not patterns:
        return None

    def keep(path: str) -> bool:
        name = PurePosixPath(path).name
        return any(
            fnmatch.fnmatchcase(path, pattern) or fnmatch.fnmatchcase(name, pattern)
            for pattern in patterns
        )

    return keep


def combine_keepers(*keepers: Optional[KeepPredicate]) -> Optional[KeepPredicate]:
    active = [keeper for keeper in keepers if keeper is not None]
    if not active:
        return None
    if len(active) == 1:
        return active[0]
    return lambda path: any(keeper(path) for keeper in active)


def filter_native_libraries(
    entries: Iterable[Path],
    platform: Platform,
    keep: Optional[KeepPredicate] = None,
) -> int:
    """Strip native libraries built for other platforms from classpath entries.

    Archives are rewritten in place, directories are cleaned directly. ``keep``
    is consulted first and receives the library's path relative to the entry.
    Returns the number of libraries removed.
    """
    mismatched = MISMATCHED_LIBRARY_EXTENSIONS[platform.family]

    def should_remove(path: str) -> bool:
        if keep is not None and keep(path):
            return False
        return PurePosixPath(path).suffix.lower() in mismatched

    removed = 0
    for entry in entries:
        if entry.is_dir():
            removed += _filter_directory(entry, should_remove)
        elif is_archive(entry):
            if not any(should_remove(name) for name in list_entries(entry)):
                continue
            count = rewrite_excluding(entry, should_remove)
            if count:
                logger.info("Removed %d foreign native libraries from %s", count, entry.name)
            removed += count
        else:
            logger.debug("Skipping %s, neither a directory nor an archive", entry)
    return removed


def _filter_directory(root: Path, should_remove: Callable[[str], bool]) -> int:
    removed = 0
    candidates = sorted(path for path in root.rglob("*") if not path.is_dir())
    for path in candidates:
        if should_remove(path.relative_to(root).as_posix()):
            logger.debug("Removing %s", path)
            delete_tree(path)
            removed += 1
    if removed:
        logger.info("Removed %d foreign native libraries from %s", removed, root.name)
    return removed
