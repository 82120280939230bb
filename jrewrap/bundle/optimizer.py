from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable

from jrewrap.bundle.profile import DeleteRule, MinimizationProfile, RepackRule
from jrewrap.config import Platform
from jrewrap.utils.archive import EntryPredicate, rewrite_excluding
from jrewrap.utils.fs import delete_tree, match_glob

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MinimizeStats:
    archives_rewritten: int = 0
    entries_removed: int = 0
    files_removed: int = 0
    directories_removed: int = 0


def minimize_runtime(
    runtime_root: Path,
    profile: MinimizationProfile,
    platform: Platform,
) -> MinimizeStats:
    """Apply ``profile`` to the runtime at ``runtime_root`` in place.

    Rules referring to paths the runtime does not have are skipped, so a
    profile can be applied to several runtime versions, and twice in a row.
    """
    if profile.is_empty:
        logger.info("Empty minimization profile, keeping the runtime as is")
        return MinimizeStats()

    archives_rewritten = 0
    entries_removed = 0
    for rule in profile.reduce:
        removed = _apply_repack_rule(runtime_root, rule)
        if removed is not None:
            archives_rewritten += 1
            entries_removed += removed

    targets: list[Path] = []
    for rule in profile.remove:
        if rule.applies_to(platform.family):
            targets.extend(_find_all(runtime_root, rule))

    files_removed = 0
    directories_removed = 0
    for path in _dedupe_paths(targets):
        if not (path.exists() or path.is_symlink()):
            continue

        if path.is_dir() and not path.is_symlink():
            directories_removed += 1
        else:
            files_removed += 1
        logger.debug("Removing %s", path)
        delete_tree(path)

    stats = MinimizeStats(
        archives_rewritten=archives_rewritten,
        entries_removed=entries_removed,
        files_removed=files_removed,
        directories_removed=directories_removed,
    )
    logger.info(
        "Minimized runtime: %d archive(s) rewritten, %d entries, %d files and %d directories removed",
        stats.archives_rewritten,
        stats.entries_removed,
        stats.files_removed,
        stats.directories_removed,
    )
    return stats


def _apply_repack_rule(runtime_root: Path, rule: RepackRule) -> int | None:
    archive = runtime_root / rule.archive.replace("\\", "/").strip("/")
    if not archive.is_file():
        logger.debug("Skipping repack of missing archive %s", archive)
        return None

    logger.info("Removing %d package(s) from %s", len(rule.paths), rule.archive)
    return rewrite_excluding(archive, prefix_matcher(rule.paths))


def prefix_matcher(prefixes: Iterable[str]) -> EntryPredicate:
    """Predicate matching entries at or below any prefix, by whole segment.

    ``com/sun/corba`` matches ``com/sun/corba/Foo.class`` but not
    ``com/sun/corbax/Foo.class``.
    """
    normalized = tuple(
        p for p in (prefix.replace("\\", "/").strip("/") for prefix in prefixes) if p
    )
    directories = tuple(f"{prefix}/" for prefix in normalized)

    def matches(entry: str) -> bool:
        entry = entry.rstrip("/")
        return entry in normalized or entry.startswith(directories)

    return matches


def _find_all(runtime_root: Path, rule: DeleteRule) -> list[Path]:
    matches: list[Path] = []
    for pattern in rule.paths:
        found = match_glob(runtime_root, pattern)
        if not found:
            logger.debug("Pattern '%s' matched nothing", pattern)
        matches.extend(found)
    return matches


def _dedupe_paths(paths: Iterable[Path]) -> list[Path]:
    seen: set[Path] = set()
    unique: list[Path] = []
    for path in sorted(paths, key=lambda p: (len(p.as_posix()), p.as_posix())):
        if path in seen or any(parent in seen for parent in path.parents):
            continue
        seen.add(path)
        unique.append(path)
    return unique
