import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Optional

VM_LAUNCHER_NAMES = frozenset({"java", "java.exe"})
LEGACY_RUNTIME_DIR_NAME = "jre"


@dataclass(frozen=True)
class TreeSnapshot:
    """Directory structure of an extracted runtime, captured once.

    ``children`` maps every directory to its sorted sub-directories,
    ``launcher_dirs`` holds directories with a ``bin/java[.exe]`` entry.
    """

    root: Path
    children: dict[Path, tuple[Path, ...]] = field(default_factory=dict)
    launcher_dirs: frozenset[Path] = frozenset()

    @classmethod
    def capture(cls, root: Path) -> "TreeSnapshot":
        children: dict[Path, tuple[Path, ...]] = {}
        launcher_dirs: set[Path] = set()

        for dirpath, dirnames, filenames in os.walk(root):
            current = Path(dirpath)
            dirnames.sort()
            children[current] = tuple(current / name for name in dirnames)

            if current.name == "bin" and VM_LAUNCHER_NAMES.intersection(filenames):
                launcher_dirs.add(current.parent)

        return cls(
            root=root,
            children=children,
            launcher_dirs=frozenset(launcher_dirs),
        )

    def has_launcher(self, directory: Path) -> bool:
        return directory in self.launcher_dirs


def find_runtime_root(snapshot: TreeSnapshot) -> Optional[Path]:
    """Locate the directory that directly contains ``bin/java[.exe]``.

    A directory named ``jre`` wins anywhere in the tree; only when no such
    directory exists is any launcher-holding directory accepted. Both passes
    are depth-first in sorted order.
    """
    legacy = _depth_first(
        snapshot,
        lambda directory: directory.name == LEGACY_RUNTIME_DIR_NAME
        and snapshot.has_launcher(directory),
    )
    if legacy is not None:
        return legacy

    return _depth_first(snapshot, snapshot.has_launcher)


def _depth_first(
    snapshot: TreeSnapshot,
    accept: Callable[[Path], bool],
) -> Optional[Path]:
    stack = [snapshot.root]
    while stack:
        directory = stack.pop()
        if accept(directory):
            return directory
        stack.extend(reversed(snapshot.children.get(directory, ())))
    return None
