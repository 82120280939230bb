from dataclasses import dataclass, replace
from pathlib import Path

from jrewrap.config import Platform

LAUNCH_CONFIG_NAME = "config.json"
MACOS_ICON_NAME = "icons.icns"


@dataclass(frozen=True)
class OutputLayout:
    executable_root: Path
    resources_root: Path

    @classmethod
    def flat(cls, root: Path) -> "OutputLayout":
        return cls(executable_root=root, resources_root=root)

    @property
    def launch_config(self) -> Path:
        return self.resources_root / LAUNCH_CONFIG_NAME

    def launcher_path(self, executable: str, platform: Platform) -> Path:
        return self.executable_root / f"{executable}{platform.executable_suffix}"

    def classpath_target(self, entry: Path) -> Path:
        return self.resources_root / entry.name

    def with_roots(self, executable_root: Path, resources_root: Path) -> "OutputLayout":
        return replace(self, executable_root=executable_root, resources_root=resources_root)


@dataclass(frozen=True)
class MacBundlePaths:
    root: Path

    @property
    def contents_dir(self) -> Path:
        return self.root / "Contents"

    @property
    def info_plist(self) -> Path:
        return self.contents_dir / "Info.plist"

    @property
    def macos_dir(self) -> Path:
        return self.contents_dir / "MacOS"

    @property
    def resources_dir(self) -> Path:
        return self.contents_dir / "Resources"

    @property
    def icon(self) -> Path:
        return self.resources_dir / MACOS_ICON_NAME

    def all_dirs(self) -> list[Path]:
        return [self.contents_dir, self.macos_dir, self.resources_dir]
