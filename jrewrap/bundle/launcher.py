import json
import logging
from pathlib import Path

from jrewrap.bundle.layout import OutputLayout
from jrewrap.config import BundleConfig, Platform
from jrewrap.errors import ResourceMissingError
from jrewrap.utils.fs import atomic_write, copy_file, set_executable

logger = logging.getLogger(__name__)

LAUNCHER_BINARIES = {
    Platform.WINDOWS_X64: "launcher-windows-x64.exe",
    Platform.LINUX_X64: "launcher-linux-x64",
    Platform.MACOS: "launcher-macos",
}


def launcher_binary(platform: Platform, launcher_dir: Path) -> Path:
    binary = launcher_dir / LAUNCHER_BINARIES[platform]
    if not binary.is_file():
        raise ResourceMissingError(
            f"No pre-built launcher for {platform.value} at '{binary}'"
        )
    return binary


def install_launcher(config: BundleConfig, layout: OutputLayout) -> Path:
    source = launcher_binary(config.platform, config.launcher_dir)
    target = layout.launcher_path(config.executable, config.platform)

    logger.info("Copying executable ...")
    copy_file(source, target)
    # Set regardless of host or target OS; harmless where the bits mean nothing.
    set_executable(target)
    return target


def build_launch_config(config: BundleConfig) -> dict:
    return {
        "classPath": [entry.name for entry in config.classpath],
        "mainClass": config.main_class,
        "vmArgs": config.normalized_vm_args,
    }


def write_launch_config(config: BundleConfig, layout: OutputLayout) -> Path:
    logger.info("Writing launch configuration ...")
    payload = json.dumps(build_launch_config(config), indent=2) + "\n"
    atomic_write(layout.launch_config, payload.encode("utf-8"))
    return layout.launch_config
