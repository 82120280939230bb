import logging
from contextlib import contextmanager
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Iterable, Iterator, Optional

import httpx

from jrewrap.bundle.launcher import install_launcher, write_launch_config
from jrewrap.bundle.layout import OutputLayout
from jrewrap.bundle.libs import (
    KeepPredicate,
    combine_keepers,
    filter_native_libraries,
    glob_keeper,
)
from jrewrap.bundle.macos import build_mac_bundle
from jrewrap.bundle.profile import MinimizationProfile, load_profile
from jrewrap.config import BundleConfig, Platform
from jrewrap.errors import FilesystemError, JrewrapError, ResourceMissingError
from jrewrap.runtime.cache import AcquiredRuntime, acquire_runtime
from jrewrap.utils.fs import copy_entry, delete_tree, ensure_dir

logger = logging.getLogger(__name__)


class Stage(str, Enum):
    CLEAN_OUTPUT = "clean-output"
    PREPARE_PLATFORM_LAYOUT = "prepare-platform-layout"
    COPY_LAUNCHER_AND_CLASSPATH = "copy-launcher-and-classpath"
    WRITE_LAUNCH_CONFIG = "write-launch-config"
    ACQUIRE_RUNTIME = "acquire-and-minimize-runtime"
    COPY_RESOURCES = "copy-resources"
    FILTER_LIBRARIES = "filter-libraries"


@dataclass(frozen=True)
class BundleResult:
    layout: OutputLayout
    launcher: Path
    runtime: AcquiredRuntime
    libraries_removed: int


def assemble_bundle(
    config: BundleConfig,
    *,
    keep_library: Optional[KeepPredicate] = None,
    client: Optional[httpx.Client] = None,
) -> BundleResult:
    """Build the complete bundle described by ``config`` into ``config.output``.

    ``keep_library`` is consulted before the platform rules of the library
    filter: returning True for a library path keeps that file. ``client`` is
    used for a remote runtime download.
    """
    # Resolved before anything on disk changes.
    profile = load_profile(config.minimize) if config.minimize else MinimizationProfile()
    layout = OutputLayout.flat(config.output)

    with _stage(Stage.CLEAN_OUTPUT):
        _clean_output(config.output)

    with _stage(Stage.PREPARE_PLATFORM_LAYOUT):
        if config.platform is Platform.MACOS:
            layout = build_mac_bundle(config, layout)

    with _stage(Stage.COPY_LAUNCHER_AND_CLASSPATH):
        launcher = install_launcher(config, layout)
        logger.info("Copying classpath(s) ...")
        _copy_entries(config.classpath, layout, kind="Classpath entry")

    with _stage(Stage.WRITE_LAUNCH_CONFIG):
        write_launch_config(config, layout)

    with _stage(Stage.ACQUIRE_RUNTIME):
        runtime = acquire_runtime(
            config, layout.resources_root, profile=profile, client=client
        )

    with _stage(Stage.COPY_RESOURCES):
        if config.resources:
            logger.info("Copying resources ...")
            _copy_entries(config.resources, layout, kind="Resource")

    with _stage(Stage.FILTER_LIBRARIES):
        keep = combine_keepers(glob_keeper(config.keep_libraries), keep_library)
        libraries_removed = filter_native_libraries(
            _library_targets(config, layout),
            config.platform,
            keep,
        )

    logger.info("Done!")
    return BundleResult(
        layout=layout,
        launcher=launcher,
        runtime=runtime,
        libraries_removed=libraries_removed,
    )


@contextmanager
def _stage(stage: Stage) -> Iterator[None]:
    logger.debug("Stage: %s", stage.value)
    try:
        yield
    except JrewrapError as exc:
        if exc.stage is None:
            exc.stage = stage.value
        raise
    except OSError as exc:
        error = FilesystemError(f"{type(exc).__name__}: {exc}")
        error.stage = stage.value
        raise error from exc


def _clean_output(output: Path) -> None:
    if output.exists():
        logger.info("Cleaning output directory '%s' ...", output.resolve())
        delete_tree(output)
    ensure_dir(output)


def _copy_entries(entries: Iterable[Path], layout: OutputLayout, *, kind: str) -> None:
    for entry in entries:
        if not entry.exists():
            raise ResourceMissingError(f"{kind} '{entry.resolve()}' doesn't exist")
        copy_entry(entry, layout.resources_root)


def _library_targets(config: BundleConfig, layout: OutputLayout) -> list[Path]:
    selected = config.remove_platform_libs
    if selected is None:
        selected = config.classpath

    targets = []
    for entry in selected:
        target = layout.classpath_target(entry)
        if not target.exists():
            raise ResourceMissingError(
                f"Library filter target '{entry.name}' is not in the bundle"
            )
        targets.append(target)
    return targets
