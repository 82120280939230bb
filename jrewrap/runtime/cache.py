import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import httpx

from jrewrap.bundle.optimizer import MinimizeStats, minimize_runtime
from jrewrap.bundle.profile import MinimizationProfile, load_profile
from jrewrap.config import BundleConfig
from jrewrap.errors import ConfigError, ResourceMissingError, RuntimeNotFoundError
from jrewrap.runtime.discover import TreeSnapshot, find_runtime_root
from jrewrap.runtime.fetch import download_runtime
from jrewrap.utils.archive import extract
from jrewrap.utils.fs import copy_tree, delete_tree, ensure_dir, is_populated_dir

logger = logging.getLogger(__name__)

SCRATCH_DIR_NAME = ".jrewrap-tmp"


@dataclass(frozen=True)
class AcquiredRuntime:
    path: Path
    from_cache: bool
    stats: MinimizeStats


def acquire_runtime(
    config: BundleConfig,
    resources_root: Path,
    *,
    profile: Optional[MinimizationProfile] = None,
    client: Optional[httpx.Client] = None,
) -> AcquiredRuntime:
    """Place the minimized runtime at ``resources_root/<runtime_dir_name>``.

    With a populated cache directory nothing is fetched, extracted or
    minimized: the cache content is copied into ``resources_root``. An absent
    or empty cache directory is filled first and then copied the same way.
    Cache content is trusted by presence alone. ``profile`` defaults to the
    one named by ``config.minimize``.
    """
    runtime_path = resources_root / config.runtime_dir_name
    cache = config.cache_jre

    if cache is not None:
        if cache.exists() and not cache.is_dir():
            raise ConfigError(f"{cache} must be a directory")
        if is_populated_dir(cache):
            logger.info("Using cached runtime in '%s' ...", cache)
            copy_tree(cache, resources_root)
            return AcquiredRuntime(path=runtime_path, from_cache=True, stats=MinimizeStats())

    if profile is None:
        profile = load_profile(config.minimize) if config.minimize else MinimizationProfile()
    storage = cache if cache is not None else resources_root

    stats = _prepare_runtime(
        config,
        profile=profile,
        scratch=resources_root / SCRATCH_DIR_NAME,
        dest=storage / config.runtime_dir_name,
        client=client,
    )

    if cache is not None:
        copy_tree(cache, resources_root)

    return AcquiredRuntime(path=runtime_path, from_cache=False, stats=stats)


def _prepare_runtime(
    config: BundleConfig,
    *,
    profile: MinimizationProfile,
    scratch: Path,
    dest: Path,
    client: Optional[httpx.Client],
) -> MinimizeStats:
    delete_tree(scratch)
    ensure_dir(scratch)

    source = _resolve_source(config, scratch, client)
    tree = scratch / "runtime-image"

    logger.info("Unpacking runtime ...")
    if source.is_dir():
        copy_tree(source, tree)
    else:
        extract(source, tree)

    if config.remote_source:
        delete_tree(source)

    runtime_root = find_runtime_root(TreeSnapshot.capture(tree))
    if runtime_root is None:
        raise RuntimeNotFoundError(tree)
    logger.debug("Runtime root found at %s", runtime_root)

    stats = minimize_runtime(runtime_root, profile, config.platform)

    try:
        delete_tree(dest)
        ensure_dir(dest.parent)
        copy_tree(runtime_root, dest)
    finally:
        delete_tree(scratch)

    return stats


def _resolve_source(
    config: BundleConfig,
    scratch: Path,
    client: Optional[httpx.Client],
) -> Path:
    if config.remote_source:
        return download_runtime(
            config.jdk,
            scratch,
            timeout=config.download_timeout,
            client=client,
        )

    source = Path(config.jdk)
    if not source.exists():
        raise ResourceMissingError(f"Runtime source '{source}' doesn't exist")
    return source
