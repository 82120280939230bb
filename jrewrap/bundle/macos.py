import logging
from pathlib import Path

from jrewrap.bundle.layout import MacBundlePaths, OutputLayout
from jrewrap.config import RESOURCES_DIR, BundleConfig
from jrewrap.errors import ResourceMissingError
from jrewrap.utils.fs import atomic_write, copy_file, ensure_dir

logger = logging.getLogger(__name__)

INFO_PLIST_TEMPLATE = RESOURCES_DIR / "Info.plist"


def render_info_plist(template: str, executable: str, bundle_identifier: str) -> str:
    values = {
        "${executable}": executable,
        "${bundleIdentifier}": bundle_identifier,
    }
    for key, value in values.items():
        template = template.replace(key, value)
    return template


def build_mac_bundle(
    config: BundleConfig,
    layout: OutputLayout,
    *,
    template_path: Path = INFO_PLIST_TEMPLATE,
) -> OutputLayout:
    """Create the ``Contents`` tree and return the layout pointing into it."""
    bundle = MacBundlePaths(layout.executable_root)
    logger.info("Creating macOS bundle layout in '%s' ...", bundle.contents_dir)

    for directory in bundle.all_dirs():
        ensure_dir(directory)

    try:
        template = template_path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ResourceMissingError(
            f"Bundle metadata template not found: {template_path}"
        ) from exc

    plist = render_info_plist(
        template,
        executable=config.executable,
        bundle_identifier=config.resolved_bundle_identifier,
    )
    atomic_write(bundle.info_plist, plist.encode("utf-8"))

    if config.icon is not None:
        if not config.icon.is_file():
            raise ResourceMissingError(f"Icon '{config.icon}' doesn't exist")
        copy_file(config.icon, bundle.icon)

    return layout.with_roots(bundle.macos_dir, bundle.resources_dir)
