import logging
import sys

QUIET_LIBRARIES = ("httpx", "httpcore")


def _resolve_level(verbose: bool, quiet: bool) -> int:
    if quiet:
        return logging.WARNING
    if verbose:
        return logging.DEBUG
    return logging.INFO


def setup_logger(verbose: bool = False, quiet: bool = False) -> None:
    root_logger = logging.getLogger()
    level = _resolve_level(verbose, quiet)

    # Already configured (e.g. by the host application): only adjust the level.
    if root_logger.handlers:
        root_logger.setLevel(level)
        return

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(
        logging.Formatter(fmt="[%(levelname)s] %(name)s: %(message)s")
    )

    root_logger.setLevel(level)
    root_logger.addHandler(handler)

    for name in QUIET_LIBRARIES:
        logging.getLogger(name).setLevel(logging.WARNING)
