import logging
from pathlib import Path, PurePosixPath
from typing import Optional
from urllib.parse import urlparse

import httpx

from jrewrap.errors import DownloadError, FilesystemError

logger = logging.getLogger(__name__)

DEFAULT_ARCHIVE_NAME = "jdk.zip"
CHUNK_SIZE = 1024 * 1024


def archive_name_for(url: str) -> str:
    name = PurePosixPath(urlparse(url).path).name
    return name or DEFAULT_ARCHIVE_NAME


def download_runtime(
    url: str,
    dest_dir: Path,
    *,
    timeout: Optional[float] = None,
    client: Optional[httpx.Client] = None,
) -> Path:
    """Stream the archive at ``url`` into ``dest_dir`` and return its path.

    Without a ``timeout`` the call blocks until the server completes or fails.
    """
    target = dest_dir / archive_name_for(url)
    logger.info("Downloading runtime from '%s' ...", url)

    owns_client = client is None
    if client is None:
        client = httpx.Client(follow_redirects=True, timeout=timeout)

    try:
        with client.stream("GET", url) as response:
            response.raise_for_status()
            with target.open("wb") as out:
                for chunk in response.iter_bytes(CHUNK_SIZE):
                    out.write(chunk)
    except httpx.HTTPStatusError as exc:
        target.unlink(missing_ok=True)
        raise DownloadError(
            f"Download of '{url}' failed with HTTP {exc.response.status_code}"
        ) from exc
    except httpx.HTTPError as exc:
        target.unlink(missing_ok=True)
        raise DownloadError(f"Download of '{url}' failed: {exc}") from exc
    except OSError as exc:
        target.unlink(missing_ok=True)
        raise FilesystemError(f"Failed to write downloaded runtime: {target}") from exc
    finally:
        if owns_client:
            client.close()

    logger.debug("Downloaded %d bytes to %s", target.stat().st_size, target)
    return target
