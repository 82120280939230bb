"""Uniform access to the zip and gzip-tar containers a runtime can ship in.

Entry names handed to callers are always POSIX-style and relative: a leading
``./`` or ``/`` found in tarballs is dropped so that callers can match
prefixes without caring which container they are looking at.
"""

from __future__ import annotations

import copy
import logging
import os
import shutil
import stat
import struct
import tarfile
import tempfile
import zipfile
import zlib
from enum import Enum
from pathlib import Path
from typing import BinaryIO, Callable, Iterator

from jrewrap.errors import FilesystemError, UnsupportedFormatError

logger = logging.getLogger(__name__)

EntryPredicate = Callable[[str], bool]

GZIP_SIGNATURE = b"\x1f\x8b"
ZIP_SIGNATURES = (b"PK\x03\x04", b"PK\x05\x06", b"PK\x07\x08")
ZIP64_EXTRA_ID = 0x0001
LOCAL_HEADER_SIGNATURE = b"PK\x03\x04"
LOCAL_HEADER_SIZE = 30
DATA_DESCRIPTOR_FLAG = 0x08
DATA_DESCRIPTOR_SIGNATURE = 0x08074B50
COPY_CHUNK_SIZE = 1 << 20

# RuntimeError also covers NotImplementedError, which zipfile raises for
# compression methods it cannot decode. Encrypted entries raise RuntimeError.
_CORRUPT_ERRORS = (
    zipfile.BadZipFile,
    tarfile.TarError,
    EOFError,
    zlib.error,
    RuntimeError,
)


class ArchiveFormat(str, Enum):
    ZIP = "zip"
    GZIP_TAR = "gztar"


def detect_format(archive: Path) -> ArchiveFormat:
    try:
        with archive.open("rb") as f:
            head = f.read(4)
    except OSError as exc:
        raise FilesystemError(f"Failed to read archive: {archive}") from exc

    if head.startswith(GZIP_SIGNATURE):
        return ArchiveFormat.GZIP_TAR
    if head.startswith(ZIP_SIGNATURES):
        return ArchiveFormat.ZIP
    # Zips with a prepended stub keep their central directory at the end.
    if zipfile.is_zipfile(archive):
        return ArchiveFormat.ZIP

    raise UnsupportedFormatError(
        f"Unsupported or corrupt archive: {archive}"
    )


def is_archive(path: Path) -> bool:
    if not path.is_file():
        return False
    try:
        detect_format(path)
    except UnsupportedFormatError:
        return False
    return True


def normalize_entry_name(name: str) -> str:
    name = name.replace("\\", "/")
    while name.startswith("./"):
        name = name[2:]
    return name.lstrip("/")


def extract(archive: Path, dest: Path) -> None:
    """Expand ``archive`` under ``dest``, keeping permission bits and symlinks."""
    archive_format = detect_format(archive)
    logger.debug("Extracting %s archive %s into %s", archive_format.value, archive, dest)

    try:
        dest.mkdir(parents=True, exist_ok=True)
        if archive_format is ArchiveFormat.ZIP:
            _extract_zip(archive, dest)
        else:
            with tarfile.open(archive, "r:gz") as tf:
                tf.extractall(dest, filter="tar")
    except _CORRUPT_ERRORS as exc:
        raise UnsupportedFormatError(
            f"Failed to extract '{archive}': {exc}"
        ) from exc
    except OSError as exc:
        raise FilesystemError(
            f"Failed to extract '{archive}' into '{dest}': {exc}"
        ) from exc


def _extract_zip(archive: Path, dest: Path) -> None:
    root = dest.resolve()

    with zipfile.ZipFile(archive) as zf:
        for info in zf.infolist():
            target = _safe_target(root, info.filename)
            mode = info.external_attr >> 16

            if info.is_dir():
                target.mkdir(parents=True, exist_ok=True)
                continue

            target.parent.mkdir(parents=True, exist_ok=True)

            if stat.S_ISLNK(mode):
                link = zf.read(info).decode("utf-8")
                _check_inside(root, (target.parent / link).resolve(), info.filename)
                if target.is_symlink() or target.exists():
                    target.unlink()
                os.symlink(link, target)
                continue

            with zf.open(info) as src, target.open("wb") as out:
                shutil.copyfileobj(src, out)

            permissions = stat.S_IMODE(mode)
            if permissions:
                target.chmod(permissions)


def _safe_target(root: Path, name: str) -> Path:
    target = (root / normalize_entry_name(name)).resolve()
    _check_inside(root, target, name)
    return target


def _check_inside(root: Path, target: Path, name: str) -> None:
    if target != root and root not in target.parents:
        raise UnsupportedFormatError(
            f"Archive entry escapes the destination directory: {name}"
        )


class ArchiveEntries:
    """Lazy view of the entry names in an archive.

    Each iteration re-opens the archive, so the view can be walked any
    number of times without extracting anything.
    """

    def __init__(self, archive: Path):
        self.archive = archive
        self.format = detect_format(archive)

    def __iter__(self) -> Iterator[str]:
        try:
            if self.format is ArchiveFormat.ZIP:
                with zipfile.ZipFile(self.archive) as zf:
                    for info in zf.infolist():
                        yield normalize_entry_name(info.filename)
            else:
                with tarfile.open(self.archive, "r|gz") as tf:
                    for member in tf:
                        yield normalize_entry_name(member.name)
        except _CORRUPT_ERRORS as exc:
            raise UnsupportedFormatError(
                f"Failed to read '{self.archive}': {exc}"
            ) from exc


def list_entries(archive: Path) -> ArchiveEntries:
    return ArchiveEntries(archive)


def rewrite_excluding(archive: Path, predicate: EntryPredicate) -> int:
    """Rewrite ``archive`` without the entries ``predicate`` selects.

    Retained zip entries are copied byte for byte, compressed payload
    included, so they keep their method, level, CRC and attributes. Retained
    tar members keep their content, modes and timestamps. The new archive is
    written next to the original and only replaces it once complete. Returns
    the number of entries dropped.
    """
    archive_format = detect_format(archive)

    fd, tmp_name = tempfile.mkstemp(
        prefix=f".{archive.name}.", suffix=".tmp", dir=archive.parent
    )
    os.close(fd)
    tmp_path = Path(tmp_name)

    try:
        if archive_format is ArchiveFormat.ZIP:
            removed = _rewrite_zip(archive, tmp_path, predicate)
        else:
            removed = _rewrite_tar(archive, tmp_path, predicate)
        shutil.copymode(archive, tmp_path)
        os.replace(tmp_path, archive)
    except _CORRUPT_ERRORS as exc:
        raise UnsupportedFormatError(
            f"Failed to rewrite '{archive}': {exc}"
        ) from exc
    except OSError as exc:
        raise FilesystemError(
            f"Failed to rewrite '{archive}': {exc}"
        ) from exc
    finally:
        tmp_path.unlink(missing_ok=True)

    logger.debug("Rewrote %s, dropped %d entries", archive, removed)
    return removed


def _rewrite_zip(src: Path, dst: Path, predicate: EntryPredicate) -> int:
    removed = 0
    with zipfile.ZipFile(src) as zin, src.open("rb") as raw, zipfile.ZipFile(
        dst, "w", allowZip64=True
    ) as zout:
        zout.comment = zin.comment
        for info in zin.infolist():
            if predicate(normalize_entry_name(info.filename)):
                removed += 1
                continue
            _copy_raw_entry(raw, info, zout)
    return removed


def _copy_raw_entry(raw: BinaryIO, info: zipfile.ZipInfo, zout: zipfile.ZipFile) -> None:
    """Append an entry to ``zout`` with its compressed payload copied verbatim.

    The data is never decompressed, so the method, level, CRC and sizes of
    the source entry carry over unchanged.
    """
    raw.seek(info.header_offset)
    header = raw.read(LOCAL_HEADER_SIZE)
    if len(header) != LOCAL_HEADER_SIZE or header[:4] != LOCAL_HEADER_SIGNATURE:
        raise zipfile.BadZipFile(f"Bad local header for entry {info.filename}")
    name_length, extra_length = struct.unpack("<HH", header[26:30])
    raw.seek(info.header_offset + LOCAL_HEADER_SIZE + name_length + extra_length)

    entry = copy.copy(info)
    entry.extra = _strip_zip64_extra(info.extra)
    zip64 = entry.file_size > zipfile.ZIP64_LIMIT or entry.compress_size > zipfile.ZIP64_LIMIT

    out = zout.fp
    entry.header_offset = out.tell()
    out.write(entry.FileHeader(zip64))
    _copy_exactly(raw, out, entry.compress_size, info.filename)
    if entry.flag_bits & DATA_DESCRIPTOR_FLAG:
        fmt = "<LLQQ" if zip64 else "<LLLL"
        out.write(struct.pack(
            fmt, DATA_DESCRIPTOR_SIGNATURE, entry.CRC, entry.compress_size, entry.file_size
        ))

    # Register the entry so that closing zout writes it into the central directory.
    zout.start_dir = out.tell()
    zout.filelist.append(entry)
    zout.NameToInfo[entry.filename] = entry


def _copy_exactly(src: BinaryIO, dst: BinaryIO, size: int, name: str) -> None:
    remaining = size
    while remaining:
        chunk = src.read(min(COPY_CHUNK_SIZE, remaining))
        if not chunk:
            raise zipfile.BadZipFile(f"Truncated data for entry {name}")
        dst.write(chunk)
        remaining -= len(chunk)


def _strip_zip64_extra(extra: bytes) -> bytes:
    # The writer emits its own zip64 record when it needs one.
    kept = bytearray()
    offset = 0
    while offset + 4 <= len(extra):
        header_id, size = struct.unpack("<HH", extra[offset:offset + 4])
        end = offset + 4 + size
        if header_id != ZIP64_EXTRA_ID:
            kept += extra[offset:end]
        offset = end
    return bytes(kept)


def _rewrite_tar(src: Path, dst: Path, predicate: EntryPredicate) -> int:
    removed = 0
    with tarfile.open(src, "r:gz") as tin, tarfile.open(
        dst, "w:gz", format=tarfile.PAX_FORMAT
    ) as tout:
        for member in tin:
            if predicate(normalize_entry_name(member.name)):
                removed += 1
                continue

            if member.isfile():
                data = tin.extractfile(member)
                try:
                    tout.addfile(member, data)
                finally:
                    if data is not None:
                        data.close()
            else:
                tout.addfile(member)
    return removed
