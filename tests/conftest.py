from __future__ import annotations

import io
import stat
import zipfile
from pathlib import Path
from typing import Callable

import pytest

from jrewrap.bundle.launcher import LAUNCHER_BINARIES

RT_JAR_ENTRIES = {
    "java/lang/Object.class": b"object",
    "com/sun/corba/Orb.class": b"orb",
    "com/sun/corbax/Extra.class": b"extra",
    "sun/applet/Applet.class": b"applet",
}


def zip_bytes(entries: dict[str, bytes]) -> bytes:
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w", zipfile.ZIP_DEFLATED) as zf:
        for name, data in entries.items():
            zf.writestr(name, data)
    return buffer.getvalue()


def write_zip(path: Path, entries: dict[str, bytes]) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(zip_bytes(entries))
    return path


def add_executable(zf: zipfile.ZipFile, name: str, data: bytes) -> None:
    info = zipfile.ZipInfo(name)
    info.create_system = 3
    info.external_attr = (stat.S_IFREG | 0o755) << 16
    zf.writestr(info, data)


@pytest.fixture
def launcher_dir(tmp_path: Path) -> Path:
    directory = tmp_path / "launchers"
    directory.mkdir()
    for platform, name in LAUNCHER_BINARIES.items():
        (directory / name).write_bytes(f"launcher for {platform.value}".encode())
    return directory


@pytest.fixture
def make_jdk_zip(tmp_path: Path) -> Callable[..., Path]:
    """Factory for a zipped JDK with a legacy ``jre`` directory or a modern root."""

    def _make(name: str = "jdk.zip", *, legacy: bool = False) -> Path:
        prefix = "jdk-17/jre/" if legacy else "jdk-17/"
        archive = tmp_path / "sources" / name
        archive.parent.mkdir(parents=True, exist_ok=True)
        with zipfile.ZipFile(archive, "w", zipfile.ZIP_DEFLATED) as zf:
            add_executable(zf, f"{prefix}bin/java", b"#!/bin/sh\n")
            zf.writestr(f"{prefix}lib/rt.jar", zip_bytes(RT_JAR_ENTRIES))
            zf.writestr(f"{prefix}lib/rhino.jar", b"rhino")
            zf.writestr(f"{prefix}release", b'JAVA_VERSION="17"\n')
            if legacy:
                add_executable(zf, "jdk-17/bin/java", b"#!/bin/sh\n")
        return archive

    return _make


@pytest.fixture
def app_jar(tmp_path: Path) -> Path:
    return write_zip(
        tmp_path / "app" / "myapp.jar",
        {
            "com/example/App.class": b"app",
            "natives/windows/lib.dll": b"dll",
            "natives/linux/lib.so": b"so",
            "natives/macos/lib.dylib": b"dylib",
        },
    )
