from __future__ import annotations

import json
import stat
import zipfile
from pathlib import Path
from typing import Callable

import httpx
import pytest

from jrewrap.bundle.assembler import Stage, assemble_bundle
from jrewrap.config import BundleConfig
from jrewrap.errors import ConfigError, ResourceMissingError


def _config(tmp_path: Path, jdk: Path, app_jar: Path, launcher_dir: Path, **overrides) -> BundleConfig:
    values = {
        "platform": "linux-x64",
        "jdk": str(jdk),
        "executable": "myapp",
        "classpath": [app_jar],
        "main_class": "com.example.App",
        "vm_args": ["Xmx1G", "-Dfoo=bar"],
        "output": tmp_path / "out",
        "launcher_dir": launcher_dir,
    }
    values.update(overrides)
    return BundleConfig.build(**values)


def test_linux_bundle_layout(
    tmp_path: Path,
    make_jdk_zip: Callable[..., Path],
    app_jar: Path,
    launcher_dir: Path,
) -> None:
    assets = tmp_path / "assets"
    assets.mkdir()
    (assets / "level1.dat").write_text("level")
    config = _config(
        tmp_path, make_jdk_zip(), app_jar, launcher_dir,
        resources=[assets], minimize="soft",
    )
    stale = config.output / "stale.txt"
    stale.parent.mkdir()
    stale.write_text("from a previous run")

    result = assemble_bundle(config)

    out = config.output
    assert sorted(p.name for p in out.iterdir()) == [
        "assets", "config.json", "myapp", "myapp.jar", "runtime",
    ]
    assert result.launcher == out / "myapp"
    assert stat.S_IMODE(result.launcher.stat().st_mode) & 0o111 == 0o111
    assert (out / "assets" / "level1.dat").read_text() == "level"
    assert (out / "runtime" / "bin" / "java").exists()
    assert json.loads((out / "config.json").read_text()) == {
        "classPath": ["myapp.jar"],
        "mainClass": "com.example.App",
        "vmArgs": ["-Xmx1G", "-Dfoo=bar"],
    }
    with zipfile.ZipFile(out / "myapp.jar") as zf:
        assert sorted(zf.namelist()) == ["com/example/App.class", "natives/linux/lib.so"]
    assert result.libraries_removed == 2
    # The original jar is never modified.
    with zipfile.ZipFile(app_jar) as zf:
        assert len(zf.namelist()) == 4


def test_windows_launcher_gets_exe_suffix(
    tmp_path: Path,
    make_jdk_zip: Callable[..., Path],
    app_jar: Path,
    launcher_dir: Path,
) -> None:
    config = _config(tmp_path, make_jdk_zip(), app_jar, launcher_dir, platform="windows-x64")

    result = assemble_bundle(config)

    assert result.launcher == config.output / "myapp.exe"
    assert result.launcher.read_bytes() == b"launcher for windows-x64"
    with zipfile.ZipFile(config.output / "myapp.jar") as zf:
        assert "natives/windows/lib.dll" in zf.namelist()
        assert "natives/linux/lib.so" not in zf.namelist()


def test_macos_bundle_layout(
    tmp_path: Path,
    make_jdk_zip: Callable[..., Path],
    app_jar: Path,
    launcher_dir: Path,
) -> None:
    icon = tmp_path / "app.icns"
    icon.write_bytes(b"icns")
    config = _config(
        tmp_path, make_jdk_zip(), app_jar, launcher_dir,
        platform="macos", executable="App", icon=icon,
    )

    result = assemble_bundle(config)

    contents = config.output / "Contents"
    assert sorted(p.name for p in config.output.iterdir()) == ["Contents"]
    assert sorted(p.name for p in contents.iterdir()) == ["Info.plist", "MacOS", "Resources"]
    assert result.launcher == contents / "MacOS" / "App"
    assert sorted(p.name for p in (contents / "Resources").iterdir()) == [
        "config.json", "icons.icns", "myapp.jar", "runtime",
    ]
    plist = (contents / "Info.plist").read_text()
    assert "<string>com.example</string>" in plist
    assert "<string>App</string>" in plist
    assert "${" not in plist


def test_missing_resource_aborts_in_resource_stage(
    tmp_path: Path,
    make_jdk_zip: Callable[..., Path],
    app_jar: Path,
    launcher_dir: Path,
) -> None:
    config = _config(
        tmp_path, make_jdk_zip(), app_jar, launcher_dir,
        resources=[tmp_path / "missing-assets"],
    )

    with pytest.raises(ResourceMissingError) as excinfo:
        assemble_bundle(config)

    assert excinfo.value.stage == Stage.COPY_RESOURCES.value
    assert "missing-assets" in str(excinfo.value)


def test_missing_launcher_binary(
    tmp_path: Path,
    make_jdk_zip: Callable[..., Path],
    app_jar: Path,
) -> None:
    empty = tmp_path / "no-launchers"
    empty.mkdir()
    config = _config(tmp_path, make_jdk_zip(), app_jar, empty)

    with pytest.raises(ResourceMissingError) as excinfo:
        assemble_bundle(config)

    assert excinfo.value.stage == Stage.COPY_LAUNCHER_AND_CLASSPATH.value


def test_keep_library_callback(
    tmp_path: Path,
    make_jdk_zip: Callable[..., Path],
    app_jar: Path,
    launcher_dir: Path,
) -> None:
    config = _config(tmp_path, make_jdk_zip(), app_jar, launcher_dir)

    result = assemble_bundle(config, keep_library=lambda path: path.endswith(".dylib"))

    assert result.libraries_removed == 1
    with zipfile.ZipFile(config.output / "myapp.jar") as zf:
        assert "natives/macos/lib.dylib" in zf.namelist()


def test_unknown_profile_leaves_previous_output_alone(
    tmp_path: Path,
    make_jdk_zip: Callable[..., Path],
    app_jar: Path,
    launcher_dir: Path,
) -> None:
    config = _config(
        tmp_path, make_jdk_zip(), app_jar, launcher_dir, minimize="no-such-profile",
    )
    previous = config.output / "previous-build.txt"
    previous.parent.mkdir()
    previous.write_text("still here")

    with pytest.raises(ConfigError, match="Unknown minimization profile"):
        assemble_bundle(config)

    assert sorted(p.name for p in config.output.iterdir()) == ["previous-build.txt"]


def test_populated_cache_builds_without_fetching(
    tmp_path: Path,
    make_jdk_zip: Callable[..., Path],
    app_jar: Path,
    launcher_dir: Path,
) -> None:
    cache = tmp_path / "cache"
    warm = _config(
        tmp_path, make_jdk_zip(), app_jar, launcher_dir,
        cache_jre=cache, minimize="soft", output=tmp_path / "warm",
    )
    assemble_bundle(warm)

    calls: list[httpx.Request] = []

    def refuse(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        raise httpx.ConnectError("unreachable", request=request)

    config = _config(
        tmp_path, "https://unreachable.invalid/openjdk-17.zip", app_jar, launcher_dir,
        cache_jre=cache, minimize="soft",
    )

    result = assemble_bundle(config, client=httpx.Client(transport=httpx.MockTransport(refuse)))

    assert calls == []
    assert result.runtime.from_cache
    assert (config.output / "runtime" / "bin" / "java").exists()
    assert not (config.output / "runtime" / "lib" / "rhino.jar").exists()
    assert (config.output / "myapp").exists()
    assert (config.output / "config.json").exists()
