import json
from enum import Enum
from pathlib import Path
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from jrewrap.errors import ConfigError

RESOURCES_DIR = Path(__file__).resolve().parent / "resources"
DEFAULT_LAUNCHER_DIR = RESOURCES_DIR / "launchers"


class Platform(str, Enum):
    WINDOWS_X64 = "windows-x64"
    LINUX_X64 = "linux-x64"
    MACOS = "macos"

    @property
    def family(self) -> str:
        return self.value.split("-", 1)[0]

    @property
    def executable_suffix(self) -> str:
        return ".exe" if self is Platform.WINDOWS_X64 else ""

    @classmethod
    def parse(cls, value: str) -> "Platform":
        normalized = LEGACY_PLATFORM_NAMES.get(value.lower(), value.lower())
        try:
            return cls(normalized)
        except ValueError:
            choices = ", ".join(p.value for p in cls)
            raise ConfigError(
                f"Unknown platform '{value}' (expected one of: {choices})"
            ) from None


LEGACY_PLATFORM_NAMES = {
    "windows64": Platform.WINDOWS_X64.value,
    "linux64": Platform.LINUX_X64.value,
    "mac": Platform.MACOS.value,
}

# Keys of the JSON configuration file and the fields they populate.
JSON_CONFIG_KEYS = {
    "platform": "platform",
    "jdk": "jdk",
    "executable": "executable",
    "classpath": "classpath",
    "mainclass": "main_class",
    "vmargs": "vm_args",
    "resources": "resources",
    "minimizejre": "minimize",
    "output": "output",
    "cachejre": "cache_jre",
    "icon": "icon",
    "bundle": "bundle_identifier",
    "removelibs": "remove_platform_libs",
}

_JSON_PATH_KEYS = {"classpath", "resources", "output", "cachejre", "icon", "removelibs"}


def is_remote_source(source: str) -> bool:
    return source.startswith(("http://", "https://"))


class BundleConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    platform: Platform = Field(
        ...,
        description="Target platform of the bundle",
    )
    jdk: str = Field(
        ...,
        description="Runtime source: a directory, an archive file or an http(s) URL",
    )
    executable: str = Field(
        ...,
        description="Base name of the native launcher",
    )
    classpath: list[Path] = Field(
        ...,
        description="Files or directories placed on the application classpath",
    )
    main_class: str = Field(
        ...,
        description="Fully qualified entry-point class",
        examples=["com.example.App"],
    )
    output: Path = Field(
        ...,
        description="Output directory; removed and recreated on every run",
    )
    vm_args: list[str] = Field(
        default_factory=list,
        description="Arguments passed to the virtual machine",
    )
    resources: list[Path] = Field(
        default_factory=list,
        description="Extra files or directories copied next to the classpath",
    )
    minimize: Optional[str] = Field(
        default=None,
        description="Built-in minimization profile name or path to a profile JSON file",
    )
    cache_jre: Optional[Path] = Field(
        default=None,
        description="Directory caching the extracted and minimized runtime",
    )
    icon: Optional[Path] = Field(
        default=None,
        description="Icon copied into the app bundle (macOS only)",
    )
    bundle_identifier: Optional[str] = Field(
        default=None,
        description="CFBundleIdentifier (macOS only), defaults to the main class package",
    )
    keep_libraries: list[str] = Field(
        default_factory=list,
        description="Glob patterns of native libraries the library filter must keep",
    )
    remove_platform_libs: Optional[list[Path]] = Field(
        default=None,
        description="Classpath entries to strip foreign native libraries from (default: all)",
    )
    runtime_dir_name: str = Field(
        default="runtime",
        description="Name of the runtime directory inside the bundle",
    )
    launcher_dir: Path = Field(
        default=DEFAULT_LAUNCHER_DIR,
        description="Directory holding the pre-built launcher binaries",
    )
    download_timeout: Optional[float] = Field(
        default=None,
        description="Timeout in seconds for a remote runtime download; None waits forever",
    )

    @field_validator("platform", mode="before")
    @classmethod
    def validate_platform(cls, value: Any) -> Any:
        if isinstance(value, str):
            return Platform.parse(value)
        return value

    @field_validator("executable", "runtime_dir_name")
    @classmethod
    def validate_file_name(cls, value: str) -> str:
        if not value:
            raise ConfigError("Executable and runtime directory names cannot be empty")
        if "/" in value or "\\" in value:
            raise ConfigError(f"Name must not contain path separators: {value}")
        return value

    @field_validator("jdk", "main_class")
    @classmethod
    def validate_not_empty(cls, value: str) -> str:
        if not value.strip():
            raise ConfigError("The runtime source and main class are required")
        return value

    @field_validator("classpath")
    @classmethod
    def validate_classpath(cls, value: list[Path]) -> list[Path]:
        if not value:
            raise ConfigError("At least one classpath entry is required")
        return value

    @field_validator("cache_jre")
    @classmethod
    def validate_cache_jre(cls, value: Optional[Path]) -> Optional[Path]:
        if value is not None and value.exists() and not value.is_dir():
            raise ConfigError(f"{value} must be a directory")
        return value

    @field_validator("download_timeout")
    @classmethod
    def validate_download_timeout(cls, value: Optional[float]) -> Optional[float]:
        if value is not None and value <= 0:
            raise ConfigError("Download timeout must be positive")
        return value

    @property
    def remote_source(self) -> bool:
        return is_remote_source(self.jdk)

    @property
    def resolved_bundle_identifier(self) -> str:
        if self.bundle_identifier:
            return self.bundle_identifier
        package, _, _ = self.main_class.rpartition(".")
        return package or self.main_class

    @property
    def normalized_vm_args(self) -> list[str]:
        return [arg if arg.startswith("-") else f"-{arg}" for arg in self.vm_args]

    @classmethod
    def from_json_file(cls, path: Path, **overrides: Any) -> "BundleConfig":
        """Load a JSON configuration file; keyword overrides win over file values.

        Relative paths (and a relative local ``jdk``) resolve against the
        directory containing the file.
        """
        try:
            raw = json.loads(path.read_text(encoding="utf-8"))
        except OSError as exc:
            raise ConfigError(f"Failed to read configuration file: {path}") from exc
        except json.JSONDecodeError as exc:
            raise ConfigError(f"Invalid JSON in configuration file {path}: {exc}") from exc

        if not isinstance(raw, dict):
            raise ConfigError(f"Configuration file must contain a JSON object: {path}")

        unknown = sorted(set(raw) - set(JSON_CONFIG_KEYS))
        if unknown:
            raise ConfigError(
                f"Unknown configuration keys in {path}: {', '.join(unknown)}"
            )

        base_dir = path.resolve().parent
        values: dict[str, Any] = {}
        for key, value in raw.items():
            if key in _JSON_PATH_KEYS:
                value = _resolve_json_paths(base_dir, value)
            elif key == "jdk" and isinstance(value, str) and not is_remote_source(value):
                value = str(base_dir / value)
            values[JSON_CONFIG_KEYS[key]] = value

        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls.build(**values)

    @classmethod
    def build(cls, **values: Any) -> "BundleConfig":
        try:
            return cls(**values)
        except ValidationError as exc:
            raise ConfigError(_format_validation_error(exc)) from exc


def _resolve_json_paths(base_dir: Path, value: Any) -> Any:
    if isinstance(value, str):
        return base_dir / value
    if isinstance(value, list):
        return [base_dir / item if isinstance(item, str) else item for item in value]
    return value


def _format_validation_error(exc: ValidationError) -> str:
    problems = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error["loc"]) or "config"
        problems.append(f"{location}: {error['msg']}")
    return "Invalid configuration: " + "; ".join(problems)
