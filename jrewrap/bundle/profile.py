from pathlib import Path
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from jrewrap.config import RESOURCES_DIR
from jrewrap.errors import ConfigError

PROFILES_DIR = RESOURCES_DIR / "profiles"


def _inside_runtime(path: str) -> str:
    if ".." in path.replace("\\", "/").split("/"):
        raise ConfigError(f"Profile path escapes the runtime root: {path}")
    return path


class RepackRule(BaseModel):
    model_config = ConfigDict(frozen=True)

    archive: str = Field(
        ...,
        description="Archive path relative to the runtime root",
        examples=["lib/rt.jar"],
    )
    paths: list[str] = Field(
        default_factory=list,
        description="Entry path prefixes removed from the archive",
    )

    @field_validator("archive")
    @classmethod
    def validate_archive(cls, value: str) -> str:
        return _inside_runtime(value)


class DeleteRule(BaseModel):
    model_config = ConfigDict(frozen=True)

    platform: Literal["*", "windows", "linux", "macos"] = Field(
        default="*",
        description="Platform family the rule applies to, '*' for all",
    )
    paths: list[str] = Field(
        default_factory=list,
        description="Glob patterns relative to the runtime root",
    )

    @field_validator("paths")
    @classmethod
    def validate_paths(cls, value: list[str]) -> list[str]:
        return [_inside_runtime(pattern) for pattern in value]

    def applies_to(self, family: str) -> bool:
        return self.platform == "*" or self.platform == family


class MinimizationProfile(BaseModel):
    model_config = ConfigDict(frozen=True)

    reduce: list[RepackRule] = Field(default_factory=list)
    remove: list[DeleteRule] = Field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.reduce and not self.remove


def builtin_profiles() -> list[str]:
    return sorted(path.stem for path in PROFILES_DIR.glob("*.json"))


def load_profile(name_or_path: str) -> MinimizationProfile:
    """Load a built-in profile by name, or a custom profile from a JSON file."""
    builtin = PROFILES_DIR / f"{name_or_path}.json"
    if name_or_path in builtin_profiles():
        source = builtin
    else:
        source = Path(name_or_path)
        if not source.is_file():
            raise ConfigError(
                f"Unknown minimization profile '{name_or_path}' "
                f"(built-in: {', '.join(builtin_profiles())}, or a JSON file path)"
            )

    try:
        text = source.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"Failed to read minimization profile: {source}") from exc

    try:
        return MinimizationProfile.model_validate_json(text)
    except ValidationError as exc:
        raise ConfigError(
            f"Invalid minimization profile {source}: {exc.error_count()} problem(s)\n{exc}"
        ) from exc
