from pathlib import Path
from typing import Optional


class JrewrapError(Exception):
    exit_code: int = 1

    def __init__(self, message: str):
        super().__init__(message)
        self.stage: Optional[str] = None


class ConfigError(JrewrapError):
    exit_code = 2


class FilesystemError(JrewrapError):
    exit_code = 12


class DownloadError(FilesystemError):
    exit_code = 14


class UnsupportedFormatError(JrewrapError):
    exit_code = 21


class RuntimeNotFoundError(JrewrapError):
    exit_code = 22

    def __init__(self, search_path: Path):
        super().__init__(
            f"Couldn't find a runtime in the extracted tree, see '{search_path}'"
        )
        self.search_path = search_path


class ResourceMissingError(JrewrapError):
    exit_code = 23
