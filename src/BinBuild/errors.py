# === NAVMAP v1 ===
# {
#   "module": "BinBuild.errors",
#   "purpose": "Define the exception hierarchy used across fetching, extraction, build and remap stages",
#   "sections": [
#     {"id": "base", "name": "Base Exceptions", "anchor": "BAS", "kind": "api"},
#     {"id": "fetch", "name": "Fetch Errors", "anchor": "FET", "kind": "api"},
#     {"id": "extract", "name": "Extraction Errors", "anchor": "EXT", "kind": "api"},
#     {"id": "build", "name": "Build & Remap Errors", "anchor": "BLD", "kind": "api"}
#   ]
# }
# === /NAVMAP ===

"""Exception hierarchy shared across binary fetching, extraction and building.

A build chains network I/O, archive decoding, subprocess execution and
filesystem moves.  Each stage raises a dedicated subclass of
:class:`BinBuildError` that carries enough context (URL, status, command, exit
code or path) to diagnose a failure without inspecting internals.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional, Sequence

if TYPE_CHECKING:  # pragma: no cover - import cycle guard for type checkers only
    from .settings import Command, Remap

__all__ = [
    "BinBuildError",
    "ConfigError",
    "TargetNotDirectory",
    "UnsupportedFormat",
    "FetchError",
    "HTTPError",
    "EmptyBody",
    "DownloadError",
    "ExtractionError",
    "StripError",
    "NoBinaryForPlatform",
    "BuildCommandError",
    "RemapError",
]


class BinBuildError(RuntimeError):
    """Base exception for every failure raised by the build pipeline."""


class ConfigError(BinBuildError):
    """Raised when build configuration inputs are missing or invalid."""


class TargetNotDirectory(ConfigError):
    """Raised when the configured target path exists but is not a directory."""

    def __init__(self, target: str) -> None:
        super().__init__(f"Destination {target} is not a directory")
        self.target = target


class UnsupportedFormat(BinBuildError):
    """Raised when a downloaded artifact is not a supported archive format."""

    def __init__(
        self,
        message: str,
        *,
        url: Optional[str] = None,
        detected_type: Optional[str] = None,
        extension: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.url = url
        self.detected_type = detected_type
        self.extension = extension


# --- Fetch errors -------------------------------------------------------------


class FetchError(BinBuildError):
    """Raised when a source cannot be copied or downloaded."""

    def __init__(self, message: str, *, url: Optional[str] = None) -> None:
        super().__init__(message)
        self.url = url


class HTTPError(FetchError):
    """Raised when the origin answers with a non-success status."""

    def __init__(self, status: int, status_text: str, *, url: Optional[str] = None) -> None:
        super().__init__(f"HTTP error ({status}): {status_text}", url=url)
        self.status = status
        self.status_text = status_text


class EmptyBody(FetchError):
    """Raised when a successful response carries no body."""

    def __init__(self, *, url: Optional[str] = None) -> None:
        super().__init__("Empty response body!", url=url)


class DownloadError(FetchError):
    """Raised when streaming a response body to disk fails partway."""

    def __init__(self, url: str, cause: BaseException) -> None:
        super().__init__(f"Failed to download {url}: {cause}", url=url)
        self.cause = cause


# --- Extraction errors --------------------------------------------------------


class ExtractionError(BinBuildError):
    """Raised when an archive cannot be unpacked into its destination."""

    def __init__(self, message: str, *, path: Optional[str] = None) -> None:
        super().__init__(message)
        self.path = path


class StripError(ExtractionError):
    """Raised when leading directories cannot be stripped after extraction."""

    def __init__(self, level: int, path: str, cause: BaseException) -> None:
        super().__init__(f"Cannot strip {level} levels for {path}: {cause}", path=path)
        self.level = level
        self.cause = cause


# --- Build & remap errors -----------------------------------------------------


class NoBinaryForPlatform(BinBuildError):
    """Raised when no registered source matches the host platform pair."""

    def __init__(self, os_arch_pair: str) -> None:
        super().__init__(f"No binary for {os_arch_pair}")
        self.os_arch_pair = os_arch_pair


class BuildCommandError(BinBuildError):
    """Raised when a build command exits with a non-zero status or cannot be started."""

    def __init__(self, command: "Command", exit_code: int) -> None:
        super().__init__(f"Build error: {command.display()} returns {exit_code}")
        self.command = command
        self.exit_code = exit_code

    @property
    def argv(self) -> Sequence[str]:
        return self.command.argv()


class RemapError(BinBuildError):
    """Raised when a built file cannot be moved into the target layout."""

    def __init__(self, entry: Optional["Remap"], cause: BaseException) -> None:
        if entry is None:
            message = f"Cannot move build directory into target: {cause}"
        else:
            message = f"Cannot remap {entry.src} -> {entry.resolved_dest}: {cause}"
        super().__init__(message)
        self.entry = entry
        self.cause = cause
