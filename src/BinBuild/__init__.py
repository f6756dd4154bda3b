# === NAVMAP v1 ===
# {
#   "module": "BinBuild",
#   "purpose": "Public API for fetching, building and laying out platform specific binaries",
#   "sections": []
# }
# === /NAVMAP ===

"""Fetch platform specific binary distributions, build them, and lay them out.

Typical usage::

    from BinBuild import BinBuilder

    (
        BinBuilder()
        .add_source("https://example.org/tool-1.0-linux-x64.tar.gz", "linux", "x64")
        .add_source("https://example.org/tool-1.0-darwin-arm64.zip", "darwin", "arm64")
        .set_target("vendor/tool")
        .set_remaps([{"src": "bin/tool", "dest": "tool"}])
        .build()
    )
"""

from .builder import (
    BinBuilder,
    BuildOrchestrator,
    BuildResult,
    BuildStage,
    ensure_target_exists,
    run_build,
)
from .download import download_and_extract
from .errors import (
    BinBuildError,
    BuildCommandError,
    ConfigError,
    DownloadError,
    EmptyBody,
    ExtractionError,
    FetchError,
    HTTPError,
    NoBinaryForPlatform,
    RemapError,
    StripError,
    TargetNotDirectory,
    UnsupportedFormat,
)
from .io.extraction import ArchiveFormat
from .logging_utils import setup_logging
from .platforms import host_arch, host_os, os_arch_pair
from .settings import BuildConfig, BuildSettings, Command, Remap, load_build_config
from .sources import Source, SourceRegistry

__version__ = "0.1.0"

__all__ = [
    "ArchiveFormat",
    "BinBuildError",
    "BinBuilder",
    "BuildCommandError",
    "BuildConfig",
    "BuildOrchestrator",
    "BuildResult",
    "BuildSettings",
    "BuildStage",
    "Command",
    "ConfigError",
    "DownloadError",
    "EmptyBody",
    "ExtractionError",
    "FetchError",
    "HTTPError",
    "NoBinaryForPlatform",
    "Remap",
    "RemapError",
    "Source",
    "SourceRegistry",
    "StripError",
    "TargetNotDirectory",
    "UnsupportedFormat",
    "download_and_extract",
    "ensure_target_exists",
    "host_arch",
    "host_os",
    "load_build_config",
    "os_arch_pair",
    "run_build",
    "setup_logging",
]
