"""Aggregated IO helpers for BinBuild.

This subpackage bundles filesystem utilities (path stripping, scoped temporary
resources, cross-device moves), archive detection and extraction, and source
fetching over the shared HTTPX client.  Re-exporting the most common symbols
keeps importing ergonomics simple for the rest of the codebase.
"""

from ..net import configure_http_client, get_http_client, reset_http_client
from .extraction import (
    ArchiveFormat,
    detect_media_type,
    extract_archive,
    extract_tar,
    extract_zip,
    format_for_media_type,
)
from .filesystem import (
    move_path,
    remove_quietly,
    strip_dirs,
    temporary_directory,
    temporary_file,
    walk_dir,
)
from .network import (
    copy_local_file,
    download_from_url,
    fetch,
    is_local_source,
    is_url,
    trim_local_url,
)

__all__ = [
    "ArchiveFormat",
    "configure_http_client",
    "copy_local_file",
    "detect_media_type",
    "download_from_url",
    "extract_archive",
    "extract_tar",
    "extract_zip",
    "fetch",
    "format_for_media_type",
    "get_http_client",
    "is_local_source",
    "is_url",
    "move_path",
    "remove_quietly",
    "reset_http_client",
    "strip_dirs",
    "temporary_directory",
    "temporary_file",
    "trim_local_url",
    "walk_dir",
]
