# === NAVMAP v1 ===
# {
#   "module": "BinBuild.download",
#   "purpose": "Fetch one source into a scoped temp file and extract it into the build directory",
#   "sections": [
#     {"id": "api", "name": "Download Pipeline", "anchor": "DLP", "kind": "api"}
#   ]
# }
# === /NAVMAP ===

"""Download-then-extract pipeline for a single binary source."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

import httpx

from .errors import UnsupportedFormat
from .io.extraction import ArchiveFormat, detect_media_type, extract_archive, format_for_media_type
from .io.filesystem import temporary_file
from .io.network import fetch

__all__ = ["download_and_extract"]

LOGGER = logging.getLogger("BinBuild.download")


def download_and_extract(
    url: str,
    destination: Path,
    strip: Optional[int] = None,
    *,
    client: Optional[httpx.Client] = None,
    timeout: Optional[float] = None,
    temp_dir: Optional[Path] = None,
    logger: Optional[logging.Logger] = None,
) -> ArchiveFormat:
    """Fetch ``url`` into a scoped temp file and extract it into ``destination``.

    The archive format is sniffed from the downloaded bytes, not from the URL.
    The temporary file is removed whether extraction succeeds or fails.

    Args:
        url: Local path, ``file:`` URL or remote URL of the archive.
        destination: Directory receiving the extracted entries.
        strip: Number of leading directories to drop from every entry.
        client: HTTPX client override; the shared client is used otherwise.
        timeout: Per-request timeout override in seconds.
        temp_dir: Parent directory for the temporary download file.
        logger: Logger for stage-tagged progress messages.

    Returns:
        The archive format that was extracted.

    Raises:
        UnsupportedFormat: If the content is not a gzip/bzip2 tarball or a zip.
        FetchError: If the source cannot be copied or downloaded.
        ExtractionError: If the archive cannot be unpacked.
    """

    log = logger or LOGGER
    with temporary_file(prefix="binbuild-download-", dir=temp_dir) as temp:
        fetch(url, temp, client=client, timeout=timeout)

        media_type = detect_media_type(temp)
        archive_format = format_for_media_type(media_type)
        if archive_format is ArchiveFormat.UNKNOWN:
            raise UnsupportedFormat(
                f"Unsupported format for {url}: {media_type}",
                url=url,
                detected_type=media_type,
            )

        log.info(
            "extracting source",
            extra={"stage": "extract", "url": url, "format": archive_format.value, "strip": strip},
        )
        extract_archive(temp, destination, archive_format, strip)
    return archive_format
