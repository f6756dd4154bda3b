# === NAVMAP v1 ===
# {
#   "module": "BinBuild.io.network",
#   "purpose": "Resolve source specifiers into local files via copy or streaming HTTP download",
#   "sections": [
#     {"id": "classify", "name": "Source Classification", "anchor": "CLS", "kind": "helpers"},
#     {"id": "local", "name": "Local Copies", "anchor": "LOC", "kind": "api"},
#     {"id": "remote", "name": "Remote Downloads", "anchor": "REM", "kind": "api"}
#   ]
# }
# === /NAVMAP ===

"""Source fetching for binary builds.

A source string is *local* when it is not a URL (a bare absolute or relative
path, including Windows drive paths) or when it uses the ``file:`` scheme;
anything else is downloaded over HTTP with the shared HTTPX client.  Remote
bodies are streamed straight to disk and a partially written destination is
removed when the transfer fails.
"""

from __future__ import annotations

import logging
import os
import shutil
from pathlib import Path
from typing import Optional
from urllib.parse import urlsplit
from urllib.request import url2pathname

import httpx

from ..errors import DownloadError, EmptyBody, FetchError, HTTPError
from ..net import get_http_client

__all__ = [
    "is_url",
    "is_local_source",
    "trim_local_url",
    "copy_local_file",
    "download_from_url",
    "fetch",
]

LOGGER = logging.getLogger("BinBuild.io.network")

# --- Source classification ----------------------------------------------------


def is_url(value: str) -> bool:
    """Return ``True`` when ``value`` carries a URL scheme.

    Single-letter schemes are Windows drive letters (``C:\\tools``), not URLs.
    """

    try:
        scheme = urlsplit(value).scheme
    except ValueError:
        return False
    return len(scheme) > 1


def is_local_source(value: str) -> bool:
    """Return ``True`` when ``value`` is a filesystem path or a ``file:`` URL."""

    if not is_url(value):
        return True
    return urlsplit(value).scheme.lower() == "file"


def trim_local_url(value: str) -> str:
    """Strip the ``file:`` scheme from ``value``; plain paths are returned as is."""

    if not is_url(value):
        return value
    parts = urlsplit(value)
    if parts.scheme.lower() != "file":
        return value
    return url2pathname(parts.path)


# --- Local copies -------------------------------------------------------------


def copy_local_file(source: str, destination: Path) -> None:
    """Copy the local path or ``file:`` URL ``source`` byte-for-byte to ``destination``."""

    path = trim_local_url(source)
    try:
        shutil.copyfile(path, destination)
    except OSError as exc:
        raise FetchError(f"Cannot copy local source {path}: {exc}", url=source) from exc


# --- Remote downloads ---------------------------------------------------------


def _discard(destination: Path) -> None:
    try:
        os.unlink(destination)
    except OSError:
        pass


def download_from_url(
    url: str,
    destination: Path,
    *,
    client: Optional[httpx.Client] = None,
    timeout: Optional[float] = None,
) -> int:
    """Stream ``url`` into ``destination`` and return the number of bytes written.

    Raises:
        HTTPError: If the origin answers with a non-success status.
        EmptyBody: If the response carries no bytes.
        DownloadError: If the transfer fails before or while streaming the body.
    """

    http = client or get_http_client()
    request_kwargs = {"timeout": timeout} if timeout is not None else {}
    written = 0
    try:
        with http.stream("GET", url, **request_kwargs) as response:
            if not response.is_success:
                raise HTTPError(response.status_code, response.reason_phrase, url=url)
            try:
                with destination.open("wb") as handle:
                    for chunk in response.iter_bytes():
                        handle.write(chunk)
                        written += len(chunk)
            except (httpx.HTTPError, OSError) as exc:
                raise DownloadError(url, exc) from exc
    except FetchError:
        _discard(destination)
        raise
    except httpx.HTTPError as exc:
        _discard(destination)
        raise DownloadError(url, exc) from exc

    if written == 0:
        _discard(destination)
        raise EmptyBody(url=url)
    return written


def fetch(
    source: str,
    destination: Path,
    *,
    client: Optional[httpx.Client] = None,
    timeout: Optional[float] = None,
) -> None:
    """Copy or download ``source`` into ``destination``."""

    if is_local_source(source):
        LOGGER.debug("copying local source", extra={"stage": "download", "url": source})
        copy_local_file(source, destination)
        return

    LOGGER.debug("downloading remote source", extra={"stage": "download", "url": source})
    size = download_from_url(source, destination, client=client, timeout=timeout)
    LOGGER.debug(
        "downloaded remote source",
        extra={"stage": "download", "url": source, "bytes": size},
    )
