"""Testing utilities for exercising BinBuild without network access.

Provides a context manager that installs an HTTPX client backed by an
arbitrary transport (usually ``httpx.MockTransport``) plus helpers that write
small tar and zip archives for fixtures.
"""

from __future__ import annotations

import contextlib
import io
import tarfile
import zipfile
from pathlib import Path
from typing import Iterator, Mapping, Optional, Union

import httpx

from ..net import configure_http_client, reset_http_client

__all__ = ["make_tar_archive", "make_zip_archive", "use_mock_http_client"]

Payload = Union[bytes, str]

_TAR_MODES = {"gz": "w:gz", "bz2": "w:bz2", "xz": "w:xz", None: "w"}


@contextlib.contextmanager
def use_mock_http_client(transport: httpx.BaseTransport, **client_kwargs) -> Iterator[httpx.Client]:
    """Temporarily install an HTTPX client backed by ``transport``."""

    client = httpx.Client(transport=transport, **client_kwargs)
    configure_http_client(client)
    try:
        yield client
    finally:
        reset_http_client()
        client.close()


def _as_bytes(payload: Payload) -> bytes:
    return payload.encode("utf-8") if isinstance(payload, str) else payload


def make_tar_archive(
    path: Path,
    files: Mapping[str, Payload],
    *,
    compression: Optional[str] = "gz",
    executable: bool = False,
) -> Path:
    """Write a tarball at ``path`` containing ``files`` (member name → content)."""

    with tarfile.open(path, _TAR_MODES[compression]) as archive:
        for name, payload in files.items():
            data = _as_bytes(payload)
            info = tarfile.TarInfo(name)
            info.size = len(data)
            info.mode = 0o755 if executable else 0o644
            archive.addfile(info, io.BytesIO(data))
    return path


def make_zip_archive(path: Path, files: Mapping[str, Payload]) -> Path:
    """Write a zip archive at ``path``; names ending in ``/`` become directories."""

    with zipfile.ZipFile(path, "w", compression=zipfile.ZIP_DEFLATED) as archive:
        for name, payload in files.items():
            if name.endswith("/"):
                archive.writestr(zipfile.ZipInfo(name), b"")
            else:
                archive.writestr(name, _as_bytes(payload))
    return path
