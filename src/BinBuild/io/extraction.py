# === NAVMAP v1 ===
# {
#   "module": "BinBuild.io.extraction",
#   "purpose": "Detect archive formats and unpack tar/zip archives with directory stripping",
#   "sections": [
#     {"id": "formats", "name": "Format Detection", "anchor": "FMT", "kind": "api"},
#     {"id": "members", "name": "Member Path Validation", "anchor": "MEM", "kind": "helpers"},
#     {"id": "extract", "name": "Archive Extraction", "anchor": "EXT", "kind": "api"}
#   ]
# }
# === /NAVMAP ===

"""Archive format detection and extraction.

Archives are decoded with libarchive.  Tar-family archives honour a
``strip`` level while entries are written (the same contract as
``tar --strip-components``).  Zip archives are unpacked in full into a private
staging directory and flattened there: every entry found at depth ``strip + 1``
is renamed up by ``strip`` directories.  Shallow directories emptied by that
pass are left in place.  The staged tree is then merged into the destination,
so entries written there by other archives are never re-stripped.
"""

from __future__ import annotations

import enum
import logging
import os
import shutil
import stat
from pathlib import Path, PurePosixPath
from typing import List, Optional, Union

import libarchive

from ..errors import ExtractionError, StripError, UnsupportedFormat
from .filesystem import strip_dirs, temporary_directory, walk_dir

__all__ = [
    "ArchiveFormat",
    "detect_media_type",
    "format_for_media_type",
    "extract_archive",
    "extract_tar",
    "extract_zip",
]

LOGGER = logging.getLogger("BinBuild.io.extraction")

# --- Format detection ---------------------------------------------------------

OCTET_STREAM = "application/octet-stream"

_MAGIC_NUMBERS = (
    (b"\x1f\x8b", "application/gzip"),
    (b"BZh", "application/x-bzip2"),
    (b"PK\x03\x04", "application/zip"),
    (b"PK\x05\x06", "application/zip"),
    (b"PK\x07\x08", "application/zip"),
    (b"\xfd7zXZ\x00", "application/x-xz"),
    (b"\x28\xb5\x2f\xfd", "application/zstd"),
    (b"7z\xbc\xaf\x27\x1c", "application/x-7z-compressed"),
)
_TAR_MAGIC_OFFSET = 257
_SNIFF_BYTES = 512


class ArchiveFormat(str, enum.Enum):
    """Archive families the extractor can unpack."""

    TAR = "tar"
    ZIP = "zip"
    UNKNOWN = "unknown"


_MEDIA_TYPE_FORMATS = {
    "application/gzip": ArchiveFormat.TAR,
    "application/x-gzip": ArchiveFormat.TAR,
    "application/x-bzip2": ArchiveFormat.TAR,
    "application/zip": ArchiveFormat.ZIP,
}


def detect_media_type(path: Path) -> str:
    """Sniff the MIME type of ``path`` from its leading bytes."""

    with path.open("rb") as handle:
        header = handle.read(_SNIFF_BYTES)
    for magic, media_type in _MAGIC_NUMBERS:
        if header.startswith(magic):
            return media_type
    if header[_TAR_MAGIC_OFFSET : _TAR_MAGIC_OFFSET + 5] == b"ustar":
        return "application/x-tar"
    return OCTET_STREAM


def format_for_media_type(media_type: Optional[str]) -> ArchiveFormat:
    """Map a sniffed MIME type onto an :class:`ArchiveFormat`."""

    if not media_type:
        return ArchiveFormat.UNKNOWN
    normalized = media_type.split(";")[0].strip().lower()
    return _MEDIA_TYPE_FORMATS.get(normalized, ArchiveFormat.UNKNOWN)


# --- Member path validation ---------------------------------------------------


def _member_parts(pathname: str) -> List[str]:
    """Split an archive member name into safe relative components."""

    normalized = pathname.replace("\\", "/")
    member = PurePosixPath(normalized)
    if member.is_absolute() or (len(normalized) > 1 and normalized[1] == ":"):
        raise ExtractionError(f"Absolute path in archive entry: {pathname}", path=pathname)
    parts = [part for part in member.parts if part not in ("", ".")]
    if ".." in parts:
        raise ExtractionError(f"Path escapes extraction root: {pathname}", path=pathname)
    return parts


def _stripped_target(destination: Path, pathname: str, strip: int) -> Optional[Path]:
    parts = _member_parts(pathname)
    if len(parts) <= strip:
        return None
    return destination.joinpath(*parts[strip:])


def _is_within(path: Union[str, Path], root: Path) -> bool:
    try:
        Path(path).relative_to(root)
    except ValueError:
        return False
    return True


def _ensure_within(path: Path, root: Path, pathname: str) -> None:
    """Reject ``path`` when following existing symlinks leads outside ``root``."""

    if not _is_within(path.resolve(), root):
        raise ExtractionError(
            f"Archive entry resolves outside extraction root: {pathname}", path=pathname
        )


def _check_symlink(entry, target: Path, root: Path) -> None:
    linkpath = entry.linkpath or ""
    if not linkpath or os.path.isabs(linkpath) or PurePosixPath(linkpath).is_absolute():
        raise ExtractionError(
            f"Absolute symlink in archive entry: {entry.pathname} -> {linkpath}",
            path=entry.pathname,
        )
    pointee = os.path.normpath(os.path.join(str(target.parent.resolve()), linkpath))
    if not _is_within(pointee, root):
        raise ExtractionError(
            f"Symlink escapes extraction root: {entry.pathname} -> {linkpath}",
            path=entry.pathname,
        )


# --- Archive extraction -------------------------------------------------------


def _write_entry(entry, target: Path, destination: Path, strip: int) -> None:
    root = destination.resolve()
    _ensure_within(target.parent, root, entry.pathname)
    if entry.isdir:
        _ensure_within(target, root, entry.pathname)
        target.mkdir(parents=True, exist_ok=True)
        return

    if entry.issym:
        _check_symlink(entry, target, root)

    target.parent.mkdir(parents=True, exist_ok=True)
    if target.is_symlink() or target.exists():
        if target.is_dir() and not target.is_symlink():
            shutil.rmtree(target)
        else:
            target.unlink()

    if entry.issym:
        os.symlink(entry.linkpath, target)
        return

    if entry.islnk:
        link_target = _stripped_target(destination, entry.linkpath, strip)
        if link_target is not None:
            _ensure_within(link_target, root, entry.linkpath)
        if link_target is None or not link_target.exists():
            raise ExtractionError(
                f"Hard link target missing for {entry.pathname}: {entry.linkpath}",
                path=entry.pathname,
            )
        shutil.copy2(link_target, target)
        return

    with target.open("wb") as handle:
        for block in entry.get_blocks():
            handle.write(block)
    mode = stat.S_IMODE(entry.mode or 0)
    if mode:
        os.chmod(target, mode)


def _unpack(archive_path: Path, destination: Path, strip: int) -> int:
    """Write every member of ``archive_path`` below ``destination``."""

    written = 0
    try:
        with libarchive.file_reader(str(archive_path)) as archive:
            for entry in archive:
                target = _stripped_target(destination, entry.pathname, strip)
                if target is None:
                    continue
                _write_entry(entry, target, destination, strip)
                written += 1
    except libarchive.ArchiveError as exc:
        raise ExtractionError(
            f"Failed to extract archive {archive_path}: {exc}", path=str(archive_path)
        ) from exc
    except OSError as exc:
        raise ExtractionError(
            f"Failed to write archive {archive_path} into {destination}: {exc}",
            path=str(archive_path),
        ) from exc
    return written


def extract_tar(archive_path: Path, destination: Path, strip: Optional[int] = None) -> None:
    """Extract a (compressed) tarball, dropping ``strip`` leading components."""

    destination.mkdir(parents=True, exist_ok=True)
    count = _unpack(archive_path, destination, strip or 0)
    LOGGER.debug(
        "extracted tar archive",
        extra={"stage": "extract", "archive": str(archive_path), "entries": count, "strip": strip},
    )


def _merge_into(source: Path, destination: Path) -> None:
    """Move the children of ``source`` into ``destination``, merging directories."""

    for child in sorted(source.iterdir()):
        target = destination / child.name
        if child.is_dir() and not child.is_symlink() and target.is_dir() and not target.is_symlink():
            _merge_into(child, target)
            continue
        try:
            os.replace(child, target)
        except OSError as exc:
            if child.is_dir() and target.is_dir() and not target.is_symlink():
                # another source created the directory first
                _merge_into(child, target)
                continue
            raise ExtractionError(
                f"Cannot move extracted entry {child.name} into {destination}: {exc}",
                path=str(child),
            ) from exc


def extract_zip(archive_path: Path, destination: Path, strip: Optional[int] = None) -> None:
    """Extract a zip archive, then flatten ``strip`` leading directories.

    Members are unpacked unchanged into a private staging directory below
    ``destination``.  When ``strip`` is set every entry at depth ``strip + 1``
    of the staging tree is renamed ``strip`` levels up; the flattened tree is
    then merged into ``destination``.  Entries already present in
    ``destination`` are never touched by the flatten pass.  Rename failures
    raise :class:`StripError`; entries already moved are not restored.
    """

    destination.mkdir(parents=True, exist_ok=True)
    with temporary_directory(prefix=".binbuild-zip-", dir=destination) as staging:
        count = _unpack(archive_path, staging, 0)
        LOGGER.debug(
            "extracted zip archive",
            extra={"stage": "extract", "archive": str(archive_path), "entries": count, "strip": strip},
        )

        if strip:
            for leaf in walk_dir(staging, strip + 1):
                relative = leaf.relative_to(staging)
                stripped = staging / strip_dirs(relative, strip)
                if stripped == leaf:
                    continue
                try:
                    os.rename(leaf, stripped)
                except OSError as exc:
                    raise StripError(strip, str(relative), exc) from exc

        _merge_into(staging, destination)


def extract_archive(
    archive_path: Path,
    destination: Path,
    archive_format: ArchiveFormat = ArchiveFormat.TAR,
    strip: Optional[int] = None,
) -> None:
    """Extract ``archive_path`` into ``destination`` according to ``archive_format``."""

    try:
        resolved = ArchiveFormat(archive_format)
    except ValueError:
        resolved = ArchiveFormat.UNKNOWN

    if resolved is ArchiveFormat.TAR:
        extract_tar(archive_path, destination, strip)
    elif resolved is ArchiveFormat.ZIP:
        extract_zip(archive_path, destination, strip)
    else:
        extension = "".join(archive_path.suffixes) or archive_path.name
        raise UnsupportedFormat(
            f"Unsupported file type: {extension}",
            extension=extension,
            detected_type=str(getattr(archive_format, "value", archive_format)),
        )
