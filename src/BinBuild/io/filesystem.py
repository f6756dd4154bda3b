# === NAVMAP v1 ===
# {
#   "module": "BinBuild.io.filesystem",
#   "purpose": "Provide path stripping, directory walking, moves and scoped temporary resources",
#   "sections": [
#     {"id": "paths", "name": "Path Helpers", "anchor": "PTH", "kind": "helpers"},
#     {"id": "moves", "name": "Moves & Removal", "anchor": "MOV", "kind": "helpers"},
#     {"id": "tempfiles", "name": "Scoped Temporary Resources", "anchor": "TMP", "kind": "api"}
#   ]
# }
# === /NAVMAP ===

"""Filesystem helpers for binary builds.

Responsibilities include stripping leading directories from archive member
paths, walking freshly extracted trees to a bounded depth, moving build outputs
across filesystems, and handing out temporary files and directories that are
always removed once the caller's ``with`` block exits.
"""

from __future__ import annotations

import contextlib
import errno
import logging
import os
import shutil
import tempfile
from pathlib import Path
from typing import Iterator, List, Optional, Union

__all__ = [
    "strip_dirs",
    "walk_dir",
    "move_path",
    "remove_quietly",
    "temporary_file",
    "temporary_directory",
]

LOGGER = logging.getLogger("BinBuild.io.filesystem")

PathLike = Union[str, "os.PathLike[str]"]

# --- Path helpers -------------------------------------------------------------


def strip_dirs(path: PathLike, level: int) -> str:
    """Remove ``level`` leading directory components from ``path``.

    The leaf name is always preserved.  When ``path`` has fewer directory
    components than ``level`` nothing is stripped.

    Examples:
        >>> strip_dirs(os.path.join("pkg-1.0", "bin", "tool"), 1) == os.path.join("bin", "tool")
        True
        >>> strip_dirs("tool", 3)
        'tool'
    """

    text = os.fspath(path)
    if level <= 0:
        return text

    head, leaf = os.path.split(text)
    dirs = [part for part in head.split(os.sep) if part] if head else []
    if len(dirs) < level:
        return os.path.join(*dirs, leaf)
    return os.path.join(*dirs[level:], leaf)


def walk_dir(root: PathLike, max_depth: int, _depth: int = 0) -> List[Path]:
    """Collect entries under ``root`` down to ``max_depth`` levels.

    Files are returned wherever they are found.  Directories shallower than the
    cutoff are descended into (and not returned themselves); directories at the
    cutoff are returned as opaque leaves.
    """

    leaves: List[Path] = []
    if _depth > max_depth:
        return leaves

    with os.scandir(root) as entries:
        for entry in sorted(entries, key=lambda item: item.name):
            entry_path = Path(entry.path)
            if entry.is_dir(follow_symlinks=False) and _depth + 1 < max_depth:
                leaves.extend(walk_dir(entry_path, max_depth, _depth + 1))
            else:
                leaves.append(entry_path)
    return leaves


# --- Moves & removal ----------------------------------------------------------


def move_path(src: PathLike, dst: PathLike) -> None:
    """Rename ``src`` to ``dst``, falling back to a copy across filesystems.

    A directory may replace an existing empty directory, following POSIX
    rename semantics.
    """

    try:
        os.replace(src, dst)
    except OSError as exc:
        if exc.errno != errno.EXDEV:
            raise
        LOGGER.debug(
            "cross-device move, copying instead",
            extra={"stage": "remap", "src": str(src), "dst": str(dst)},
        )
        if os.path.isdir(src) and os.path.isdir(dst):
            os.rmdir(dst)
        shutil.move(os.fspath(src), os.fspath(dst))


def remove_quietly(path: PathLike) -> None:
    """Remove ``path`` if present; failures are logged, never raised."""

    try:
        if os.path.isdir(path) and not os.path.islink(path):
            shutil.rmtree(path)
        else:
            os.unlink(path)
    except FileNotFoundError:
        return
    except OSError as exc:
        LOGGER.warning(
            "failed to remove temporary resource",
            extra={"stage": "cleanup", "path": str(path), "error": str(exc)},
        )


# --- Scoped temporary resources -----------------------------------------------


@contextlib.contextmanager
def temporary_file(
    *, prefix: str = "binbuild-", suffix: str = "", dir: Optional[PathLike] = None
) -> Iterator[Path]:
    """Yield a fresh temporary file path that is removed when the block exits."""

    fd, name = tempfile.mkstemp(prefix=prefix, suffix=suffix, dir=dir)
    os.close(fd)
    path = Path(name)
    try:
        yield path
    finally:
        remove_quietly(path)


@contextlib.contextmanager
def temporary_directory(
    *, prefix: str = "binbuild-", suffix: str = "", dir: Optional[PathLike] = None
) -> Iterator[Path]:
    """Yield a fresh temporary directory that is removed when the block exits.

    The directory may be moved away inside the block (for example renamed into
    a build target); a missing directory at cleanup time is not an error.
    """

    path = Path(tempfile.mkdtemp(prefix=prefix, suffix=suffix, dir=dir))
    try:
        yield path
    finally:
        if path.exists():
            remove_quietly(path)
