"""Archive detection and extraction coverage.

Exercises magic-number sniffing, the media type → format mapping, tarball
strip-components handling, the two-phase zip flattening, and the errors raised
for unsupported formats and unsafe member paths.
"""

from __future__ import annotations

import io
import os
import sys
import tarfile
import zipfile

import pytest

from BinBuild.errors import ExtractionError, StripError, UnsupportedFormat
from BinBuild.io.extraction import (
    ArchiveFormat,
    detect_media_type,
    extract_archive,
    extract_tar,
    extract_zip,
    format_for_media_type,
)
from BinBuild.testing import make_tar_archive, make_zip_archive


def _tree(root):
    return sorted(
        path.relative_to(root).as_posix() for path in root.rglob("*") if path.is_file()
    )


@pytest.mark.parametrize(
    ("compression", "expected"),
    [("gz", "application/gzip"), ("bz2", "application/x-bzip2"), (None, "application/x-tar")],
)
def test_detect_media_type_for_tarballs(tmp_path, compression, expected):
    archive = make_tar_archive(tmp_path / "pkg.tar", {"a.txt": "a"}, compression=compression)
    assert detect_media_type(archive) == expected


def test_detect_media_type_for_zip(tmp_path):
    archive = make_zip_archive(tmp_path / "pkg.zip", {"a.txt": "a"})
    assert detect_media_type(archive) == "application/zip"


def test_detect_media_type_falls_back_to_octet_stream(tmp_path):
    plain = tmp_path / "notes.txt"
    plain.write_text("just text")
    assert detect_media_type(plain) == "application/octet-stream"


@pytest.mark.parametrize(
    ("media_type", "expected"),
    [
        ("application/gzip", ArchiveFormat.TAR),
        ("application/x-bzip2", ArchiveFormat.TAR),
        ("application/zip", ArchiveFormat.ZIP),
        ("Application/Zip; charset=binary", ArchiveFormat.ZIP),
        ("application/x-xz", ArchiveFormat.UNKNOWN),
        ("application/x-tar", ArchiveFormat.UNKNOWN),
        ("text/plain", ArchiveFormat.UNKNOWN),
        (None, ArchiveFormat.UNKNOWN),
    ],
)
def test_format_for_media_type(media_type, expected):
    assert format_for_media_type(media_type) is expected


def test_extract_tar_strips_wrapper_directory(tmp_path):
    archive = make_tar_archive(
        tmp_path / "pkg.tar.gz",
        {"pkg-1.0/bin/tool": "#!/bin/sh\n", "pkg-1.0/README": "readme"},
    )
    destination = tmp_path / "out"

    extract_tar(archive, destination, strip=1)

    assert _tree(destination) == ["README", "bin/tool"]
    assert (destination / "bin" / "tool").read_text() == "#!/bin/sh\n"


def test_extract_tar_without_strip_keeps_layout(tmp_path):
    archive = make_tar_archive(tmp_path / "pkg.tar.bz2", {"pkg/a.txt": "a"}, compression="bz2")
    destination = tmp_path / "out"

    extract_archive(archive, destination, ArchiveFormat.TAR)

    assert _tree(destination) == ["pkg/a.txt"]


def test_extract_tar_skips_entries_shallower_than_strip(tmp_path):
    archive = make_tar_archive(tmp_path / "pkg.tar.gz", {"top.txt": "t", "pkg/inner.txt": "i"})
    destination = tmp_path / "out"

    extract_tar(archive, destination, strip=1)

    assert _tree(destination) == ["inner.txt"]


@pytest.mark.skipif(sys.platform.startswith("win"), reason="POSIX permission bits")
def test_extract_tar_preserves_executable_bit(tmp_path):
    archive = make_tar_archive(
        tmp_path / "pkg.tar.gz", {"pkg/bin/tool": "#!/bin/sh\n"}, executable=True
    )
    destination = tmp_path / "out"

    extract_tar(archive, destination, strip=1)

    assert os.access(destination / "bin" / "tool", os.X_OK)


def test_extract_tar_rejects_path_traversal(tmp_path):
    archive = tmp_path / "evil.tar.gz"
    with tarfile.open(archive, "w:gz") as handle:
        data = b"owned"
        info = tarfile.TarInfo("../escape.txt")
        info.size = len(data)
        handle.addfile(info, io.BytesIO(data))

    with pytest.raises(ExtractionError):
        extract_tar(archive, tmp_path / "out")
    assert not (tmp_path / "escape.txt").exists()


def test_extract_corrupt_archive_raises_extraction_error(tmp_path):
    archive = tmp_path / "broken.tar.gz"
    archive.write_bytes(b"\x1f\x8b" + b"\x00" * 32)

    with pytest.raises(ExtractionError):
        extract_tar(archive, tmp_path / "out")


def test_zip_strip_moves_file_to_destination_root(tmp_path):
    """A single wrapper directory is removed when strip is one."""

    archive = make_zip_archive(tmp_path / "pkg.zip", {"top/": b"", "top/file.txt": "hello"})
    destination = tmp_path / "out"

    extract_zip(archive, destination, strip=1)

    assert (destination / "file.txt").read_text() == "hello"
    assert not (destination / "top" / "file.txt").exists()


def test_zip_strip_moves_deeper_directories_as_units(tmp_path):
    archive = make_zip_archive(
        tmp_path / "pkg.zip",
        {"pkg/bin/tool": "t", "pkg/lib/sub/mod.so": "m", "pkg/LICENSE": "l"},
    )
    destination = tmp_path / "out"

    extract_archive(archive, destination, ArchiveFormat.ZIP, strip=1)

    assert _tree(destination) == ["LICENSE", "bin/tool", "lib/sub/mod.so"]


def test_zip_without_strip_keeps_layout(tmp_path):
    archive = make_zip_archive(tmp_path / "pkg.zip", {"pkg/a.txt": "a"})
    destination = tmp_path / "out"

    extract_zip(archive, destination)

    assert _tree(destination) == ["pkg/a.txt"]


def test_zip_strip_collision_raises_strip_error(tmp_path):
    archive = make_zip_archive(
        tmp_path / "pkg.zip", {"pkg/pkg/inner.txt": "i", "pkg/other.txt": "o"}
    )
    destination = tmp_path / "out"

    with pytest.raises(StripError) as excinfo:
        extract_zip(archive, destination, strip=1)

    assert excinfo.value.level == 1
    assert "pkg" in str(excinfo.value)


def test_extract_archive_rejects_unknown_format(tmp_path):
    archive = tmp_path / "tool.7z"
    archive.write_bytes(b"7z\xbc\xaf\x27\x1c")

    with pytest.raises(UnsupportedFormat) as excinfo:
        extract_archive(archive, tmp_path / "out", ArchiveFormat.UNKNOWN)

    assert excinfo.value.extension == ".7z"
    assert ".7z" in str(excinfo.value)


def test_extract_archive_accepts_plain_string_formats(tmp_path):
    archive = tmp_path / "pkg.zip"
    with zipfile.ZipFile(archive, "w") as handle:
        handle.writestr("pkg/a.txt", "a")
    destination = tmp_path / "out"

    extract_archive(archive, destination, "zip", strip=1)

    assert _tree(destination) == ["a.txt"]


def _tar_with_symlink(path, link_name, link_target, follow_up=None):
    with tarfile.open(path, "w:gz") as handle:
        link = tarfile.TarInfo(link_name)
        link.type = tarfile.SYMTYPE
        link.linkname = link_target
        handle.addfile(link)
        if follow_up is not None:
            data = b"payload"
            info = tarfile.TarInfo(follow_up)
            info.size = len(data)
            handle.addfile(info, io.BytesIO(data))
    return path


@pytest.mark.skipif(sys.platform.startswith("win"), reason="POSIX symlinks")
def test_extract_tar_rejects_absolute_symlink_and_writes_nothing_through_it(tmp_path):
    outside = tmp_path / "outside"
    outside.mkdir()
    archive = _tar_with_symlink(
        tmp_path / "evil.tar.gz", "pkg/link", str(outside), follow_up="pkg/link/evil.txt"
    )

    with pytest.raises(ExtractionError):
        extract_tar(archive, tmp_path / "out", strip=1)

    assert not (outside / "evil.txt").exists()
    assert not (tmp_path / "out" / "link").is_symlink()


@pytest.mark.skipif(sys.platform.startswith("win"), reason="POSIX symlinks")
def test_extract_tar_rejects_relative_symlink_escaping_destination(tmp_path):
    archive = _tar_with_symlink(tmp_path / "evil.tar.gz", "pkg/bin/link", "../../../outside")

    with pytest.raises(ExtractionError):
        extract_tar(archive, tmp_path / "out", strip=1)


@pytest.mark.skipif(sys.platform.startswith("win"), reason="POSIX symlinks")
def test_extract_tar_keeps_symlinks_inside_destination(tmp_path):
    archive = tmp_path / "pkg.tar.gz"
    with tarfile.open(archive, "w:gz") as handle:
        data = b"#!/bin/sh\n"
        info = tarfile.TarInfo("pkg/bin/tool-1.0")
        info.size = len(data)
        handle.addfile(info, io.BytesIO(data))
        link = tarfile.TarInfo("pkg/bin/tool")
        link.type = tarfile.SYMTYPE
        link.linkname = "tool-1.0"
        handle.addfile(link)
    destination = tmp_path / "out"

    extract_tar(archive, destination, strip=1)

    assert (destination / "bin" / "tool").is_symlink()
    assert (destination / "bin" / "tool").read_text() == "#!/bin/sh\n"


@pytest.mark.skipif(sys.platform.startswith("win"), reason="POSIX symlinks")
def test_extract_tar_refuses_to_write_through_existing_symlink(tmp_path):
    outside = tmp_path / "outside"
    outside.mkdir()
    destination = tmp_path / "out"
    destination.mkdir()
    os.symlink(outside, destination / "lib")
    archive = make_tar_archive(tmp_path / "pkg.tar.gz", {"pkg/lib/evil.so": "x"})

    with pytest.raises(ExtractionError):
        extract_tar(archive, destination, strip=1)

    assert list(outside.iterdir()) == []


def test_zip_strip_leaves_previously_extracted_entries_alone(tmp_path):
    tool = make_tar_archive(tmp_path / "tool.tar.gz", {"tool/bin/tool": "t", "tool/README": "r"})
    extras = make_zip_archive(
        tmp_path / "extras.zip", {"extras/share/data.txt": "d", "extras/bin/helper": "h"}
    )
    destination = tmp_path / "build"

    extract_tar(tool, destination, strip=1)
    extract_zip(extras, destination, strip=1)

    assert _tree(destination) == ["README", "bin/helper", "bin/tool", "share/data.txt"]
    assert not any(path.name.startswith(".binbuild-zip-") for path in destination.iterdir())


def test_zip_strip_collision_leaves_no_staging_directory(tmp_path):
    archive = make_zip_archive(
        tmp_path / "pkg.zip", {"pkg/pkg/inner.txt": "i", "pkg/other.txt": "o"}
    )
    destination = tmp_path / "out"

    with pytest.raises(StripError):
        extract_zip(archive, destination, strip=1)

    assert list(destination.iterdir()) == []
