# === NAVMAP v1 ===
# {
#   "module": "BinBuild.platforms",
#   "purpose": "Normalize host platform and architecture identifiers into source tags",
#   "sections": [
#     {"id": "tables", "name": "Tag Tables", "anchor": "TAB", "kind": "constants"},
#     {"id": "api", "name": "Host Identity", "anchor": "HST", "kind": "api"}
#   ]
# }
# === /NAVMAP ===

"""Host platform and architecture tags used to select binary sources.

Tags follow the conventions most upstream projects use when publishing
prebuilt binaries (``linux``/``darwin``/``win32`` and ``x64``/``arm64``/...),
so a source registered as ``("linux", "x64")`` matches a typical
``tool-linux-x64.tar.gz`` release asset.
"""

from __future__ import annotations

import platform as _platform
import sys
from typing import Dict, Optional

__all__ = ["host_os", "host_arch", "normalize_os", "normalize_arch", "os_arch_pair"]

# --- Tag tables ---------------------------------------------------------------

_OS_PREFIXES = (
    ("linux", "linux"),
    ("darwin", "darwin"),
    ("win32", "win32"),
    ("cygwin", "win32"),
    ("msys", "win32"),
    ("freebsd", "freebsd"),
    ("openbsd", "openbsd"),
    ("netbsd", "netbsd"),
    ("sunos", "sunos"),
    ("aix", "aix"),
)

_ARCH_ALIASES: Dict[str, str] = {
    "x86_64": "x64",
    "amd64": "x64",
    "x64": "x64",
    "i386": "ia32",
    "i686": "ia32",
    "x86": "ia32",
    "ia32": "ia32",
    "aarch64": "arm64",
    "arm64": "arm64",
    "armv6l": "arm",
    "armv7l": "arm",
    "armv8l": "arm",
    "arm": "arm",
    "ppc64le": "ppc64",
    "ppc64": "ppc64",
    "s390x": "s390x",
    "riscv64": "riscv64",
    "loongarch64": "loong64",
    "mips64": "mips64el",
}

# --- Host identity ------------------------------------------------------------


def normalize_os(value: str) -> str:
    """Map a ``sys.platform``-style identifier onto a platform tag."""

    lowered = value.strip().lower()
    for prefix, tag in _OS_PREFIXES:
        if lowered.startswith(prefix):
            return tag
    return lowered


def normalize_arch(value: str) -> str:
    """Map a ``platform.machine()``-style identifier onto an architecture tag."""

    lowered = value.strip().lower()
    return _ARCH_ALIASES.get(lowered, lowered)


def host_os() -> str:
    """Return the platform tag of the running interpreter."""

    return normalize_os(sys.platform)


def host_arch() -> str:
    """Return the architecture tag of the running interpreter."""

    return normalize_arch(_platform.machine())


def os_arch_pair(os_tag: Optional[str] = None, arch_tag: Optional[str] = None) -> str:
    """Return the ``OS-ARCH`` pair, defaulting to the current host.

    Examples:
        >>> os_arch_pair("linux", "x64")
        'linux-x64'
    """

    return f"{os_tag or host_os()}-{arch_tag or host_arch()}"
