# === NAVMAP v1 ===
# {
#   "module": "BinBuild.sources",
#   "purpose": "Register binary source URLs per platform and select those matching the host",
#   "sections": [
#     {"id": "models", "name": "Source Model", "anchor": "SRC", "kind": "api"},
#     {"id": "registry", "name": "Source Registry", "anchor": "REG", "kind": "api"}
#   ]
# }
# === /NAVMAP ===

"""Binary source registrations and host matching."""

from __future__ import annotations

from typing import Iterable, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

from .platforms import host_arch, host_os

__all__ = ["Source", "SourceRegistry"]


# --- Source model -------------------------------------------------------------


class Source(BaseModel):
    """A URL serving the binary distribution for one platform/architecture pair."""

    os: str = Field(min_length=1)
    arch: str = Field(min_length=1)
    url: str = Field(min_length=1)

    model_config = ConfigDict(frozen=True, extra="forbid")


# --- Source registry ----------------------------------------------------------


class SourceRegistry:
    """Ordered collection of :class:`Source` entries.

    Registrations are append-only and entries are frozen models, so the
    registry never mutates what callers handed it.  Unset ``os``/``arch``
    values are pinned to the host when :meth:`register` runs, not when
    :meth:`matching` is evaluated.
    """

    def __init__(self, sources: Optional[Iterable[Source]] = None) -> None:
        self._sources: List[Source] = list(sources or ())

    def __len__(self) -> int:
        return len(self._sources)

    def __iter__(self):
        return iter(self._sources)

    def register(self, url: str, os: Optional[str] = None, arch: Optional[str] = None) -> Source:
        source = Source(os=os or host_os(), arch=arch or host_arch(), url=url)
        self._sources.append(source)
        return source

    def sources(self) -> Tuple[Source, ...]:
        return tuple(self._sources)

    def matching(self, os: str, arch: str) -> List[Source]:
        """Return sources registered for exactly ``os``/``arch`` in registration order."""

        return [source for source in self._sources if source.os == os and source.arch == arch]
