# === NAVMAP v1 ===
# {
#   "module": "BinBuild.builder",
#   "purpose": "Coordinate provisioning, concurrent downloads, build commands and remapping",
#   "sections": [
#     {"id": "state", "name": "Build State", "anchor": "STA", "kind": "api"},
#     {"id": "orchestrator", "name": "Build Orchestrator", "anchor": "ORC", "kind": "api"},
#     {"id": "builder", "name": "Fluent Builder", "anchor": "BLD", "kind": "api"}
#   ]
# }
# === /NAVMAP ===

"""Build orchestration for platform specific binary distributions.

A build runs through ``CONFIGURED → PROVISIONING → BUILDING → REMAPPING →
COMPLETE``; any failure moves it to ``FAILED`` and re-raises the original
error.  Provisioning makes sure the target directory exists, selects the
sources registered for the host and downloads them concurrently into a fresh
temporary build directory.  Build commands then run one after another inside
that directory, and finally the configured remaps move outputs into the target
(or the whole build directory becomes the target when no remap is given).
The temporary directory is removed on every exit path.

Example:
    >>> builder = (
    ...     BinBuilder()
    ...     .add_source("https://example.org/tool-linux-x64.tar.gz", "linux", "x64")
    ...     .set_target("vendor/tool")
    ...     .set_remaps([Remap(src="bin/tool", dest="tool")])
    ... )
    >>> builder.to_config().target.as_posix()
    'vendor/tool'
"""

from __future__ import annotations

import enum
import logging
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, List, Mapping, Optional, Sequence, Tuple, Union

import httpx

from .download import download_and_extract
from .errors import ConfigError, NoBinaryForPlatform, RemapError
from .io.filesystem import move_path, temporary_directory
from .logging_utils import CorrelationAdapter, generate_correlation_id
from .platforms import host_arch, host_os, os_arch_pair
from .process import run_command
from .settings import BuildConfig, Command, Remap, check_target, get_settings
from .sources import Source, SourceRegistry

__all__ = [
    "BinBuilder",
    "BuildOrchestrator",
    "BuildResult",
    "BuildStage",
    "ensure_target_exists",
    "run_build",
]

LOGGER = logging.getLogger("BinBuild.builder")

# --- Build state --------------------------------------------------------------


class BuildStage(str, enum.Enum):
    """Lifecycle states of a single build."""

    UNCONFIGURED = "unconfigured"
    CONFIGURED = "configured"
    PROVISIONING = "provisioning"
    BUILDING = "building"
    REMAPPING = "remapping"
    COMPLETE = "complete"
    FAILED = "failed"


@dataclass
class BuildResult:
    """Observable outcome of one build."""

    target: Optional[Path]
    downloaded: List[str] = field(default_factory=list)
    commands_run: List[Command] = field(default_factory=list)
    remapped: List[Path] = field(default_factory=list)
    stage: BuildStage = BuildStage.UNCONFIGURED
    correlation_id: Optional[str] = None


def ensure_target_exists(target: Path) -> Path:
    """Create ``target`` (and parents) unless it already exists."""

    if target.exists():
        return target
    target.mkdir(parents=True, exist_ok=True)
    return target


# --- Build orchestrator -------------------------------------------------------


class BuildOrchestrator:
    """Run one :class:`BuildConfig` to completion.

    An orchestrator executes at most once; create a new one per build.  The
    optional ``downloaded`` list receives each source URL as soon as its fetch
    and extraction succeed, in completion order.
    """

    def __init__(
        self,
        config: BuildConfig,
        *,
        silent: bool = False,
        downloaded: Optional[List[str]] = None,
        client: Optional[httpx.Client] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.config = config
        self.silent = silent
        self.client = client
        self.correlation_id = generate_correlation_id()
        self.log = CorrelationAdapter(
            logger or LOGGER, extra={"correlation_id": self.correlation_id}
        )
        self.result = BuildResult(
            target=config.target,
            downloaded=downloaded if downloaded is not None else [],
            correlation_id=self.correlation_id,
        )
        self._downloaded_lock = threading.Lock()
        self._started = False
        self._transition(
            BuildStage.CONFIGURED if config.target is not None else BuildStage.UNCONFIGURED
        )

    @property
    def stage(self) -> BuildStage:
        return self.result.stage

    def _transition(self, stage: BuildStage) -> None:
        self.result.stage = stage
        self.log.debug("build stage changed", extra={"build_stage": stage.value})

    def run(self) -> BuildResult:
        """Execute the build and return its :class:`BuildResult`."""

        if self._started:
            raise ConfigError("BuildOrchestrator instances run only once")
        self._started = True
        if self.config.target is None:
            raise ConfigError("Target directory is not set")
        target = check_target(self.config.target)

        try:
            self._transition(BuildStage.PROVISIONING)
            ensure_target_exists(target)
            sources = self._matching_sources()

            settings = get_settings()
            with temporary_directory(prefix="binbuild-build-", dir=settings.temp_dir) as build_dir:
                self._download(sources, build_dir)

                self._transition(BuildStage.BUILDING)
                self._run_commands(build_dir)

                self._transition(BuildStage.REMAPPING)
                self._remap(build_dir, target)
        except Exception as exc:
            self._transition(BuildStage.FAILED)
            self.log.error("build failed", extra={"stage": "build", "error": str(exc)})
            raise

        self._transition(BuildStage.COMPLETE)
        self.log.info(
            "build complete",
            extra={
                "stage": "build",
                "target": str(target),
                "downloaded": len(self.result.downloaded),
            },
        )
        return self.result

    def _matching_sources(self) -> List[Source]:
        os_tag, arch_tag = host_os(), host_arch()
        sources = SourceRegistry(self.config.sources).matching(os_tag, arch_tag)
        if not sources:
            raise NoBinaryForPlatform(os_arch_pair(os_tag, arch_tag))
        return sources

    def _download_one(self, source: Source, build_dir: Path) -> str:
        download_and_extract(
            source.url,
            build_dir,
            self.config.strip,
            client=self.client,
            timeout=self.config.http_timeout_sec,
            temp_dir=get_settings().temp_dir,
            logger=self.log,
        )
        with self._downloaded_lock:
            self.result.downloaded.append(source.url)
        return source.url

    def _download(self, sources: Sequence[Source], build_dir: Path) -> None:
        """Fetch and extract every source concurrently, then join.

        The first failure to complete is re-raised once all in-flight downloads
        have settled; every failure is logged with its URL.
        """

        self.log.info(
            "downloading sources",
            extra={"stage": "download", "sources": len(sources), "build_dir": str(build_dir)},
        )
        first_error: Optional[BaseException] = None
        with ThreadPoolExecutor(
            max_workers=len(sources), thread_name_prefix="binbuild-download"
        ) as executor:
            futures = {
                executor.submit(self._download_one, source, build_dir): source
                for source in sources
            }
            for future in as_completed(futures):
                source = futures[future]
                try:
                    future.result()
                except Exception as exc:  # pylint: disable=broad-except
                    self.log.error(
                        "download failed",
                        extra={"stage": "download", "url": source.url, "error": str(exc)},
                    )
                    if first_error is None:
                        first_error = exc
                        for pending in futures:
                            pending.cancel()
                else:
                    self.log.info("downloaded source", extra={"stage": "download", "url": source.url})
        if first_error is not None:
            raise first_error

    def _run_commands(self, build_dir: Path) -> None:
        for command in self.config.commands:
            run_command(command, build_dir, silent=self.silent)
            self.result.commands_run.append(command)

    def _remap(self, build_dir: Path, target: Path) -> None:
        if not self.config.remaps:
            self.log.info(
                "moving build directory into target",
                extra={"stage": "remap", "target": str(target)},
            )
            try:
                move_path(build_dir, target)
            except OSError as exc:
                raise RemapError(None, exc) from exc
            self.result.remapped.append(target)
            return

        for remap in self.config.remaps:
            src = build_dir / remap.src
            dst = target / remap.resolved_dest
            try:
                dst.parent.mkdir(parents=True, exist_ok=True)
                move_path(src, dst)
            except OSError as exc:
                raise RemapError(remap, exc) from exc
            self.log.debug(
                "remapped build output",
                extra={"stage": "remap", "src": remap.src, "dest": remap.resolved_dest},
            )
            self.result.remapped.append(dst)


def run_build(
    config: BuildConfig,
    *,
    silent: bool = False,
    downloaded: Optional[List[str]] = None,
    client: Optional[httpx.Client] = None,
    logger: Optional[logging.Logger] = None,
) -> BuildResult:
    """Execute ``config`` and return the resulting :class:`BuildResult`."""

    orchestrator = BuildOrchestrator(
        config, silent=silent, downloaded=downloaded, client=client, logger=logger
    )
    return orchestrator.run()


# --- Fluent builder -----------------------------------------------------------

RemapLike = Union[Remap, Mapping[str, object]]
CommandLike = Union[Command, Mapping[str, object]]


class BinBuilder:
    """Fluent configuration front-end producing immutable :class:`BuildConfig` values.

    Setters return the builder so calls can be chained; getters never mutate.
    Configuration must not be changed while :meth:`build` is running.
    """

    def __init__(self) -> None:
        self._registry = SourceRegistry()
        self._target: Optional[Path] = None
        self._remaps: Tuple[Remap, ...] = ()
        self._commands: Tuple[Command, ...] = ()
        self._strip: Optional[int] = 1
        self._http_timeout_sec: Optional[float] = None
        self._downloaded: List[str] = []
        self.last_run: Optional[BuildOrchestrator] = None

    @classmethod
    def from_config(cls, config: BuildConfig) -> "BinBuilder":
        builder = cls()
        builder._registry = SourceRegistry(config.sources)
        builder._target = config.target
        builder._remaps = config.remaps
        builder._commands = config.commands
        builder._strip = config.strip
        builder._http_timeout_sec = config.http_timeout_sec
        return builder

    def add_source(
        self, url: str, os: Optional[str] = None, arch: Optional[str] = None
    ) -> "BinBuilder":
        """Register ``url`` for ``os``/``arch``, defaulting to the current host."""

        self._registry.register(url, os=os, arch=arch)
        return self

    def set_target(self, target: Union[str, Path]) -> "BinBuilder":
        """Set the target directory; it must not exist or must be a directory."""

        self._target = check_target(Path(target))
        return self

    def set_remaps(self, remaps: Iterable[RemapLike]) -> "BinBuilder":
        """Set the post-build remaps; an empty list moves the whole build directory."""

        self._remaps = tuple(
            item if isinstance(item, Remap) else Remap.model_validate(item) for item in remaps
        )
        return self

    def set_commands(self, commands: Iterable[CommandLike]) -> "BinBuilder":
        self._commands = tuple(
            item if isinstance(item, Command) else Command.model_validate(item)
            for item in commands
        )
        return self

    def set_strip(self, level: Optional[int]) -> "BinBuilder":
        if level is not None and level < 0:
            raise ConfigError(f"Strip level must be non-negative, got {level}")
        self._strip = level
        return self

    def set_http_timeout(self, seconds: Optional[float]) -> "BinBuilder":
        self._http_timeout_sec = seconds
        return self

    def target(self) -> Optional[Path]:
        return self._target

    def remaps(self) -> Tuple[Remap, ...]:
        return self._remaps

    def commands(self) -> Tuple[Command, ...]:
        return self._commands

    def sources(self) -> Tuple[Source, ...]:
        return self._registry.sources()

    def downloaded_sources(self) -> List[str]:
        """Return URLs whose fetch and extraction succeeded, in completion order."""

        return list(self._downloaded)

    def to_config(self) -> BuildConfig:
        return BuildConfig(
            target=self._target,
            sources=self._registry.sources(),
            remaps=self._remaps,
            commands=self._commands,
            strip=self._strip,
            http_timeout_sec=self._http_timeout_sec,
        )

    def build(
        self,
        silent: bool = False,
        *,
        client: Optional[httpx.Client] = None,
        logger: Optional[logging.Logger] = None,
    ) -> BuildResult:
        """Run the configured build; ``silent`` discards command output."""

        self.last_run = BuildOrchestrator(
            self.to_config(),
            silent=silent,
            downloaded=self._downloaded,
            client=client,
            logger=logger,
        )
        return self.last_run.run()
