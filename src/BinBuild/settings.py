# === NAVMAP v1 ===
# {
#   "module": "BinBuild.settings",
#   "purpose": "Configuration models, environment overrides and YAML loading for builds",
#   "sections": [
#     {"id": "models", "name": "Build Models", "anchor": "MOD", "kind": "api"},
#     {"id": "environment", "name": "Environment Settings", "anchor": "ENV", "kind": "api"},
#     {"id": "loading", "name": "Configuration Loading", "anchor": "LOA", "kind": "api"}
#   ]
# }
# === /NAVMAP ===

"""Configuration models, parsing, and validation helpers.

A build is described by an immutable :class:`BuildConfig`.  It can be
assembled programmatically through :class:`BinBuild.builder.BinBuilder` or
loaded from a YAML document with :func:`load_build_config`.  Process-wide
knobs (log level, HTTP timeouts, temp directory placement) come from
``BINBUILD_*`` environment variables via :class:`BuildSettings`.
"""

from __future__ import annotations

import logging
import shlex
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Tuple

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from .errors import ConfigError, TargetNotDirectory
from .sources import Source, SourceRegistry

__all__ = [
    "BuildConfig",
    "BuildSettings",
    "Command",
    "Remap",
    "build_config_from_mapping",
    "check_target",
    "get_settings",
    "invalidate_settings_cache",
    "load_build_config",
    "load_raw_yaml",
]

LOGGER = logging.getLogger("BinBuild.settings")

# --- Build models ---------------------------------------------------------------


class Remap(BaseModel):
    """Relocation of one build output into the target directory.

    ``src`` is relative to the temporary build directory (the archive root after
    stripping); ``dest`` is relative to the target directory and defaults to
    ``src``.
    """

    src: str = Field(min_length=1)
    dest: Optional[str] = None

    model_config = ConfigDict(frozen=True, extra="forbid")

    @property
    def resolved_dest(self) -> str:
        return self.dest or self.src


class Command(BaseModel):
    """A build step executed without shell interpretation."""

    cmd: str = Field(min_length=1)
    args: Tuple[str, ...] = ()

    model_config = ConfigDict(frozen=True, extra="forbid")

    @field_validator("args", mode="before")
    @classmethod
    def _coerce_args(cls, value: Any) -> Any:
        if value is None:
            return ()
        if isinstance(value, str):
            return (value,)
        return value

    def argv(self) -> List[str]:
        return [self.cmd, *self.args]

    def display(self) -> str:
        return " ".join(shlex.quote(part) for part in self.argv())


class BuildConfig(BaseModel):
    """Immutable description of one binary build."""

    target: Optional[Path] = None
    sources: Tuple[Source, ...] = ()
    remaps: Tuple[Remap, ...] = ()
    commands: Tuple[Command, ...] = ()
    strip: Optional[int] = Field(default=1, ge=0, description="Leading directories to strip")
    http_timeout_sec: Optional[float] = Field(default=None, gt=0)

    model_config = ConfigDict(frozen=True, extra="forbid")


def check_target(target: Path) -> Path:
    """Reject targets that exist but are not directories."""

    if target.exists() and not target.is_dir():
        raise TargetNotDirectory(str(target))
    return target


# --- Environment settings -------------------------------------------------------


class BuildSettings(BaseSettings):
    """Process-wide settings sourced from ``BINBUILD_*`` environment variables."""

    log_level: str = Field(default="INFO", description="Logging level (DEBUG, INFO, WARNING, ERROR)")
    log_dir: Optional[Path] = Field(default=None, description="Directory for JSON log files")
    http_timeout_sec: float = Field(default=60.0, gt=0)
    http_connect_timeout_sec: float = Field(default=10.0, gt=0)
    user_agent: str = Field(default="BinBuild/0.1")
    temp_dir: Optional[Path] = Field(
        default=None, description="Parent directory for temporary build directories"
    )

    model_config = SettingsConfigDict(env_prefix="BINBUILD_", case_sensitive=False, extra="ignore")


@lru_cache(maxsize=1)
def get_settings() -> BuildSettings:
    return BuildSettings()


def invalidate_settings_cache() -> None:
    """Forget cached settings so the next lookup re-reads the environment."""

    get_settings.cache_clear()


# --- Configuration loading ------------------------------------------------------


def _format_validation_error(exc: PydanticValidationError) -> str:
    messages = []
    for error in exc.errors():
        location = " -> ".join(str(part) for part in error["loc"])
        messages.append(f"{location}: {error['msg']}")
    return "Configuration validation failed:\n  " + "\n  ".join(messages)


def _collect_sources(raw_sources: object) -> Tuple[Source, ...]:
    if raw_sources is None:
        return ()
    if not isinstance(raw_sources, list):
        raise ConfigError("'sources' must be a list")

    registry = SourceRegistry()
    for index, entry in enumerate(raw_sources, start=1):
        if isinstance(entry, str):
            registry.register(entry)
            continue
        if not isinstance(entry, Mapping):
            raise ConfigError(f"Source entry #{index} must be a mapping or URL string")
        url = entry.get("url")
        if not isinstance(url, str) or not url:
            raise ConfigError(f"Source entry #{index} requires a 'url'")
        unknown = set(entry) - {"url", "os", "arch"}
        if unknown:
            raise ConfigError(f"Unknown key(s) in source entry #{index}: {', '.join(sorted(unknown))}")
        registry.register(url, os=entry.get("os"), arch=entry.get("arch"))
    return registry.sources()


def build_config_from_mapping(
    raw_config: Mapping[str, object], *, base_dir: Optional[Path] = None
) -> BuildConfig:
    """Validate ``raw_config`` and return the corresponding :class:`BuildConfig`.

    Relative targets are resolved against ``base_dir`` when provided.  Sources
    without ``os``/``arch`` are pinned to the host at load time.
    """

    payload: Dict[str, object] = dict(raw_config)
    payload["sources"] = _collect_sources(payload.get("sources"))
    for key in ("remaps", "commands"):
        if payload.get(key) is None:
            payload.pop(key, None)

    try:
        config = BuildConfig.model_validate(payload)
    except PydanticValidationError as exc:
        raise ConfigError(_format_validation_error(exc)) from exc

    if config.target is not None:
        target = config.target
        if base_dir is not None and not target.is_absolute():
            target = base_dir / target
            config = config.model_copy(update={"target": target})
        check_target(target)
    return config


def load_raw_yaml(config_path: Path) -> Mapping[str, object]:
    if not config_path.exists():
        raise ConfigError(f"Configuration file not found: {config_path}")

    try:
        with config_path.open("r", encoding="utf-8") as handle:
            data = yaml.safe_load(handle)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Configuration file '{config_path}' contains invalid YAML") from exc

    if not isinstance(data, Mapping):
        raise ConfigError("Configuration file must contain a mapping at the root")
    return data


def load_build_config(config_path: Path) -> BuildConfig:
    """Load a YAML build description from ``config_path``."""

    raw = load_raw_yaml(config_path)
    config = build_config_from_mapping(raw, base_dir=config_path.parent)
    LOGGER.debug(
        "loaded build configuration",
        extra={"stage": "config", "path": str(config_path), "sources": len(config.sources)},
    )
    return config
