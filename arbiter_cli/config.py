"""Project configuration read from arbiter.toml and foundry.toml."""

from __future__ import annotations

import os
import tomllib
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from .errors import ConfigError

_TRUE_WORDS = frozenset({"1", "true", "on", "yes"})
_FALSE_WORDS = frozenset({"0", "false", "off", "no"})


def _as_bool(value: Any) -> bool | None:
    """Interpret a configuration value as a boolean, or None if it is not one."""
    if value is None:
        return False
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0
    if isinstance(value, str):
        word = value.lower()
        if word in _TRUE_WORDS:
            return True
        if word in _FALSE_WORDS:
            return False
    return None


def _get_bool(data: Mapping[str, Any], key: str, default: bool) -> bool:
    lowered = {str(k).lower(): v for k, v in data.items()}
    if key not in lowered:
        return default
    result = _as_bool(lowered[key])
    return default if result is None else result


def _read_toml(path: Path) -> dict[str, Any]:
    try:
        with path.open("rb") as handle:
            return tomllib.load(handle)
    except FileNotFoundError as exc:
        raise ConfigError(f'configuration file "{path}" not found') from exc
    except tomllib.TOMLDecodeError as exc:
        raise ConfigError(f"{path}: {exc}") from exc


@dataclass(frozen=True)
class ArbiterConfig:
    """Settings for binding generation."""

    bindings_path: Path = Path("src")
    submodules: bool = False
    ignore_interfaces: bool = False

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> ArbiterConfig:
        """Build a config from parsed settings; bindings always go to src/bindings."""
        return cls(
            bindings_path=Path("src") / "bindings",
            submodules=_get_bool(data, "submodules", False),
            ignore_interfaces=_get_bool(data, "ignore_interfaces", True),
        )

    @classmethod
    def load(cls, path: str | os.PathLike[str] = "arbiter.toml") -> ArbiterConfig:
        """Read the config from a TOML file, raising ConfigError on failure."""
        return cls.from_mapping(_read_toml(Path(path)))


@dataclass(frozen=True)
class FoundryConfig:
    """The parts of a foundry project configuration the tool needs."""

    root: Path
    src: Path
    libs: list[Path] = field(default_factory=list)

    @classmethod
    def load(cls, root: str | os.PathLike[str] | None = None) -> FoundryConfig:
        """Read foundry.toml under root (default: the current directory).

        The profile is taken from FOUNDRY_PROFILE, falling back to "default";
        settings missing from it come from the default profile.
        """
        base = Path.cwd() if root is None else Path(root)
        settings: dict[str, Any] = {}
        config_file = base / "foundry.toml"
        if config_file.is_file():
            profiles = _read_toml(config_file).get("profile", {})
            if not isinstance(profiles, Mapping):
                raise ConfigError(f"{config_file}: [profile] must be a table")
            settings.update(profiles.get("default", {}))
            name = os.environ.get("FOUNDRY_PROFILE", "default")
            if name != "default":
                settings.update(profiles.get(name, {}))

        src = settings.get("src", "src")
        libs = settings.get("libs", ["lib"])
        if not isinstance(src, str):
            raise ConfigError("src must be a string")
        if isinstance(libs, str) or not all(isinstance(lib, str) for lib in libs):
            raise ConfigError("libs must be a list of strings")
        return cls(root=base, src=base / src, libs=[base / lib for lib in libs])