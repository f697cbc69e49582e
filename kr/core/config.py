"""Typed configuration loading and access.

Configuration lives in an optional `keep-release.toml` at the root of the
application checkout. Every key has a default so a bare checkout can be
released without one.

Example:

    [release]
    repo = "keep-accounts/keep-accounts"
    draft = true

    [desktop]
    bundle = "appimage"

    [timeouts.mobile]
    build = 9000
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path

from .result import Err, Ok, Result
from .structured import StrDict, as_str_dict, get_bool, get_int, get_number, get_str, get_table

__all__ = [
    "CONFIG_FILENAME",
    "DESKTOP_BUNDLE_EXTENSIONS",
    "Config",
    "ConfigError",
    "DesktopConfig",
    "PathsConfig",
    "PhaseTimeouts",
    "ReleaseConfig",
    "TimeoutsConfig",
    "load_config",
]

CONFIG_FILENAME = "keep-release.toml"

# Mobile builds compile the Rust core for four Android ABIs and run Gradle,
# so their budgets are roughly twice the desktop ones.
DESKTOP_PROVISION_TIMEOUT_SECONDS = 15 * 60.0
DESKTOP_BUILD_TIMEOUT_SECONDS = 60 * 60.0
MOBILE_PROVISION_TIMEOUT_SECONDS = 30 * 60.0
MOBILE_BUILD_TIMEOUT_SECONDS = 120 * 60.0
SIGN_TIMEOUT_SECONDS = 5 * 60.0
PUBLISH_TIMEOUT_SECONDS = 15 * 60.0

DEFAULT_LOG_EXCERPT_LINES = 40

# Tauri bundle formats that produce a single package file, and its suffix.
DESKTOP_BUNDLE_EXTENSIONS: dict[str, str] = {
    "deb": ".deb",
    "rpm": ".rpm",
    "appimage": ".AppImage",
    "msi": ".msi",
    "nsis": ".exe",
    "dmg": ".dmg",
}


@dataclass(frozen=True, slots=True)
class ConfigError:
    """Error when config cannot be loaded or parsed."""

    message: str
    path: Path | None = None


@dataclass(frozen=True, slots=True)
class PhaseTimeouts:
    """Per-phase budgets (seconds) for one platform."""

    provision: float
    build: float
    sign: float = SIGN_TIMEOUT_SECONDS


@dataclass(frozen=True, slots=True)
class TimeoutsConfig:
    desktop: PhaseTimeouts = field(
        default_factory=lambda: PhaseTimeouts(
            provision=DESKTOP_PROVISION_TIMEOUT_SECONDS, build=DESKTOP_BUILD_TIMEOUT_SECONDS
        )
    )
    mobile: PhaseTimeouts = field(
        default_factory=lambda: PhaseTimeouts(
            provision=MOBILE_PROVISION_TIMEOUT_SECONDS, build=MOBILE_BUILD_TIMEOUT_SECONDS
        )
    )
    publish: float = PUBLISH_TIMEOUT_SECONDS
    # Whole-run budget; None means no global deadline.
    run: float | None = None


@dataclass(frozen=True, slots=True)
class PathsConfig:
    """Paths relative to the application checkout."""

    frontend: str = "."
    tauri: str = "src-tauri"


@dataclass(frozen=True, slots=True)
class ReleaseConfig:
    # owner/name; None lets gh use the checkout's default remote.
    repo: str | None = None
    draft: bool = True
    title: str = "keep-accounts {tag}"


@dataclass(frozen=True, slots=True)
class DesktopConfig:
    # Tauri bundle format, a key of DESKTOP_BUNDLE_EXTENSIONS.
    # None selects the host default.
    bundle: str | None = None


@dataclass(frozen=True, slots=True)
class Config:
    """Main configuration container."""

    paths: PathsConfig = field(default_factory=PathsConfig)
    release: ReleaseConfig = field(default_factory=ReleaseConfig)
    desktop: DesktopConfig = field(default_factory=DesktopConfig)
    timeouts: TimeoutsConfig = field(default_factory=TimeoutsConfig)
    log_excerpt_lines: int = DEFAULT_LOG_EXCERPT_LINES

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> Config:
        """Create Config from a mapping (parsed TOML)."""
        paths: StrDict = get_table(data, "paths") or {}
        release: StrDict = get_table(data, "release") or {}
        desktop: StrDict = get_table(data, "desktop") or {}
        timeouts: StrDict = get_table(data, "timeouts") or {}
        defaults = TimeoutsConfig()

        draft = get_bool(release, "draft")
        return cls(
            paths=PathsConfig(
                frontend=get_str(paths, "frontend") or ".",
                tauri=get_str(paths, "tauri") or "src-tauri",
            ),
            release=ReleaseConfig(
                repo=get_str(release, "repo"),
                draft=True if draft is None else draft,
                title=get_str(release, "title") or "keep-accounts {tag}",
            ),
            desktop=DesktopConfig(bundle=_bundle(get_str(desktop, "bundle"))),
            timeouts=TimeoutsConfig(
                desktop=_phase_timeouts(get_table(timeouts, "desktop") or {}, defaults.desktop),
                mobile=_phase_timeouts(get_table(timeouts, "mobile") or {}, defaults.mobile),
                publish=_positive(get_number(timeouts, "publish")) or defaults.publish,
                run=_positive(get_number(timeouts, "run")),
            ),
            log_excerpt_lines=get_int(data, "log_excerpt_lines") or DEFAULT_LOG_EXCERPT_LINES,
        )


def _bundle(value: str | None) -> str | None:
    if value is None:
        return None
    bundle = value.lower()
    if bundle not in DESKTOP_BUNDLE_EXTENSIONS:
        supported = ", ".join(sorted(DESKTOP_BUNDLE_EXTENSIONS))
        raise ValueError(f"unsupported desktop bundle {value!r} (expected one of: {supported})")
    return bundle


def _positive(value: float | None) -> float | None:
    if value is None or value <= 0:
        return None
    return value


def _phase_timeouts(table: StrDict, default: PhaseTimeouts) -> PhaseTimeouts:
    return PhaseTimeouts(
        provision=_positive(get_number(table, "provision")) or default.provision,
        build=_positive(get_number(table, "build")) or default.build,
        sign=_positive(get_number(table, "sign")) or default.sign,
    )


def _parse_toml(path: Path) -> Result[StrDict, ConfigError]:
    """Parse a TOML file, handling read and parse errors."""
    import tomllib

    try:
        content = path.read_bytes()
        data_obj: object = tomllib.loads(content.decode("utf-8"))
        data = as_str_dict(data_obj)
        if data is None:
            return Err(ConfigError("Config root must be a TOML table", path=path))
        return Ok(data)
    except FileNotFoundError:
        return Err(ConfigError(f"Config file not found: {path}", path=path))
    except PermissionError:
        return Err(ConfigError(f"Permission denied reading: {path}", path=path))
    except tomllib.TOMLDecodeError as e:
        return Err(ConfigError(f"Invalid TOML syntax: {e}", path=path))
    except UnicodeDecodeError as e:
        return Err(ConfigError(f"Error reading config: {e}", path=path))


def load_config(path: Path) -> Result[Config, ConfigError]:
    """Load and parse configuration from a TOML file.

    Args:
        path: Path to keep-release.toml

    Returns:
        Ok(Config) on success, Err(ConfigError) on failure
    """
    result = _parse_toml(path)
    if isinstance(result, Err):
        return result

    try:
        return Ok(Config.from_dict(result.value))
    except (KeyError, TypeError, ValueError) as e:
        return Err(ConfigError(f"Invalid config structure: {e}", path=path))

