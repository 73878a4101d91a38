"""Configuration management for cookiesmith."""

import os
import tomllib
from dataclasses import dataclass, field
from pathlib import Path

DEFAULT_PROFILE = "Default"


class ConfigError(ValueError):
    """Raised when the configuration file cannot be used."""


def get_config_dir() -> Path:
    """Get the XDG-compliant configuration directory."""
    xdg_config = os.environ.get("XDG_CONFIG_HOME", str(Path.home() / ".config"))
    return Path(xdg_config) / "cookiesmith"


def get_config_path() -> Path:
    """Get the path of the TOML configuration file."""
    return get_config_dir() / "config.toml"


@dataclass
class CookieConfig:
    """Cookie-extraction configuration."""

    browsers: list[str] = field(default_factory=list)
    profile: str = DEFAULT_PROFILE
    timeout: float | None = None


@dataclass
class Config:
    """Application configuration."""

    cookies: CookieConfig
    debug: bool = False


def _env_flag(name: str) -> bool:
    return os.environ.get(name, "").strip().lower() in {"1", "true", "yes", "on"}


def load_config(path: Path | None = None) -> Config:
    """Load configuration from TOML file, with defaults for missing values.

    An empty ``browsers`` list means every supported browser. The
    ``COOKIESMITH_BROWSER`` environment variable overrides the file with a
    single browser name, or ``all`` to lift any restriction.

    Raises:
        ConfigError: If the file is not valid TOML or holds a value of the
            wrong type.
    """
    if path is None:
        path = get_config_path()

    data: dict[str, object] = {}
    if path.exists():
        try:
            with path.open("rb") as f:
                data = tomllib.load(f)
        except tomllib.TOMLDecodeError as e:
            raise ConfigError(f"Invalid config file {path}: {e}") from e

    cookie_data = data.get("cookies", {})
    if not isinstance(cookie_data, dict):
        cookie_data = {}

    browsers = cookie_data.get("browsers", [])
    if isinstance(browsers, str):
        browsers = [] if browsers == "all" else [browsers]
    if not isinstance(browsers, list):
        raise ConfigError(f"Invalid config file {path}: browsers must be a list")

    timeout = cookie_data.get("timeout")
    if isinstance(timeout, bool) or not isinstance(timeout, int | float | None):
        raise ConfigError(f"Invalid config file {path}: timeout must be a number")
    cookie_config = CookieConfig(
        browsers=[str(b) for b in browsers],
        profile=str(cookie_data.get("profile", DEFAULT_PROFILE)),
        timeout=float(timeout) if timeout is not None else None,
    )

    env_browser = os.environ.get("COOKIESMITH_BROWSER")
    if env_browser:
        cookie_config.browsers = [] if env_browser == "all" else [env_browser]

    return Config(cookies=cookie_config, debug=_env_flag("COOKIESMITH_DEBUG"))
