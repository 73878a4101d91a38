"""Cookie database discovery for installed browsers."""

import os
import sys
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from enum import StrEnum
from pathlib import Path

from cookiesmith.config import DEFAULT_PROFILE


class BrowserName(StrEnum):
    """Supported browsers, in the order their cookies are merged."""

    CHROME = "chrome"
    ARC = "arc"
    EDGE = "edge"
    FIREFOX = "firefox"


@dataclass(frozen=True)
class BrowserConfig:
    """One discovered cookie database and what is needed to read it."""

    name: BrowserName
    cookies_path: Path
    user_data_dir: Path | None = None
    os_crypt_service: str | None = None
    os_crypt_account: str | None = None

    @property
    def is_chromium(self) -> bool:
        return self.name is not BrowserName.FIREFOX


MACOS_FIREFOX_PATHS = ["Library/Application Support/Firefox/Profiles"]

LINUX_FIREFOX_PATHS = [
    ".mozilla/firefox",
    "snap/firefox/common/.mozilla/firefox",
]


def find_firefox_profiles(base_dirs: Iterable[Path]) -> list[Path]:
    """Find every profile's cookies.sqlite under the given Firefox directories.

    Profiles are returned in directory-name order within each base directory.
    """
    found: list[Path] = []
    for firefox_dir in base_dirs:
        if not firefox_dir.is_dir():
            continue
        for profile_dir in sorted(firefox_dir.iterdir()):
            cookies_path = profile_dir / "cookies.sqlite"
            if cookies_path.is_file():
                found.append(cookies_path)
    return found


def _firefox_configs(base_dirs: Iterable[Path]) -> list[BrowserConfig]:
    return [
        BrowserConfig(name=BrowserName.FIREFOX, cookies_path=path)
        for path in find_firefox_profiles(base_dirs)
    ]


def _macos_configs(home_dir: Path, profile: str) -> list[BrowserConfig]:
    support = home_dir / "Library" / "Application Support"
    chromium = [
        (BrowserName.CHROME, support / "Google" / "Chrome", "Chrome Safe Storage", "Chrome"),
        (BrowserName.ARC, support / "Arc" / "User Data", "Arc Safe Storage", "Arc"),
        (
            BrowserName.EDGE,
            support / "Microsoft Edge",
            "Microsoft Edge Safe Storage",
            "Microsoft Edge",
        ),
    ]

    configs: list[BrowserConfig] = []
    for name, user_data_dir, service, account in chromium:
        cookies_path = user_data_dir / profile / "Cookies"
        if cookies_path.is_file():
            configs.append(
                BrowserConfig(
                    name=name,
                    cookies_path=cookies_path,
                    os_crypt_service=service,
                    os_crypt_account=account,
                )
            )

    configs.extend(_firefox_configs(home_dir / p for p in MACOS_FIREFOX_PATHS))
    return configs


def _windows_configs(
    home_dir: Path, profile: str, environ: Mapping[str, str]
) -> list[BrowserConfig]:
    local_app_data = Path(environ.get("LOCALAPPDATA") or home_dir / "AppData" / "Local")
    roaming_app_data = Path(environ.get("APPDATA") or home_dir / "AppData" / "Roaming")
    chromium = [
        (BrowserName.CHROME, local_app_data / "Google" / "Chrome" / "User Data", "Chrome"),
        (BrowserName.EDGE, local_app_data / "Microsoft" / "Edge" / "User Data", "Edge"),
    ]

    configs: list[BrowserConfig] = []
    for name, user_data_dir, service in chromium:
        # Chrome 96+ moved the database under Network/
        cookies_path = user_data_dir / profile / "Network" / "Cookies"
        if not cookies_path.is_file():
            cookies_path = user_data_dir / profile / "Cookies"
        if cookies_path.is_file():
            configs.append(
                BrowserConfig(
                    name=name,
                    cookies_path=cookies_path,
                    user_data_dir=user_data_dir,
                    os_crypt_service=service,
                )
            )

    configs.extend(_firefox_configs([roaming_app_data / "Mozilla" / "Firefox" / "Profiles"]))
    return configs


def _linux_configs(home_dir: Path, profile: str) -> list[BrowserConfig]:
    chromium = [
        (BrowserName.CHROME, home_dir / ".config" / "google-chrome", "chrome"),
        (BrowserName.EDGE, home_dir / ".config" / "microsoft-edge", "chromium"),
    ]

    configs: list[BrowserConfig] = []
    for name, config_dir, application in chromium:
        cookies_path = config_dir / profile / "Cookies"
        if cookies_path.is_file():
            configs.append(
                BrowserConfig(
                    name=name,
                    cookies_path=cookies_path,
                    os_crypt_service=application,
                )
            )

    configs.extend(_firefox_configs(home_dir / p for p in LINUX_FIREFOX_PATHS))
    return configs


def get_browser_configs(
    home_dir: Path | None = None,
    platform: str | None = None,
    environ: Mapping[str, str] | None = None,
    profile: str | None = None,
) -> list[BrowserConfig]:
    """Return a config for every browser cookie database that exists right now.

    Configs come back in ``BrowserName`` declaration order; Firefox yields one
    config per profile. Nothing is cached, so repeated calls reflect the
    current filesystem.
    """
    if home_dir is None:
        home_dir = Path.home()
    if platform is None:
        platform = sys.platform
    if environ is None:
        environ = os.environ
    profile_name = profile or DEFAULT_PROFILE

    if platform == "darwin":
        return _macos_configs(home_dir, profile_name)
    if platform == "win32":
        return _windows_configs(home_dir, profile_name, environ)
    if platform.startswith("linux"):
        return _linux_configs(home_dir, profile_name)
    return []
