"""Cookie extraction across every installed browser."""

import sys
from collections.abc import Iterable, Sequence
from concurrent.futures import ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from pathlib import Path
from urllib.parse import quote, urlsplit

from loguru import logger

from cookiesmith.auth.chrome import decrypt_chrome_cookie
from cookiesmith.auth.keys import (
    KeyProvider,
    KeysUnavailable,
    get_key_provider,
    make_key_provider,
)
from cookiesmith.auth.paths import BrowserConfig, BrowserName, get_browser_configs
from cookiesmith.auth.store import Cookie, ReadResult, SqliteEngine, StoreReader

__all__ = [
    "Cookie",
    "CookieError",
    "ExtractionResult",
    "InvalidURLError",
    "get_cookies",
    "host_matches",
    "parse_browsers",
    "to_cookie_header",
]


# Characters encodeURIComponent leaves alone
_URI_COMPONENT_SAFE = "-_.!~*'()"


class CookieError(Exception):
    """Raised when cookie extraction cannot start."""


class InvalidURLError(CookieError, ValueError):
    """Raised when the target URL has no hostname."""


@dataclass
class ExtractionResult:
    """Cookies found for a site, one per name, and every non-fatal problem."""

    cookies: list[Cookie] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    def as_dict(self) -> dict[str, str]:
        return {c.name: c.value for c in self.cookies}

    def non_empty(self) -> list[Cookie]:
        return [c for c in self.cookies if c.value.strip()]

    def header(self) -> str:
        return to_cookie_header(self.cookies)


def host_matches(host_key: str, hostname: str) -> bool:
    """Whether a cookie's host applies to ``hostname`` (exact or parent domain)."""
    domain = host_key[1:] if host_key.startswith(".") else host_key
    domain = domain.lower()
    hostname = hostname.lower()
    return hostname == domain or hostname.endswith("." + domain)


def to_cookie_header(cookies: Iterable[Cookie], dedupe_by_name: bool = True) -> str:
    """Build a ``Cookie`` header value, percent-encoding names and values."""
    cookie_list = list(cookies)
    if dedupe_by_name:
        cookie_list = list({c.name: c for c in cookie_list}.values())
    return "; ".join(
        f"{quote(c.name, safe=_URI_COMPONENT_SAFE)}={quote(c.value, safe=_URI_COMPONENT_SAFE)}"
        for c in cookie_list
    )


def parse_browsers(browsers: Iterable[str | BrowserName]) -> list[BrowserName]:
    """Convert browser names to ``BrowserName`` members, rejecting unknown ones."""
    parsed: list[BrowserName] = []
    for browser in browsers:
        try:
            parsed.append(BrowserName(str(browser).lower()))
        except ValueError:
            supported = ", ".join(b.value for b in BrowserName)
            raise ValueError(f"Unknown browser {browser!r}. Supported: {supported}") from None
    return parsed


def _hostname_from_url(url: str) -> str:
    try:
        hostname = urlsplit(url).hostname
    except ValueError as e:
        raise InvalidURLError(f"Invalid URL: {url!r}") from e
    if not hostname:
        raise InvalidURLError(f"Invalid URL: {url!r}")
    return hostname


class _BrowserExtractor:
    """Reads the cookies of one browser config."""

    def __init__(
        self,
        hostname: str,
        key_provider: KeyProvider,
        reader: StoreReader,
        windows: bool,
    ) -> None:
        self._hostname = hostname
        self._key_provider = key_provider
        self._reader = reader
        self._windows = windows

    def _domain_filter(self, host_key: str) -> bool:
        return host_matches(host_key, self._hostname)

    def __call__(self, config: BrowserConfig) -> tuple[ReadResult, list[str]]:
        if not config.is_chromium:
            return self._reader.read_firefox_cookies(config.cookies_path, self._domain_filter), []

        key_result = self._key_provider.get_keys(config)
        if isinstance(key_result, KeysUnavailable):
            return ReadResult(error=key_result.error), list(key_result.warnings)

        logger.debug("{}: {} candidate key(s)", config.name, len(key_result.keys))
        keys = key_result.keys

        def decrypt(encrypted_value: bytes) -> str | None:
            return decrypt_chrome_cookie(encrypted_value, keys, windows=self._windows)

        result = self._reader.read_chromium_cookies(
            config.cookies_path, self._domain_filter, decrypt
        )
        return result, list(key_result.warnings)


def _run_in_order(
    configs: Sequence[BrowserConfig],
    extract: _BrowserExtractor,
    timeout: float | None,
) -> list[tuple[ReadResult, list[str]] | None]:
    """Run extraction for every config, returning results in config order.

    With a timeout, browsers run concurrently under one shared deadline; a
    browser that has not finished when it passes yields None.
    """
    if timeout is None:
        return [extract(config) for config in configs]

    if not configs:
        return []

    # Not a context manager: a hung browser must not block the return.
    executor = ThreadPoolExecutor(max_workers=len(configs), thread_name_prefix="cookiesmith")
    try:
        futures = [executor.submit(extract, config) for config in configs]
        wait(futures, timeout=timeout)
        return [future.result() if future.done() else None for future in futures]
    finally:
        executor.shutdown(wait=False, cancel_futures=True)


def get_cookies(
    url: str,
    names: Iterable[str] = (),
    browsers: Iterable[str | BrowserName] | None = None,
    timeout: float | None = None,
    *,
    profile: str | None = None,
    home_dir: Path | None = None,
    platform: str | None = None,
    key_provider: KeyProvider | None = None,
    reader: StoreReader | None = None,
) -> ExtractionResult:
    """Get cookies for ``url`` from locally installed browsers.

    Args:
        url: Site whose cookies are wanted; only its hostname is used.
        names: Cookie names to keep (case-insensitive). Empty keeps all.
        browsers: Restrict extraction to these browsers.
        timeout: Seconds to wait for all browsers together; any browser still
            running when it elapses is skipped with a warning.
        profile: Chromium profile directory name (default ``Default``).
        home_dir: Home directory to search instead of the current user's.
        platform: ``sys.platform`` value to resolve paths and decryption for.
        key_provider: Key provider to use instead of the platform's.
        reader: Store reader to use instead of a fresh SQLite-backed one.

    Returns:
        The first value seen for each cookie name, visiting browsers in
        declared order, along with warnings for everything that failed.

    Raises:
        InvalidURLError: If ``url`` has no hostname.
        ValueError: If ``browsers`` names an unsupported browser.
    """
    hostname = _hostname_from_url(url)
    allowlist = {n.lower() for n in names}
    wanted = set(parse_browsers(browsers)) if browsers else None

    if platform is None:
        platform = sys.platform
    if key_provider is None:
        key_provider = (
            get_key_provider() if platform == sys.platform else make_key_provider(platform)
        )
    if reader is None:
        reader = StoreReader(SqliteEngine.initialize())

    configs = get_browser_configs(home_dir=home_dir, platform=platform, profile=profile)
    if wanted is not None:
        configs = [c for c in configs if c.name in wanted]
    logger.debug(
        "Extracting cookies for {} from {}", hostname, [str(c.cookies_path) for c in configs]
    )

    extract = _BrowserExtractor(hostname, key_provider, reader, windows=platform == "win32")
    outcomes = _run_in_order(configs, extract, timeout)

    result = ExtractionResult()
    seen: set[str] = set()
    for config, outcome in zip(configs, outcomes, strict=True):
        if outcome is None:
            result.warnings.append(f"{config.name}: timed out after {timeout:g}s")
            continue

        read_result, extra_warnings = outcome
        if read_result.error:
            result.warnings.append(f"{config.name}: {read_result.error}")
        result.warnings.extend(extra_warnings)
        result.warnings.extend(f"{config.name}: {w}" for w in read_result.warnings)

        for cookie in read_result.cookies:
            if allowlist and cookie.name.lower() not in allowlist:
                continue
            if cookie.name in seen:
                continue
            seen.add(cookie.name)
            result.cookies.append(cookie)

    for warning in result.warnings:
        logger.debug("Cookie warning: {}", warning)
    return result
