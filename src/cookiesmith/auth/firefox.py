"""Firefox cookie format: moz_cookies rows and expiry."""

import time
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

FIREFOX_QUERY = "SELECT host, name, value, path, expiry FROM moz_cookies"


@dataclass(frozen=True)
class FirefoxRow:
    """A row of the Firefox ``moz_cookies`` table. Values are never encrypted."""

    host: str
    name: str
    value: str
    path: str
    expiry: int


def firefox_row_from_db(row: Sequence[Any]) -> FirefoxRow:
    host, name, value, path, expiry = row
    return FirefoxRow(
        host=str(host or ""),
        name=str(name or ""),
        value=str(value or ""),
        path=str(path or ""),
        expiry=int(expiry or 0),
    )


def firefox_time_now(now: float | None = None) -> int:
    """Current time in Unix seconds."""
    if now is None:
        now = time.time()
    return int(now)


def is_firefox_expired(expiry: int, now: int) -> bool:
    """Whether a Firefox expiry (Unix seconds, 0 for session) is in the past."""
    return 0 < expiry < now
