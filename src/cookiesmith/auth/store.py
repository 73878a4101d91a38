"""Read-only access to browser cookie databases.

Browsers keep their cookie database open and locked, so every read works on a
private copy in a temporary directory that is removed when the read finishes.
"""

import shutil
import tempfile
from collections.abc import Callable, Iterator
from contextlib import closing, contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from types import ModuleType
from typing import Any

from loguru import logger

from cookiesmith.auth.chrome import (
    CHROMIUM_QUERY,
    ChromiumRow,
    chrome_time_now,
    chromium_row_from_db,
    is_chrome_expired,
)
from cookiesmith.auth.firefox import (
    FIREFOX_QUERY,
    FirefoxRow,
    firefox_row_from_db,
    firefox_time_now,
    is_firefox_expired,
)

DomainFilter = Callable[[str], bool]
Decrypt = Callable[[bytes], str | None]


@dataclass(frozen=True)
class Cookie:
    """A recovered cookie."""

    name: str
    value: str


@dataclass
class ReadResult:
    """Cookies read from one database, plus what went wrong."""

    cookies: list[Cookie] = field(default_factory=list)
    error: str | None = None
    warnings: list[str] = field(default_factory=list)


class StoreError(Exception):
    """Raised when a cookie database cannot be copied, opened or queried."""


class SqliteEngine:
    """Handle on the SQLite library used to open cookie databases.

    Build one with ``initialize()``. If the interpreter was built without
    SQLite support the engine is still returned, but ``available`` is False and
    every read fails with ``error``.
    """

    def __init__(self, module: ModuleType | None, error: str | None = None) -> None:
        self._module = module
        self.error = error

    @classmethod
    def initialize(cls) -> "SqliteEngine":
        try:
            import sqlite3
        except ImportError as e:
            return cls(None, f"SQLite engine unavailable: {e}")
        return cls(sqlite3)

    @property
    def available(self) -> bool:
        return self._module is not None

    def query(self, db_path: Path, sql: str) -> list[tuple[Any, ...]]:
        """Run a query against a database opened read-only."""
        if self._module is None:
            raise StoreError(self.error or "SQLite engine unavailable")
        try:
            uri = f"{db_path.as_uri()}?mode=ro"
            with closing(self._module.connect(uri, uri=True)) as conn:
                rows: list[tuple[Any, ...]] = conn.execute(sql).fetchall()
        except self._module.Error as e:
            raise StoreError(str(e)) from e
        return rows


@contextmanager
def snapshot(source: Path) -> Iterator[Path]:
    """Copy a database into a fresh temporary directory for the block's duration."""
    with tempfile.TemporaryDirectory(prefix="cookiesmith-") as tmp_dir:
        dest = Path(tmp_dir) / source.name
        try:
            shutil.copyfile(source, dest)
        except OSError as e:
            raise StoreError(f"cannot copy {source}: {e.strerror or e}") from e
        yield dest


class StoreReader:
    """Reads cookie rows from Chromium and Firefox databases."""

    def __init__(self, engine: SqliteEngine) -> None:
        self._engine = engine

    def _read(self, db_path: Path, sql: str) -> list[tuple[Any, ...]]:
        with snapshot(db_path) as copy_path:
            return self._engine.query(copy_path, sql)

    def read_chromium_rows(self, db_path: Path) -> list[ChromiumRow]:
        return [chromium_row_from_db(row) for row in self._read(db_path, CHROMIUM_QUERY)]

    def read_firefox_rows(self, db_path: Path) -> list[FirefoxRow]:
        return [firefox_row_from_db(row) for row in self._read(db_path, FIREFOX_QUERY)]

    def read_chromium_cookies(
        self,
        db_path: Path,
        domain_filter: DomainFilter,
        decrypt: Decrypt,
        now: float | None = None,
    ) -> ReadResult:
        """Read unexpired cookies for matching hosts, decrypting where needed.

        Rows outside the domain are skipped before any decryption. A row that
        cannot be decrypted is reported in ``warnings`` and skipped.
        """
        try:
            rows = self.read_chromium_rows(db_path)
        except StoreError as e:
            return ReadResult(error=str(e))

        now_chrome = chrome_time_now(now)
        result = ReadResult()
        for row in rows:
            if not domain_filter(row.host_key):
                continue
            if is_chrome_expired(row.expires_utc, now_chrome):
                continue

            if row.value:
                value = row.value
            elif row.encrypted_value:
                decrypted = decrypt(row.encrypted_value)
                if decrypted is None:
                    result.warnings.append(
                        f"could not decrypt cookie {row.name!r} for {row.host_key}"
                    )
                    continue
                value = decrypted
            else:
                continue

            result.cookies.append(Cookie(name=row.name, value=value))

        logger.debug("Read {} cookies from {}", len(result.cookies), db_path)
        return result

    def read_firefox_cookies(
        self,
        db_path: Path,
        domain_filter: DomainFilter,
        now: float | None = None,
    ) -> ReadResult:
        """Read unexpired cookies for matching hosts from a Firefox database."""
        try:
            rows = self.read_firefox_rows(db_path)
        except StoreError as e:
            return ReadResult(error=str(e))

        now_sec = firefox_time_now(now)
        cookies = [
            Cookie(name=row.name, value=row.value)
            for row in rows
            if domain_filter(row.host) and not is_firefox_expired(row.expiry, now_sec)
        ]
        logger.debug("Read {} cookies from {}", len(cookies), db_path)
        return ReadResult(cookies=cookies)
