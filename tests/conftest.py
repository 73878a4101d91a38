"""Shared test fixtures and utilities."""

import os
import sqlite3
from pathlib import Path
from typing import Any

import pytest
from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

# Disable Rich color output for consistent test output across environments
os.environ["NO_COLOR"] = "1"

CHROMIUM_SCHEMA = """
    CREATE TABLE cookies (
        creation_utc INTEGER NOT NULL,
        host_key TEXT NOT NULL,
        top_frame_site_key TEXT NOT NULL,
        name TEXT NOT NULL,
        value TEXT NOT NULL,
        encrypted_value BLOB NOT NULL,
        path TEXT NOT NULL,
        expires_utc INTEGER NOT NULL,
        is_secure INTEGER NOT NULL,
        is_httponly INTEGER NOT NULL,
        last_access_utc INTEGER NOT NULL,
        has_expires INTEGER NOT NULL,
        is_persistent INTEGER NOT NULL,
        priority INTEGER NOT NULL,
        samesite INTEGER NOT NULL,
        source_scheme INTEGER NOT NULL,
        source_port INTEGER NOT NULL,
        last_update_utc INTEGER NOT NULL,
        source_type INTEGER NOT NULL,
        has_cross_site_ancestor INTEGER NOT NULL
    )
"""

FIREFOX_SCHEMA = """
    CREATE TABLE moz_cookies (
        id INTEGER PRIMARY KEY,
        name TEXT,
        value TEXT,
        host TEXT,
        path TEXT DEFAULT '/',
        expiry INTEGER DEFAULT 0,
        isSecure INTEGER DEFAULT 1,
        isHttpOnly INTEGER DEFAULT 1,
        sameSite INTEGER DEFAULT 0,
        rawSameSite INTEGER DEFAULT 0,
        schemeMap INTEGER DEFAULT 0
    )
"""


def _create_chrome_cookies_db(db_path: Path, cookies: list[dict[str, Any]]) -> Path:
    """Create a Chrome Cookies database.

    Each cookie dict needs ``host``, ``name`` and either ``value`` or
    ``encrypted_value``; ``expires_utc`` defaults to 0 (session cookie).
    """
    db_path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(db_path)
    conn.execute(CHROMIUM_SCHEMA)
    for cookie in cookies:
        conn.execute(
            """INSERT INTO cookies (
                creation_utc, host_key, top_frame_site_key, name, value, encrypted_value,
                path, expires_utc, is_secure, is_httponly, last_access_utc, has_expires,
                is_persistent, priority, samesite, source_scheme, source_port,
                last_update_utc, source_type, has_cross_site_ancestor
            ) VALUES (0, ?, '', ?, ?, ?, '/', ?, 1, 1, 0, 1, 1, 1, 0, 2, 443, 0, 0, 0)""",
            (
                cookie["host"],
                cookie["name"],
                cookie.get("value", ""),
                cookie.get("encrypted_value", b""),
                cookie.get("expires_utc", 0),
            ),
        )
    conn.commit()
    conn.close()
    return db_path


def _create_firefox_cookies_db(db_path: Path, cookies: list[dict[str, Any]]) -> Path:
    """Create a Firefox cookies.sqlite with ``host``, ``name``, ``value`` and ``expiry``."""
    db_path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(db_path)
    conn.execute(FIREFOX_SCHEMA)
    for cookie in cookies:
        conn.execute(
            "INSERT INTO moz_cookies (name, value, host, expiry) VALUES (?, ?, ?, ?)",
            (cookie["name"], cookie["value"], cookie["host"], cookie.get("expiry", 0)),
        )
    conn.commit()
    conn.close()
    return db_path


def _encrypt_cbc(plaintext: bytes, key: bytes, version: bytes = b"v10") -> bytes:
    """Encrypt a value the way Chrome does on macOS and Linux."""
    padder = padding.PKCS7(128).padder()
    padded = padder.update(plaintext) + padder.finalize()
    encryptor = Cipher(algorithms.AES(key), modes.CBC(b" " * 16)).encryptor()
    return version + encryptor.update(padded) + encryptor.finalize()


def _encrypt_gcm(
    plaintext: bytes, key: bytes, nonce: bytes = b"\x01" * 12, version: bytes = b"v10"
) -> bytes:
    """Encrypt a value the way Chrome does on Windows."""
    return version + nonce + AESGCM(key).encrypt(nonce, plaintext, None)


@pytest.fixture
def make_chrome_db() -> Any:
    """Fixture that provides the Chrome Cookies database factory."""
    return _create_chrome_cookies_db


@pytest.fixture
def make_firefox_db() -> Any:
    """Fixture that provides the Firefox cookies.sqlite factory."""
    return _create_firefox_cookies_db


@pytest.fixture
def encrypt_cbc() -> Any:
    """Fixture that provides the AES-CBC cookie encryptor."""
    return _encrypt_cbc


@pytest.fixture
def encrypt_gcm() -> Any:
    """Fixture that provides the AES-GCM cookie encryptor."""
    return _encrypt_gcm
