"""Chromium cookie format: row layout, expiry epoch and value decryption."""

import re
import sys
import time
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

IS_WINDOWS = sys.platform == "win32"

# Microseconds between 1601-01-01 and 1970-01-01
CHROME_EPOCH_OFFSET = 11_644_473_600_000_000

VERSION_TAGS = (b"v10", b"v11", b"v20")
CBC_IV = b" " * 16  # Chrome uses space padding for IV
GCM_NONCE_LENGTH = 12
GCM_TAG_LENGTH = 16
GCM_KEY_LENGTH = 32
HASH_PREFIX_LENGTH = 32

_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f]")

CHROMIUM_QUERY = (
    "SELECT host_key, name, value, encrypted_value, path, expires_utc, is_secure, is_httponly "
    "FROM cookies"
)


@dataclass(frozen=True)
class ChromiumRow:
    """A row of the Chromium ``cookies`` table."""

    host_key: str
    name: str
    value: str
    encrypted_value: bytes
    path: str
    expires_utc: int
    is_secure: bool
    is_httponly: bool


def chromium_row_from_db(row: Sequence[Any]) -> ChromiumRow:
    host_key, name, value, encrypted_value, path, expires_utc, is_secure, is_httponly = row
    return ChromiumRow(
        host_key=str(host_key or ""),
        name=str(name or ""),
        value=str(value or ""),
        encrypted_value=bytes(encrypted_value or b""),
        path=str(path or ""),
        expires_utc=int(expires_utc or 0),
        is_secure=bool(is_secure),
        is_httponly=bool(is_httponly),
    )


def chrome_time_now(now: float | None = None) -> int:
    """Current time as microseconds since 1601-01-01 UTC."""
    if now is None:
        now = time.time()
    return int(now * 1_000_000) + CHROME_EPOCH_OFFSET


def is_chrome_expired(expires_utc: int, now_chrome: int) -> bool:
    """Whether a Chromium expiry is in the past.

    Zero marks a session cookie. Values at or before the Unix epoch are
    treated as unset rather than expired.
    """
    if expires_utc == 0:
        return False
    return CHROME_EPOCH_OFFSET < expires_utc < now_chrome


def _has_control_chars(data: bytes) -> bool:
    return _CONTROL_CHARS.search(data.decode("utf-8", errors="replace")) is not None


def strip_hash_prefix(data: bytes) -> bytes:
    """Drop the 32-byte domain hash newer Chromium versions prepend.

    The hash is detected by the presence of control characters, which is a
    guess rather than a parse of the database's meta version. A cookie whose
    real value contains control characters will be truncated.
    """
    if _has_control_chars(data) and len(data) > HASH_PREFIX_LENGTH:
        return data[HASH_PREFIX_LENGTH:]
    return data


def _decode(data: bytes) -> str | None:
    try:
        return data.decode("utf-8")
    except UnicodeDecodeError:
        return None


def _decrypt_cbc(ciphertext: bytes, keys: Sequence[bytes]) -> str | None:
    for key in keys:
        try:
            decryptor = Cipher(algorithms.AES(key), modes.CBC(CBC_IV)).decryptor()
            padded = decryptor.update(ciphertext) + decryptor.finalize()
            unpadder = padding.PKCS7(algorithms.AES.block_size).unpadder()
            data = unpadder.update(padded) + unpadder.finalize()
        except ValueError:
            # Wrong key (bad padding), wrong key size or truncated ciphertext
            continue

        text = _decode(strip_hash_prefix(data))
        if text:
            return text
    return None


def _decrypt_gcm(payload: bytes, keys: Sequence[bytes], strip_prefix: bool) -> str | None:
    if len(payload) < GCM_NONCE_LENGTH + GCM_TAG_LENGTH:
        return None

    nonce = payload[:GCM_NONCE_LENGTH]
    ciphertext_and_tag = payload[GCM_NONCE_LENGTH:]
    for key in keys:
        key32 = key[:GCM_KEY_LENGTH].ljust(GCM_KEY_LENGTH, b"\x00")
        try:
            data = AESGCM(key32).decrypt(nonce, ciphertext_and_tag, None)
        except InvalidTag:
            continue

        if strip_prefix and len(data) > HASH_PREFIX_LENGTH:
            data = data[HASH_PREFIX_LENGTH:]
        text = _decode(data)
        if text:
            return text
    return None


def decrypt_chrome_cookie(
    encrypted_value: bytes, keys: Sequence[bytes], windows: bool = IS_WINDOWS
) -> str | None:
    """Decrypt a Chromium ``encrypted_value`` blob, trying each key in order.

    The first three bytes are a version tag. On Windows every tag is
    AES-256-GCM (``v20`` values carry a 32-byte prefix); elsewhere the value is
    AES-128-CBC with a fixed IV. Returns None when the tag is unknown, every
    key fails, or the recovered value is empty.
    """
    tag = bytes(encrypted_value[:3])
    if tag not in VERSION_TAGS:
        return None

    payload = bytes(encrypted_value[3:])
    if windows:
        return _decrypt_gcm(payload, keys, strip_prefix=tag == b"v20")
    return _decrypt_cbc(payload, keys)
