"""Master-key retrieval for Chromium-based browsers.

Each platform protects the cookie encryption key differently:

- macOS keeps a password in the login Keychain; the AES key is derived from it
  with PBKDF2 (1003 iterations).
- Windows stores a DPAPI-protected AES key in the browser's ``Local State``.
- Linux keeps a password in the Secret Service keyring (1 iteration), but older
  or unconfigured installs use one of two well-known passwords instead, so
  several candidate keys are returned and the decryptor tries each in turn.
"""

import base64
import binascii
import json
import subprocess
import sys
from contextlib import closing
from dataclasses import dataclass, field
from functools import cache
from pathlib import Path

from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC
from loguru import logger

from cookiesmith.auth.paths import BrowserConfig

SALT = b"saltysalt"
KEY_LENGTH = 16
MACOS_ITERATIONS = 1003
LINUX_ITERATIONS = 1
DPAPI_PREFIX = b"DPAPI"

# Passwords used by Chromium on Linux when no keyring is available
LINUX_LEGACY_PASSWORDS = (b"peanuts", b"")

KEYCHAIN_TIMEOUT = 5.0
DPAPI_TIMEOUT = 10.0


@dataclass(frozen=True)
class KeysFound:
    """Candidate AES keys, in the order they should be tried."""

    keys: tuple[bytes, ...]
    warnings: list[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        if not self.keys:
            raise ValueError("KeysFound requires at least one key")


@dataclass(frozen=True)
class KeysUnavailable:
    """Key retrieval failed; ``error`` says why."""

    error: str
    warnings: list[str] = field(default_factory=list)


KeyResult = KeysFound | KeysUnavailable


def derive_key(password: bytes | str, iterations: int) -> bytes:
    """Derive a 16-byte AES key from a browser's safe-storage password."""
    if isinstance(password, str):
        password = password.encode("utf-8")
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA1(),
        length=KEY_LENGTH,
        salt=SALT,
        iterations=iterations,
    )
    return kdf.derive(password)


class MacOSKeyProvider:
    """Reads the safe-storage password from the macOS Keychain."""

    def __init__(self, timeout: float = KEYCHAIN_TIMEOUT) -> None:
        self._timeout = timeout

    def get_keys(self, config: BrowserConfig) -> KeyResult:
        service = config.os_crypt_service or "Chrome Safe Storage"
        account = config.os_crypt_account or "Chrome"
        cmd = ["security", "find-generic-password", "-w", "-a", account, "-s", service]

        try:
            proc = subprocess.run(cmd, capture_output=True, text=True, timeout=self._timeout)
        except subprocess.TimeoutExpired:
            return KeysUnavailable(f"Keychain ({service}): timed out after {self._timeout:g}s")
        except OSError as e:
            return KeysUnavailable(f"Keychain ({service}): {e}")

        if proc.returncode != 0:
            detail = proc.stderr.strip() or f"exit status {proc.returncode}"
            return KeysUnavailable(f"Keychain ({service}): {detail}")

        password = proc.stdout.strip()
        if not password:
            return KeysUnavailable(f"Keychain returned empty password for {service}")

        return KeysFound((derive_key(password, MACOS_ITERATIONS),))


class WindowsKeyProvider:
    """Unprotects the AES key stored in ``Local State`` with DPAPI."""

    def __init__(self, timeout: float = DPAPI_TIMEOUT) -> None:
        self._timeout = timeout

    def get_keys(self, config: BrowserConfig) -> KeyResult:
        if config.user_data_dir is None:
            return KeysUnavailable("Windows Chromium requires user_data_dir")

        local_state_path = config.user_data_dir / "Local State"
        result = self._read_encrypted_key(local_state_path)
        if isinstance(result, KeysUnavailable):
            return result

        try:
            key = self._unprotect(result)
        except subprocess.TimeoutExpired:
            return KeysUnavailable(f"DPAPI: timed out after {self._timeout:g}s")
        except (OSError, subprocess.CalledProcessError) as e:
            return KeysUnavailable(f"DPAPI: {e}")
        except binascii.Error:
            return KeysUnavailable("DPAPI returned invalid base64")

        if not key:
            return KeysUnavailable("DPAPI returned empty key")
        return KeysFound((key,))

    @staticmethod
    def _read_encrypted_key(local_state_path: Path) -> bytes | KeysUnavailable:
        """Return the DPAPI blob from Local State with its prefix stripped."""
        if not local_state_path.exists():
            return KeysUnavailable("Local State file not found")
        try:
            raw = local_state_path.read_text(encoding="utf-8")
        except OSError as e:
            return KeysUnavailable(f"Failed to read Local State: {e}")

        try:
            data = json.loads(raw)
        except json.JSONDecodeError:
            return KeysUnavailable("Invalid Local State JSON")

        os_crypt = data.get("os_crypt") if isinstance(data, dict) else None
        encrypted_key_b64 = os_crypt.get("encrypted_key") if isinstance(os_crypt, dict) else None
        if not encrypted_key_b64 or not isinstance(encrypted_key_b64, str):
            return KeysUnavailable("Local State missing os_crypt.encrypted_key")

        try:
            encrypted_key = base64.b64decode(encrypted_key_b64, validate=True)
        except binascii.Error:
            return KeysUnavailable("Invalid encrypted_key base64")

        if not encrypted_key.startswith(DPAPI_PREFIX):
            return KeysUnavailable("encrypted_key does not start with DPAPI")
        return encrypted_key[len(DPAPI_PREFIX) :]

    def _unprotect(self, data: bytes) -> bytes:
        """Run CryptUnprotectData for the current user through PowerShell."""
        input_b64 = base64.b64encode(data).decode("ascii")
        script = ";".join(
            [
                "try { Add-Type -AssemblyName System.Security -ErrorAction Stop } catch {}",
                f"$in=[Convert]::FromBase64String('{input_b64}')",
                "$out=[System.Security.Cryptography.ProtectedData]::Unprotect("
                "$in,$null,[System.Security.Cryptography.DataProtectionScope]::CurrentUser)",
                "[Convert]::ToBase64String($out)",
            ]
        )
        proc = subprocess.run(
            ["powershell", "-NoProfile", "-NonInteractive", "-Command", script],
            capture_output=True,
            text=True,
            timeout=self._timeout,
            check=True,
        )
        return base64.b64decode(proc.stdout.strip(), validate=True)


class LinuxKeyProvider:
    """Looks up the safe-storage password in the Secret Service keyring.

    The legacy ``peanuts`` and empty-password keys are always appended as
    extra candidates unless ``legacy_fallbacks`` is False.
    """

    def __init__(self, legacy_fallbacks: bool = True) -> None:
        self._legacy_fallbacks = legacy_fallbacks

    def get_keys(self, config: BrowserConfig) -> KeyResult:
        application = config.os_crypt_service or "chrome"
        keys: list[bytes] = []
        warnings: list[str] = []

        try:
            password = get_keyring_password(application)
        except KeyringError as e:
            logger.debug("Keyring lookup for {} failed: {}", application, e)
            warnings.append(f"{config.name}: keyring lookup for {application} failed: {e}")
            password = None

        if password:
            keys.append(derive_key(password, LINUX_ITERATIONS))

        if self._legacy_fallbacks:
            keys.extend(derive_key(p, LINUX_ITERATIONS) for p in LINUX_LEGACY_PASSWORDS)

        if not keys:
            return KeysUnavailable(f"Linux keyring failed for {application}", warnings)
        return KeysFound(tuple(keys), warnings)


class KeyringError(Exception):
    """Raised when the Secret Service keyring cannot be queried."""


def get_keyring_password(application: str) -> bytes | None:
    """Return the keyring secret stored for a Chromium application, if any."""
    try:
        import secretstorage
    except ImportError as e:
        raise KeyringError("secretstorage is not installed") from e

    try:
        with closing(secretstorage.dbus_init()) as connection:
            collection = secretstorage.get_default_collection(connection)
            items = list(collection.search_items({"application": application}))
            if not items:
                return None
            secret: bytes = items[0].get_secret()
            return secret
    except secretstorage.exceptions.SecretStorageException as e:
        raise KeyringError(str(e) or type(e).__name__) from e


class UnsupportedKeyProvider:
    """Provider for platforms without a known key store."""

    def __init__(self, platform: str) -> None:
        self._platform = platform

    def get_keys(self, config: BrowserConfig) -> KeyResult:
        return KeysUnavailable(f"Unsupported platform: {self._platform}")


KeyProvider = MacOSKeyProvider | WindowsKeyProvider | LinuxKeyProvider | UnsupportedKeyProvider


def make_key_provider(platform: str) -> KeyProvider:
    """Build the key provider for the given ``sys.platform`` value."""
    if platform == "darwin":
        return MacOSKeyProvider()
    if platform == "win32":
        return WindowsKeyProvider()
    if platform.startswith("linux"):
        return LinuxKeyProvider()
    return UnsupportedKeyProvider(platform)


@cache
def get_key_provider() -> KeyProvider:
    """Return the key provider for the running platform, chosen once per process."""
    return make_key_provider(sys.platform)


def get_chromium_keys(config: BrowserConfig) -> KeyResult:
    """Get candidate decryption keys for a Chromium-based browser config."""
    return get_key_provider().get_keys(config)
