"""
SnipVault - Cryptography Module

All value encryption for the snippet store lives in this one file.

Security Architecture:
    1. A random 256-bit protection key is created once per user
    2. The key is held by the OS credential store (via 'keyring'):
       Windows Credential Manager, macOS Keychain, Secret Service on Linux
    3. Each value is sealed with AES-256-GCM under that key
    4. Associated data binds every ciphertext to {user, machine}

There is no master password. Whoever can read the user's credential store
on this machine can decrypt the values, and nobody else can, which is the
same contract an OS data-protection API offers.

Stored text form of a value:
    urlsafe_base64( nonce (12 bytes) || ciphertext + tag (16 bytes) )

The URL-safe alphabet has no '|', and the '=' padding always follows the
key separator, so ciphertext never confuses the line parser.
"""

import os
import json
import base64
import binascii
import getpass
import logging
import platform
from dataclasses import dataclass
from typing import Optional, Union

import keyring
from keyring.errors import KeyringError
from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from .config import KEYRING_SERVICE
from .errors import ProtectionUnavailable

logger = logging.getLogger(__name__)


# =============================================================================
# Configuration
# =============================================================================

PROTECTION_KEY_SIZE = 32  # 256-bit key
NONCE_SIZE = 12           # 96-bit nonce for AES-GCM
TAG_SIZE = 16             # 128-bit authentication tag


# =============================================================================
# Canonical Associated Data
# =============================================================================

def canonical_ad(ad: dict) -> bytes:
    """
    Convert associated data to canonical JSON bytes.

    Same dict always produces the same bytes: keys sorted, compact
    separators, UTF-8 without escaping non-ASCII.
    """
    json_str = json.dumps(ad, separators=(",", ":"), sort_keys=True, ensure_ascii=False)
    return json_str.encode('utf-8')


# =============================================================================
# Encryption (AES-256-GCM)
# =============================================================================

def encrypt(key: bytes, plaintext: bytes, associated_data: dict) -> bytes:
    """
    Encrypt data with AES-256-GCM.

    Args:
        key: 32-byte protection key
        plaintext: Data to encrypt
        associated_data: Context dict authenticated alongside the data

    Returns:
        nonce || ciphertext (ciphertext includes the 16-byte tag)
    """
    nonce = os.urandom(NONCE_SIZE)
    aesgcm = AESGCM(key)
    return nonce + aesgcm.encrypt(nonce, plaintext, canonical_ad(associated_data))


def decrypt(key: bytes, blob: bytes, associated_data: dict) -> bytes:
    """
    Decrypt an AES-256-GCM blob produced by encrypt().

    Raises:
        InvalidTag: If tampered, wrong key, or wrong associated data
    """
    nonce, ciphertext = blob[:NONCE_SIZE], blob[NONCE_SIZE:]
    aesgcm = AESGCM(key)
    return aesgcm.decrypt(nonce, ciphertext, canonical_ad(associated_data))


# =============================================================================
# Classification result
# =============================================================================

@dataclass(frozen=True)
class Encrypted:
    """The text was valid ciphertext for this user and machine."""
    plaintext: str


@dataclass(frozen=True)
class Unencrypted:
    """The text is not ciphertext we can open: treat it as legacy plaintext."""
    raw: str


Classified = Union[Encrypted, Unencrypted]


# =============================================================================
# OS secret protection
# =============================================================================

class SecretProtector:
    """
    Per-user, per-machine symmetric protection of short strings.

    Usage:
        protector = SecretProtector()
        token = protector.protect("CH132154646")
        protector.unprotect(token)          # -> "CH132154646"
        protector.unprotect("not a token")  # -> "not a token"
        protector.classify(token)           # -> Encrypted("CH132154646")

    Args:
        backend: keyring backend to hold the key (default: the OS backend
            chosen by keyring.get_keyring())
        service: keyring service name
        user: account the key belongs to (default: current login)
        machine: machine name bound into the associated data (default: hostname)
    """

    def __init__(
        self,
        backend=None,
        service: str = KEYRING_SERVICE,
        user: Optional[str] = None,
        machine: Optional[str] = None
    ):
        self.backend = backend
        self.service = service
        self.user = user or getpass.getuser()
        self.machine = machine or platform.node()
        self._key: Optional[bytes] = None

    @property
    def associated_data(self) -> dict:
        return {
            "ctx": "snip_value",
            "aead": "aes256gcm",
            "user": self.user,
            "machine": self.machine,
        }

    def protect(self, plaintext: str) -> str:
        """
        Encrypt a value. Empty input returns empty output.

        Returns:
            URL-safe base64 text of nonce || ciphertext
        """
        if not plaintext:
            return ""
        blob = encrypt(self._protection_key(), plaintext.encode('utf-8'), self.associated_data)
        return base64.urlsafe_b64encode(blob).decode('ascii')

    def unprotect(self, text: str) -> str:
        """
        Decrypt a value, or return it unchanged if it is not ciphertext.

        Never raises for undecryptable input: that is how legacy plaintext
        values are recognised.
        """
        result = self.classify(text)
        if isinstance(result, Encrypted):
            return result.plaintext
        return result.raw

    def classify(self, text: str) -> Classified:
        """
        Decide whether stored text is ciphertext for this user and machine.

        Returns:
            Encrypted(plaintext) if it decodes and authenticates,
            Unencrypted(text) otherwise
        """
        if not text:
            return Unencrypted(text)

        key = self._protection_key()
        try:
            blob = base64.urlsafe_b64decode(text.encode('ascii'))
        except (UnicodeEncodeError, binascii.Error, ValueError):
            return Unencrypted(text)

        # Lenient base64 decoding drops stray characters; insist on an exact match
        if len(blob) < NONCE_SIZE + TAG_SIZE or base64.urlsafe_b64encode(blob).decode('ascii') != text:
            return Unencrypted(text)

        try:
            plaintext = decrypt(key, blob, self.associated_data)
            return Encrypted(plaintext.decode('utf-8'))
        except (InvalidTag, UnicodeDecodeError):
            return Unencrypted(text)

    # =========================================================================
    # INTERNAL HELPERS
    # =========================================================================

    def _keyring(self):
        return self.backend if self.backend is not None else keyring.get_keyring()

    def _protection_key(self) -> bytes:
        """Fetch the protection key from the credential store, creating it on first use."""
        if self._key is not None:
            return self._key

        backend = self._keyring()
        try:
            stored = backend.get_password(self.service, self.user)
            if stored is None:
                logger.info("Creating protection key in %s for user %s",
                            type(backend).__name__, self.user)
                key = os.urandom(PROTECTION_KEY_SIZE)
                backend.set_password(self.service, self.user,
                                     base64.b64encode(key).decode('ascii'))
            else:
                key = base64.b64decode(stored)
        except KeyringError as e:
            raise ProtectionUnavailable(f"OS credential store unavailable: {e}") from e
        except (binascii.Error, ValueError) as e:
            raise ProtectionUnavailable(
                f"Protection key in credential store is corrupt ({self.service}/{self.user})"
            ) from e

        if len(key) != PROTECTION_KEY_SIZE:
            raise ProtectionUnavailable(
                f"Protection key in credential store has wrong size ({self.service}/{self.user})"
            )

        self._key = key
        return key
