"""
Cryptographic operations for the credential vault.

Two very different kinds of transform live here:

* ``CryptoManager`` encrypts credential values at rest with AES-256-GCM under
  a key derived (Argon2id) from a configurable passphrase.
* ``issue_token``/``verify_token`` and ``encode_master_password`` are plain
  Base64 envelopes. They are NOT cryptographically secure: a session token
  only marks a login for flow gating and the master password envelope is a
  reversible encoding compared byte for byte.
"""

import os
import base64
import binascii
import time
from typing import Optional

from argon2.low_level import hash_secret_raw, Type
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes
from cryptography.hazmat.primitives.constant_time import bytes_eq
from cryptography.hazmat.backends import default_backend
from cryptography.exceptions import InvalidTag

from . import config
from .exceptions import DecryptError


class CryptoManager:
    """Handles encryption of credential values for the vault."""

    # Constants
    KEY_SIZE = config.KEY_SIZE      # 256 bits for AES-256
    NONCE_SIZE = config.NONCE_SIZE  # 96 bits for GCM
    TAG_SIZE = config.TAG_SIZE      # 128 bits
    FORMAT_VERSION = config.CIPHERTEXT_FORMAT_VERSION

    def __init__(
        self,
        passphrase: Optional[str] = None,
        salt: Optional[bytes] = None,
        *,
        key: Optional[bytes] = None,
        time_cost: int = config.ARGON2_TIME_COST,
        memory_cost: int = config.ARGON2_MEMORY_COST,
        parallelism: int = config.ARGON2_PARALLELISM,
    ):
        """
        Initialize the crypto manager.

        Args:
            passphrase: Secret the key is derived from (defaults to config)
            salt: Salt for key derivation (defaults to config)
            key: Raw 32-byte key; skips derivation when given
        """
        self.backend = default_backend()
        self.time_cost = time_cost
        self.memory_cost = memory_cost
        self.parallelism = parallelism
        if key is None:
            key = self.derive_key(
                passphrase if passphrase is not None else config.ENCRYPTION_PASSPHRASE,
                salt if salt is not None else config.KEY_DERIVATION_SALT,
            )
        if len(key) != self.KEY_SIZE:
            raise ValueError(f"Encryption key must be {self.KEY_SIZE} bytes, got {len(key)}")
        self._key = key

    def derive_key(self, passphrase: str, salt: bytes) -> bytes:
        """
        Derive an encryption key from a passphrase using Argon2id.

        Args:
            passphrase: The configured passphrase
            salt: Salt for key derivation

        Returns:
            32-byte encryption key
        """
        return hash_secret_raw(
            secret=passphrase.encode('utf-8'),
            salt=salt,
            time_cost=self.time_cost,
            memory_cost=self.memory_cost,
            parallelism=self.parallelism,
            hash_len=self.KEY_SIZE,
            type=Type.ID
        )

    def encrypt(self, plaintext: str) -> str:
        """
        Encrypt a value using AES-256-GCM.

        A fresh nonce is drawn for every call, so encrypting the same value
        twice gives different ciphertexts.

        Returns:
            ``"<version>:" + base64(nonce || tag || ciphertext)``
        """
        nonce = os.urandom(self.NONCE_SIZE)
        cipher = Cipher(
            algorithms.AES(self._key),
            modes.GCM(nonce),
            backend=self.backend
        )
        encryptor = cipher.encryptor()
        ciphertext = encryptor.update(plaintext.encode('utf-8')) + encryptor.finalize()
        blob = base64.b64encode(nonce + encryptor.tag + ciphertext).decode('ascii')
        return f"{self.FORMAT_VERSION}:{blob}"

    def decrypt(self, ciphertext: str) -> str:
        """
        Decrypt a value produced by ``encrypt``.

        Raises:
            DecryptError: On malformed input, an unknown format version,
                a failed authentication tag, or non UTF-8 plaintext
        """
        if not isinstance(ciphertext, str):
            raise DecryptError(f"Ciphertext must be a string, got {type(ciphertext).__name__}")

        version, sep, blob = ciphertext.partition(':')
        if not sep:
            raise DecryptError("Ciphertext has no format version")
        if version != self.FORMAT_VERSION:
            raise DecryptError(f"Unsupported ciphertext format: {version!r}")

        try:
            raw = base64.b64decode(blob.encode('ascii'), validate=True)
        except (binascii.Error, UnicodeEncodeError) as e:
            raise DecryptError(f"Ciphertext is not valid base64: {e}") from e

        if len(raw) < self.NONCE_SIZE + self.TAG_SIZE:
            raise DecryptError("Ciphertext is truncated")

        nonce = raw[:self.NONCE_SIZE]
        tag = raw[self.NONCE_SIZE:self.NONCE_SIZE + self.TAG_SIZE]
        body = raw[self.NONCE_SIZE + self.TAG_SIZE:]

        cipher = Cipher(
            algorithms.AES(self._key),
            modes.GCM(nonce, tag),
            backend=self.backend
        )
        decryptor = cipher.decryptor()
        try:
            plaintext = decryptor.update(body) + decryptor.finalize()
        except InvalidTag as e:
            raise DecryptError("Authentication failed: wrong key or tampered ciphertext") from e

        try:
            return plaintext.decode('utf-8')
        except UnicodeDecodeError as e:
            raise DecryptError("Decrypted value is not valid UTF-8") from e

    @staticmethod
    def secure_compare(a: bytes, b: bytes) -> bool:
        """Constant-time comparison to prevent timing attacks."""
        return bytes_eq(a, b)


def _now_ms() -> int:
    return int(time.time() * 1000)


def issue_token(identity: str, now_ms: Optional[int] = None) -> str:
    """
    Mint a session token for ``identity``.

    The token is Base64 of ``identity:issuedAtMillis``. Anyone can decode or
    forge it; it is a session marker, not an authentication credential.
    """
    issued_at = _now_ms() if now_ms is None else now_ms
    return base64.b64encode(f"{identity}:{issued_at}".encode('utf-8')).decode('ascii')


def decode_token(token: str) -> Optional[tuple]:
    """Return ``(identity, issued_at_ms)`` from a token, or None if malformed."""
    try:
        decoded = base64.b64decode(token.encode('ascii'), validate=True).decode('utf-8')
    except (binascii.Error, UnicodeError, AttributeError):
        return None

    identity, sep, timestamp = decoded.rpartition(':')
    if not sep or not identity:
        return None
    try:
        issued_at = int(timestamp)
    except ValueError:
        return None
    return identity, issued_at


def verify_token(token: str, now_ms: Optional[int] = None) -> Optional[str]:
    """
    Check a session token.

    Returns:
        The identity the token was issued for, or None if the token is
        malformed or at least ``SESSION_TOKEN_TTL_MS`` old
    """
    decoded = decode_token(token)
    if decoded is None:
        return None
    identity, issued_at = decoded
    now = _now_ms() if now_ms is None else now_ms
    if now - issued_at >= config.SESSION_TOKEN_TTL_MS:
        return None
    return identity


def encode_master_password(secret: str) -> str:
    """Reversible envelope of the master password (Base64, unsalted, unhashed)."""
    return base64.b64encode(secret.encode('utf-8')).decode('ascii')
