"""
Session gate: login state and vault lock state.

    LOGGED_OUT --login--> LOCKED --unlock--> UNLOCKED
                            ^                   |
                            +-------lock--------+
    any state --logout--> LOGGED_OUT

Every credential store and analyzer call goes through ``require_unlocked``.
The session token and master password envelope are reversible Base64
encodings (see ``vaultify.crypto``); they gate flow, not confidentiality.
"""

import logging
import threading
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, List, Optional

from . import config
from .crypto import CryptoManager, issue_token, decode_token, verify_token, encode_master_password
from .exceptions import AuthenticationError, InvalidTokenError, VaultLockedError
from .kvstore import KeyValueStore

logger = logging.getLogger(__name__)


class VaultState(Enum):
    LOGGED_OUT = "logged_out"
    LOCKED = "locked"
    UNLOCKED = "unlocked"


@dataclass(frozen=True)
class Session:
    """A successful login. Holds no key material."""
    token: str
    identity: str
    issued_at: datetime


def _session_from_token(token: str) -> Optional[Session]:
    decoded = decode_token(token)
    if decoded is None:
        return None
    identity, issued_at_ms = decoded
    issued_at = datetime.fromtimestamp(issued_at_ms / 1000, tz=timezone.utc)
    return Session(token=token, identity=identity, issued_at=issued_at)


class SessionGate:
    """Owns the login/lock state for one process and tells listeners when the vault locks."""

    def __init__(
        self,
        kv: KeyValueStore,
        authenticator: Optional[Callable[[str, str], bool]] = None,
        clock_ms: Optional[Callable[[], int]] = None,
    ):
        """
        Args:
            kv: Medium holding the token and master password envelopes
            authenticator: Checks login credentials; every login is accepted
                when omitted
            clock_ms: Returns the current time in epoch milliseconds
        """
        self.kv = kv
        self._authenticator = authenticator
        self._clock_ms = clock_ms or (lambda: int(time.time() * 1000))
        self._lock = threading.RLock()
        self._state = VaultState.LOGGED_OUT
        self._session: Optional[Session] = None
        self._lock_listeners: List[Callable[[], None]] = []

    @property
    def state(self) -> VaultState:
        return self._state

    @property
    def session(self) -> Optional[Session]:
        return self._session

    @property
    def identity(self) -> Optional[str]:
        return self._session.identity if self._session else None

    def is_unlocked(self) -> bool:
        return self._state is VaultState.UNLOCKED

    def add_lock_listener(self, callback: Callable[[], None]) -> None:
        """Register a callback run whenever the vault locks (including on logout)."""
        with self._lock:
            self._lock_listeners.append(callback)

    def remove_lock_listener(self, callback: Callable[[], None]) -> None:
        with self._lock:
            if callback in self._lock_listeners:
                self._lock_listeners.remove(callback)

    def login(self, identity: str, password: Optional[str] = None) -> Session:
        """
        Log ``identity`` in. The vault always starts locked.

        Raises:
            AuthenticationError: If the authenticator rejects the credentials
        """
        if not identity:
            raise AuthenticationError("Identity must not be empty")
        if self._authenticator is not None and not self._authenticator(identity, password or ""):
            logger.warning(f"Login rejected for {identity}")
            raise AuthenticationError(f"Invalid credentials for {identity}")

        with self._lock:
            if self._session is not None:
                self._close_session()
            token = issue_token(identity, now_ms=self._clock_ms())
            self._session = _session_from_token(token)
            self._state = VaultState.LOCKED
            self.kv.set(config.KEY_AUTH_TOKEN, token)
            self.kv.set(config.KEY_CURRENT_USER, identity)
        logger.info(f"Logged in as {identity}; vault locked")
        return self._session

    def resume(self) -> Optional[Session]:
        """Restore a login from the stored token, if it is still valid. The vault stays locked."""
        token = self.kv.get(config.KEY_AUTH_TOKEN)
        current_user = self.kv.get(config.KEY_CURRENT_USER)
        if not token or not current_user:
            return None

        identity = verify_token(token, now_ms=self._clock_ms())
        if identity is None or identity != current_user:
            logger.info("Stored session token is invalid or expired; clearing it")
            self.kv.delete(config.KEY_AUTH_TOKEN)
            self.kv.delete(config.KEY_CURRENT_USER)
            return None

        with self._lock:
            if self._state is not VaultState.LOGGED_OUT:
                self._notify_locked()
            self._session = _session_from_token(token)
            self._state = VaultState.LOCKED
        logger.info(f"Resumed session for {identity}; vault locked")
        return self._session

    def has_master_password(self) -> bool:
        identity = self._require_logged_in()
        return self.kv.get(config.identity_key(identity, config.KEY_MASTER_PASSWORD_SUFFIX)) is not None

    def set_master_password(self, secret: str) -> None:
        """
        Store the master password envelope and unlock the vault.

        Replacing an existing master password requires an unlocked vault.

        Raises:
            ValueError: If the secret is shorter than the configured minimum
        """
        if len(secret) < config.MASTER_PASSWORD_MIN_LENGTH:
            raise ValueError(
                f"Master password should be at least {config.MASTER_PASSWORD_MIN_LENGTH} characters long"
            )
        with self._lock:
            identity = self._require_logged_in()
            if self.has_master_password() and not self.is_unlocked():
                raise VaultLockedError("Unlock the vault before changing the master password")
            self.kv.set(
                config.identity_key(identity, config.KEY_MASTER_PASSWORD_SUFFIX),
                encode_master_password(secret),
            )
            self._state = VaultState.UNLOCKED
        logger.info(f"Master password set for {identity}; vault unlocked")

    def unlock(self, candidate: str) -> bool:
        """
        Unlock the vault if ``candidate`` matches the stored master password.

        Returns:
            True if the vault is now unlocked, False on a wrong or unset password
        """
        with self._lock:
            identity = self._require_logged_in()
            self._check_token()
            stored = self.kv.get(config.identity_key(identity, config.KEY_MASTER_PASSWORD_SUFFIX))
            if stored is None:
                logger.warning(f"Unlock attempted for {identity} but no master password is set")
                return False

            candidate_envelope = encode_master_password(candidate)
            if not CryptoManager.secure_compare(candidate_envelope.encode('ascii'), stored.encode('ascii')):
                logger.warning(f"Vault unlock failed for {identity}: incorrect master password")
                return False

            self._state = VaultState.UNLOCKED
        logger.info(f"Vault unlocked for {identity}")
        return True

    def lock(self) -> None:
        """Lock the vault and drop every decrypted view. A no-op when logged out."""
        with self._lock:
            if self._state is VaultState.LOGGED_OUT:
                return
            self._state = VaultState.LOCKED
            self._notify_locked()
        logger.info(f"Vault locked for {self.identity}")

    def logout(self) -> None:
        """Lock the vault and forget the session token."""
        with self._lock:
            identity = self.identity
            self._close_session()
        if identity:
            logger.info(f"Logged out {identity}")

    def require_unlocked(self) -> str:
        """
        Check that the vault may be read or written.

        Returns:
            The identity that owns the vault

        Raises:
            VaultLockedError: If nobody is logged in or the vault is locked
            InvalidTokenError: If the session token has expired (the gate logs out)
        """
        with self._lock:
            identity = self._require_logged_in()
            self._check_token()
            if self._state is not VaultState.UNLOCKED:
                raise VaultLockedError()
            return identity

    def _require_logged_in(self) -> str:
        if self._session is None:
            raise VaultLockedError("Not logged in")
        return self._session.identity

    def _check_token(self) -> None:
        if verify_token(self._session.token, now_ms=self._clock_ms()) is None:
            identity = self._session.identity
            logger.warning(f"Session token for {identity} expired; logging out")
            self._close_session()
            raise InvalidTokenError(f"Session for {identity} has expired; log in again")

    def _close_session(self) -> None:
        if self._state is not VaultState.LOGGED_OUT:
            self._notify_locked()
        self._state = VaultState.LOGGED_OUT
        self._session = None
        self.kv.delete(config.KEY_AUTH_TOKEN)
        self.kv.delete(config.KEY_CURRENT_USER)

    def _notify_locked(self) -> None:
        for callback in list(self._lock_listeners):
            callback()
