"""
Exceptions raised by the Vaultify engine.

None of these are fatal: callers recover by re-authenticating, unlocking,
or correcting the request.
"""


class VaultError(Exception):
    """Base class for all Vaultify errors."""


class DecryptError(VaultError):
    """Ciphertext is corrupted, foreign, of an unknown format, or the key does not match."""


class CredentialNotFoundError(VaultError, KeyError):
    """An operation referenced a credential id that is not in the vault."""

    def __init__(self, credential_id):
        super().__init__(credential_id)
        self.credential_id = credential_id

    def __str__(self):
        return f"Credential {self.credential_id} not found"


class NoteNotFoundError(VaultError, KeyError):
    """An operation referenced a note id that is not stored."""

    def __init__(self, note_id):
        super().__init__(note_id)
        self.note_id = note_id

    def __str__(self):
        return f"Note {self.note_id} not found"


class VaultLockedError(VaultError, RuntimeError):
    """A vault operation was attempted while the vault is locked or nobody is logged in."""

    def __init__(self, message: str = "Vault is locked"):
        super().__init__(message)


class InvalidTokenError(VaultError):
    """The session token is malformed or expired; the caller must log in again."""


class AuthenticationError(VaultError):
    """The external authenticator rejected a login."""


class SchemaError(VaultError):
    """A persisted vault blob or record does not match the expected schema."""
