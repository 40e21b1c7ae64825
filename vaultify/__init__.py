"""
Vaultify credential vault engine.

NOTICE:
Vaultify keeps credentials on this device only, encrypted at rest. Its
session tokens and master password envelope are reversible encodings that
gate the application flow; they are not a security boundary.
"""

from .analyzer import SecurityAnalyzer, SecurityReport, analyze_credentials
from .crypto import CryptoManager
from .kvstore import JsonFileStore, MemoryStore
from .notes import Note, NotesStore
from .session import SessionGate, VaultState
from .storage import Credential, CredentialStore, CredentialVersion

__all__ = [
    "Credential",
    "CredentialStore",
    "CredentialVersion",
    "CryptoManager",
    "JsonFileStore",
    "MemoryStore",
    "Note",
    "NotesStore",
    "SecurityAnalyzer",
    "SecurityReport",
    "SessionGate",
    "VaultState",
    "analyze_credentials",
]
