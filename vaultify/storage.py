"""
Credential storage for the vault.

The store keeps one identity's credentials decrypted in memory while the
vault is unlocked and rewrites the whole encrypted snapshot to the key-value
medium on every mutation.
"""

import logging
import threading
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any, Callable, Dict, FrozenSet, Iterable, List, Optional, Set

from . import config
from .activity import ActivityLog
from .crypto import CryptoManager
from .exceptions import CredentialNotFoundError, DecryptError, SchemaError, VaultLockedError
from .kvstore import KeyValueStore
from .session import SessionGate
from .utils import utcnow

logger = logging.getLogger(__name__)

LEGACY_SCHEMA_VERSION = 0

_vault_locks: Dict[str, threading.RLock] = {}
_vault_locks_guard = threading.Lock()


def vault_lock(identity: str) -> threading.RLock:
    """The lock serializing every mutation of ``identity``'s vault in this process."""
    with _vault_locks_guard:
        lock = _vault_locks.get(identity)
        if lock is None:
            lock = _vault_locks[identity] = threading.RLock()
        return lock


def _format_time(moment: datetime) -> str:
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.isoformat()


def _parse_time(value: Any) -> datetime:
    if not isinstance(value, str):
        raise SchemaError(f"createdAt must be an ISO timestamp string, got {type(value).__name__}")
    text = value[:-1] + '+00:00' if value.endswith('Z') else value
    try:
        moment = datetime.fromisoformat(text)
    except ValueError as e:
        raise SchemaError(f"createdAt is not an ISO timestamp: {value!r}") from e
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment


def _optional(data: Dict[str, Any], key: str, kind: type, what: str):
    value = data.get(key)
    if value is not None and not isinstance(value, kind):
        raise SchemaError(f"{what}.{key} must be {kind.__name__}, got {type(value).__name__}")
    return value


def _tag_list(value: Any, what: str) -> List[str]:
    if not isinstance(value, list) or not all(isinstance(t, str) for t in value):
        raise SchemaError(f"{what}.tags must be a list of strings")
    return value


@dataclass(frozen=True)
class CredentialVersion:
    """One value of a credential and the metadata captured with it."""
    value: str
    created_at: datetime
    name: Optional[str] = None
    category: Optional[str] = None
    tags: Optional[FrozenSet[str]] = None
    shared: Optional[bool] = None

    def __post_init__(self):
        if self.created_at.tzinfo is None:
            object.__setattr__(self, 'created_at', self.created_at.replace(tzinfo=timezone.utc))

    def to_record(self, crypto: CryptoManager) -> Dict[str, Any]:
        """Serialize with the value encrypted."""
        record: Dict[str, Any] = {
            'value': crypto.encrypt(self.value),
            'createdAt': _format_time(self.created_at),
        }
        if self.name is not None:
            record['name'] = self.name
        if self.category is not None:
            record['category'] = self.category
        if self.tags is not None:
            record['tags'] = sorted(self.tags)
        if self.shared is not None:
            record['shared'] = self.shared
        return record

    @classmethod
    def from_record(cls, data: Any, crypto: CryptoManager, legacy: bool = False) -> 'CredentialVersion':
        """
        Validate and decrypt a persisted version.

        Raises:
            SchemaError: If the record does not have the expected shape
            DecryptError: If the value cannot be decrypted
        """
        if not isinstance(data, dict):
            raise SchemaError("version must be an object")
        value = data.get('value')
        if not isinstance(value, str):
            raise SchemaError("version.value must be a string")
        tags = data.get('tags')
        # The unversioned format stored empty values unencrypted.
        plaintext = '' if legacy and value == '' else crypto.decrypt(value)
        return cls(
            value=plaintext,
            created_at=_parse_time(data.get('createdAt')),
            name=_optional(data, 'name', str, 'version'),
            category=_optional(data, 'category', str, 'version'),
            tags=None if tags is None else frozenset(_tag_list(tags, 'version')),
            shared=_optional(data, 'shared', bool, 'version'),
        )


@dataclass
class Credential:
    """A named secret with its current version and newest-first history."""
    id: int
    name: str
    category: str
    current_version: CredentialVersion
    history: List[CredentialVersion] = field(default_factory=list)
    tags: Set[str] = field(default_factory=set)
    sequence: int = field(default=0, compare=False)

    @property
    def value(self) -> str:
        return self.current_version.value

    def copy(self) -> 'Credential':
        return replace(self, history=list(self.history), tags=set(self.tags))

    def rotated(self, new_version: CredentialVersion) -> 'Credential':
        """A copy with ``new_version`` current and the old current version pushed onto history."""
        history = [self.current_version] + self.history
        return replace(
            self,
            current_version=new_version,
            history=history[:config.HISTORY_LIMIT],
            tags=set(self.tags),
        )

    def to_record(self, crypto: CryptoManager) -> Dict[str, Any]:
        return {
            'id': self.id,
            'name': self.name,
            'category': self.category,
            'currentVersion': self.current_version.to_record(crypto),
            'history': [v.to_record(crypto) for v in self.history],
            'tags': sorted(self.tags),
        }

    @classmethod
    def from_record(cls, data: Any, crypto: CryptoManager, legacy: bool = False) -> 'Credential':
        if not isinstance(data, dict):
            raise SchemaError("credential must be an object")
        credential_id = data.get('id')
        if not isinstance(credential_id, int) or isinstance(credential_id, bool):
            raise SchemaError("credential.id must be an integer")
        name = data.get('name')
        if not isinstance(name, str):
            raise SchemaError("credential.name must be a string")
        category = data.get('category', config.DEFAULT_CATEGORY if legacy else None)
        if not isinstance(category, str):
            raise SchemaError("credential.category must be a string")
        history = data.get('history', [] if legacy else None)
        if not isinstance(history, list):
            raise SchemaError("credential.history must be a list")
        if len(history) > config.HISTORY_LIMIT:
            logger.warning(
                f"Credential {credential_id} has {len(history)} history entries; "
                f"keeping the newest {config.HISTORY_LIMIT}"
            )
            history = history[:config.HISTORY_LIMIT]

        return cls(
            id=credential_id,
            name=name,
            category=category,
            current_version=CredentialVersion.from_record(data.get('currentVersion'), crypto, legacy),
            history=[CredentialVersion.from_record(v, crypto, legacy) for v in history],
            tags=set(_tag_list(data.get('tags', []), 'credential')),
        )


@dataclass(frozen=True)
class QuarantinedRecord:
    """A persisted record left out of the vault because it failed validation or decryption."""
    reason: str
    record: Any

    @property
    def credential_id(self) -> Optional[int]:
        return self.record.get('id') if isinstance(self.record, dict) else None

    def to_dict(self) -> Dict[str, Any]:
        return {'reason': self.reason, 'record': self.record}


class CredentialStore:
    """Manages the unlocked vault of the session's identity."""

    def __init__(
        self,
        session: SessionGate,
        kv: KeyValueStore,
        crypto: CryptoManager,
        activity: Optional[ActivityLog] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """
        Initialize the credential store.

        Args:
            session: Gate every operation is checked against
            kv: Medium holding the encrypted vault blobs
            crypto: Encrypts and decrypts credential values
            activity: Recent-activity log to record mutations in
            clock: Returns the current aware datetime
        """
        self.session = session
        self.kv = kv
        self.crypto = crypto
        self.activity = activity
        self._clock = clock or utcnow
        self._vault: Optional[List[Credential]] = None
        self._owner: Optional[str] = None
        self.quarantined: List[QuarantinedRecord] = []
        session.add_lock_listener(self._clear)

    def _clear(self) -> None:
        """Drop the decrypted vault; runs whenever the session locks."""
        owner = self._owner
        if owner is None:
            self._vault = None
            self.quarantined = []
            return
        with vault_lock(owner):
            self._vault = None
            self._owner = None
            self.quarantined = []

    def close(self) -> None:
        """Drop the decrypted vault and stop listening to the session."""
        self.session.remove_lock_listener(self._clear)
        self._clear()

    def _install(self, identity: str, credentials: List[Credential]) -> None:
        # A lock that fired while the vault was being read or written wins.
        if self.session.is_unlocked() and self.session.identity == identity:
            self._vault = credentials
            self._owner = identity
        else:
            self._clear()

    def _blob_key(self, identity: str) -> str:
        return config.identity_key(identity, config.KEY_PASSWORDS_SUFFIX)

    def load(self, identity: Optional[str] = None) -> List[Credential]:
        """
        Read and decrypt the vault of ``identity`` (the session identity by default).

        Missing data yields an empty vault. Records that fail validation or
        decryption are quarantined instead of aborting the load.

        Raises:
            VaultLockedError: If the vault is locked or belongs to another identity
            SchemaError: If the stored blob has an unknown schema version
        """
        owner = self.session.require_unlocked()
        if identity is not None and identity != owner:
            raise VaultLockedError(f"The vault of {identity} is not unlocked in this session")
        with vault_lock(owner):
            return [c.copy() for c in self._load(owner)]

    def _load(self, identity: str) -> List[Credential]:
        blob = self.kv.get(self._blob_key(identity))
        credentials: List[Credential] = []
        quarantined: List[QuarantinedRecord] = []

        if blob is None:
            records, schema_version = [], config.STORAGE_SCHEMA_VERSION
        elif isinstance(blob, list):
            records, schema_version = blob, LEGACY_SCHEMA_VERSION
        elif isinstance(blob, dict):
            schema_version = blob.get('schema_version')
            if schema_version != config.STORAGE_SCHEMA_VERSION:
                raise SchemaError(f"Unsupported vault schema version: {schema_version!r}")
            records = blob.get('credentials', [])
            if not isinstance(records, list):
                raise SchemaError("Vault blob credentials must be a list")
            for entry in blob.get('quarantine', []):
                if isinstance(entry, dict) and 'record' in entry:
                    quarantined.append(QuarantinedRecord(str(entry.get('reason', '')), entry['record']))
        else:
            raise SchemaError(f"Vault blob must be an object, got {type(blob).__name__}")

        legacy = schema_version == LEGACY_SCHEMA_VERSION
        seen_ids = set()
        for index, record in enumerate(records):
            try:
                credential = Credential.from_record(record, self.crypto, legacy=legacy)
                if credential.id in seen_ids:
                    raise SchemaError(f"duplicate credential id {credential.id}")
            except (SchemaError, DecryptError) as e:
                reason = f"{type(e).__name__}: {e}"
                logger.warning(f"Quarantined vault record {index} for {identity}: {reason}")
                quarantined.append(QuarantinedRecord(reason, record))
                continue
            seen_ids.add(credential.id)
            credentials.append(credential)

        ordered = self._resequence(credentials)
        self.quarantined = quarantined
        self._install(identity, ordered)
        logger.info(f"Loaded {len(credentials)} credentials for {identity} ({len(quarantined)} quarantined)")
        return ordered

    def _ensure_loaded(self, identity: str) -> List[Credential]:
        if self._vault is None or self._owner != identity:
            return self._load(identity)
        return self._vault

    @staticmethod
    def _resequence(credentials: Iterable[Credential]) -> List[Credential]:
        ordered = sorted(credentials, key=lambda c: c.id, reverse=True)
        count = len(ordered)
        for position, credential in enumerate(ordered):
            credential.sequence = count - position
        return ordered

    def _commit(self, identity: str, credentials: List[Credential]) -> None:
        """Encrypt and write the whole vault, then make it the in-memory vault."""
        ordered = self._resequence(credentials)
        blob = {
            'schema_version': config.STORAGE_SCHEMA_VERSION,
            'cipher': config.STORAGE_CIPHER_NAME,
            'saved_at': _format_time(self._clock()),
            'credentials': [c.to_record(self.crypto) for c in ordered],
            'quarantine': [q.to_dict() for q in self.quarantined],
        }
        self.kv.set(self._blob_key(identity), blob)
        self._install(identity, ordered)

    def _record_activity(self, identity: str, action: str, target: str) -> None:
        if self.activity is not None:
            self.activity.record(identity, action, target)

    def _index_of(self, credentials: List[Credential], credential_id: int) -> int:
        for index, credential in enumerate(credentials):
            if credential.id == credential_id:
                return index
        raise CredentialNotFoundError(credential_id)

    def _next_id(self, credentials: List[Credential]) -> int:
        now_ms = int(self._clock().timestamp() * 1000)
        highest = max((c.id for c in credentials), default=0)
        return max(now_ms, highest + 1)

    def list(self) -> List[Credential]:
        """All credentials, newest id first, each with its display ``sequence``."""
        owner = self.session.require_unlocked()
        with vault_lock(owner):
            return [c.copy() for c in self._ensure_loaded(owner)]

    def get(self, credential_id: int) -> Credential:
        owner = self.session.require_unlocked()
        with vault_lock(owner):
            credentials = self._ensure_loaded(owner)
            return credentials[self._index_of(credentials, credential_id)].copy()

    def add(
        self,
        name: str,
        value: str,
        category: str = config.DEFAULT_CATEGORY,
        tags: Optional[Iterable[str]] = None,
    ) -> Credential:
        """Add a credential with an empty history and persist the vault."""
        owner = self.session.require_unlocked()
        with vault_lock(owner):
            credentials = list(self._ensure_loaded(owner))
            credential = Credential(
                id=self._next_id(credentials),
                name=name,
                category=category,
                current_version=CredentialVersion(value=value, created_at=self._clock()),
                tags=set(tags or ()),
            )
            credentials.append(credential)
            self._commit(owner, credentials)
            logger.info(f"Credential added: {name} ({credential.id})")
            self._record_activity(owner, 'add', name)
            return credential.copy()

    def update(
        self,
        credential_id: int,
        *,
        name: Optional[str] = None,
        category: Optional[str] = None,
        tags: Optional[Iterable[str]] = None,
        current_version: Optional[CredentialVersion] = None,
    ) -> Credential:
        """
        Merge the given fields into a credential and persist the vault.

        A ``current_version`` with a different value pushes the old current
        version onto the history; one with the same value just replaces it.

        Raises:
            CredentialNotFoundError: If no credential has ``credential_id``
        """
        owner = self.session.require_unlocked()
        with vault_lock(owner):
            credentials = list(self._ensure_loaded(owner))
            index = self._index_of(credentials, credential_id)
            existing = credentials[index]

            updated = existing.copy()
            if current_version is not None:
                if current_version.value != existing.current_version.value:
                    updated = existing.rotated(current_version)
                else:
                    updated = replace(updated, current_version=current_version)
            if name is not None:
                updated.name = name
            if category is not None:
                updated.category = category
            if tags is not None:
                updated.tags = set(tags)

            credentials[index] = updated
            self._commit(owner, credentials)
            logger.info(f"Credential updated: {updated.name} ({credential_id})")
            self._record_activity(owner, 'update', updated.name)
            return updated.copy()

    def record_use(self, credential_id: int, version: CredentialVersion) -> Credential:
        """
        Make ``version`` current after a copy, reveal or share, keeping the old
        current version in the history. Name and category are left unchanged.

        Raises:
            CredentialNotFoundError: If no credential has ``credential_id``
        """
        owner = self.session.require_unlocked()
        with vault_lock(owner):
            credentials = list(self._ensure_loaded(owner))
            index = self._index_of(credentials, credential_id)
            updated = credentials[index].rotated(version)
            credentials[index] = updated
            self._commit(owner, credentials)
            logger.info(f"Credential use recorded: {updated.name} ({credential_id})")
            self._record_activity(owner, 'use', updated.name)
            return updated.copy()

    def remove(self, credential_id: int) -> None:
        """
        Delete a credential and persist the reduced vault.

        Raises:
            CredentialNotFoundError: If no credential has ``credential_id``
        """
        owner = self.session.require_unlocked()
        with vault_lock(owner):
            credentials = list(self._ensure_loaded(owner))
            removed = credentials.pop(self._index_of(credentials, credential_id))
            self._commit(owner, credentials)
            logger.info(f"Credential deleted: {removed.name} ({credential_id})")
            self._record_activity(owner, 'delete', removed.name)

    def search(self, query: str) -> List[Credential]:
        """Credentials whose name, category or any tag contains ``query``, ignoring case."""
        needle = query.lower()
        return [
            c for c in self.list()
            if needle in c.name.lower()
            or needle in c.category.lower()
            or any(needle in tag.lower() for tag in c.tags)
        ]

    def categories(self) -> List[str]:
        """Distinct categories, in list order."""
        seen: List[str] = []
        for credential in self.list():
            if credential.category not in seen:
                seen.append(credential.category)
        return seen
