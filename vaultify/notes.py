"""
Encrypted notes kept alongside the credential vault.

Titles and contents are both encrypted. Like the credential store, the notes
are only readable while the session is unlocked and are dropped from memory
when it locks.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from . import config
from .crypto import CryptoManager
from .exceptions import DecryptError, NoteNotFoundError, SchemaError
from .kvstore import KeyValueStore
from .session import SessionGate
from .storage import vault_lock
from .utils import utcnow

logger = logging.getLogger(__name__)


@dataclass
class Note:
    id: int
    title: str
    content: str

    def to_record(self, crypto: CryptoManager) -> Dict[str, Any]:
        return {
            'id': self.id,
            'title': crypto.encrypt(self.title),
            'content': crypto.encrypt(self.content),
        }

    @classmethod
    def from_record(cls, data: Any, crypto: CryptoManager) -> 'Note':
        if not isinstance(data, dict):
            raise SchemaError("note must be an object")
        note_id = data.get('id')
        if not isinstance(note_id, int) or isinstance(note_id, bool):
            raise SchemaError("note.id must be an integer")
        title, content = data.get('title'), data.get('content')
        if not isinstance(title, str) or not isinstance(content, str):
            raise SchemaError("note.title and note.content must be strings")
        return cls(id=note_id, title=crypto.decrypt(title), content=crypto.decrypt(content))


def _require_text(title: str, content: str) -> None:
    if not title or not content:
        raise ValueError("A note needs both a title and content")


class NotesStore:
    """Encrypted notes of the session's identity, oldest first."""

    def __init__(
        self,
        session: SessionGate,
        kv: KeyValueStore,
        crypto: CryptoManager,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.session = session
        self.kv = kv
        self.crypto = crypto
        self._clock = clock or utcnow
        self._notes: Optional[List[Note]] = None
        self._owner: Optional[str] = None
        self._quarantine: List[Any] = []
        session.add_lock_listener(self._clear)

    def _clear(self) -> None:
        owner = self._owner
        if owner is None:
            self._notes = None
            self._quarantine = []
            return
        with vault_lock(owner):
            self._notes = None
            self._owner = None
            self._quarantine = []

    def close(self) -> None:
        """Drop the decrypted notes and stop listening to the session."""
        self.session.remove_lock_listener(self._clear)
        self._clear()

    def _key(self, identity: str) -> str:
        return config.identity_key(identity, config.KEY_NOTES_SUFFIX)

    def _install(self, identity: str, notes: List[Note]) -> None:
        if self.session.is_unlocked() and self.session.identity == identity:
            self._notes = notes
            self._owner = identity
        else:
            self._clear()

    def _load(self, identity: str) -> List[Note]:
        blob = self.kv.get(self._key(identity))
        if blob is None:
            records, quarantine = [], []
        elif isinstance(blob, list):
            # Unversioned notes were a bare list.
            records, quarantine = blob, []
        elif isinstance(blob, dict):
            if blob.get('schema_version') != config.STORAGE_SCHEMA_VERSION:
                raise SchemaError(f"Unsupported notes schema version: {blob.get('schema_version')!r}")
            records = blob.get('notes', [])
            quarantine = list(blob.get('quarantine', []))
            if not isinstance(records, list):
                raise SchemaError("Notes blob notes must be a list")
        else:
            raise SchemaError(f"Notes blob must be an object, got {type(blob).__name__}")

        notes: List[Note] = []
        for record in records:
            try:
                notes.append(Note.from_record(record, self.crypto))
            except (SchemaError, DecryptError) as e:
                logger.warning(f"Quarantined note for {identity}: {type(e).__name__}: {e}")
                quarantine.append(record)

        self._quarantine = quarantine
        self._install(identity, notes)
        return notes

    def _ensure_loaded(self, identity: str) -> List[Note]:
        if self._notes is None or self._owner != identity:
            return self._load(identity)
        return self._notes

    def _commit(self, identity: str, notes: List[Note]) -> None:
        blob = {
            'schema_version': config.STORAGE_SCHEMA_VERSION,
            'cipher': config.STORAGE_CIPHER_NAME,
            'notes': [n.to_record(self.crypto) for n in notes],
            'quarantine': self._quarantine,
        }
        self.kv.set(self._key(identity), blob)
        self._install(identity, notes)

    @staticmethod
    def _index_of(notes: List[Note], note_id: int) -> int:
        for index, note in enumerate(notes):
            if note.id == note_id:
                return index
        raise NoteNotFoundError(note_id)

    def list(self) -> List[Note]:
        owner = self.session.require_unlocked()
        with vault_lock(owner):
            return [Note(n.id, n.title, n.content) for n in self._ensure_loaded(owner)]

    def add(self, title: str, content: str) -> Note:
        """
        Append a note and persist.

        Raises:
            ValueError: If the title or content is empty
        """
        _require_text(title, content)
        owner = self.session.require_unlocked()
        with vault_lock(owner):
            notes = list(self._ensure_loaded(owner))
            now_ms = int(self._clock().timestamp() * 1000)
            note = Note(id=max([now_ms] + [n.id + 1 for n in notes]), title=title, content=content)
            notes.append(note)
            self._commit(owner, notes)
        logger.info(f"Note added: {note.id}")
        return Note(note.id, note.title, note.content)

    def update(self, note_id: int, title: str, content: str) -> Note:
        """
        Replace a note's title and content.

        Raises:
            NoteNotFoundError: If no note has ``note_id``
            ValueError: If the title or content is empty
        """
        _require_text(title, content)
        owner = self.session.require_unlocked()
        with vault_lock(owner):
            notes = list(self._ensure_loaded(owner))
            index = self._index_of(notes, note_id)
            notes[index] = Note(note_id, title, content)
            self._commit(owner, notes)
        logger.info(f"Note updated: {note_id}")
        return Note(note_id, title, content)

    def remove(self, note_id: int) -> None:
        owner = self.session.require_unlocked()
        with vault_lock(owner):
            notes = list(self._ensure_loaded(owner))
            notes.pop(self._index_of(notes, note_id))
            self._commit(owner, notes)
        logger.info(f"Note deleted: {note_id}")
