"""
Durable key-value media for vault data.

Everything the engine persists (vault blobs, the master password envelope,
session token, activity log, last security report) is one JSON value under
one string key.
"""

import os
import json
import shutil
import logging
import threading
from typing import Any, Dict, List, Optional
from urllib.parse import quote, unquote

from . import config
from .utils import set_private_permissions

logger = logging.getLogger(__name__)


class KeyValueStore:
    """Interface of a key-value medium. Values are JSON-serializable."""

    def get(self, key: str) -> Optional[Any]:
        raise NotImplementedError

    def set(self, key: str, value: Any) -> None:
        raise NotImplementedError

    def delete(self, key: str) -> None:
        raise NotImplementedError

    def keys(self) -> List[str]:
        raise NotImplementedError


class MemoryStore(KeyValueStore):
    """In-process medium; values are stored as JSON text so callers never share objects."""

    def __init__(self):
        self._data: Dict[str, str] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[Any]:
        with self._lock:
            raw = self._data.get(key)
        return None if raw is None else json.loads(raw)

    def set(self, key: str, value: Any) -> None:
        raw = json.dumps(value)
        with self._lock:
            self._data[key] = raw

    def delete(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)

    def keys(self) -> List[str]:
        with self._lock:
            return sorted(self._data)


class JsonFileStore(KeyValueStore):
    """
    One JSON file per key in a directory.

    Writes go to a temp file that is then moved over the target, and every
    file is restricted to its owner.
    """

    def __init__(self, directory: Optional[str] = None):
        self.directory = directory or config.DATA_DIR
        os.makedirs(self.directory, exist_ok=True)
        self._lock = threading.Lock()

    def _path(self, key: str) -> str:
        return os.path.join(self.directory, quote(key, safe='') + config.KV_FILE_SUFFIX)

    def get(self, key: str) -> Optional[Any]:
        path = self._path(key)
        with self._lock:
            if not os.path.exists(path):
                return None
            with open(path, 'r', encoding='utf-8') as f:
                return json.load(f)

    def set(self, key: str, value: Any) -> None:
        path = self._path(key)
        tmp_path = path + '.tmp'
        with self._lock:
            try:
                with open(tmp_path, 'w', encoding='utf-8') as f:
                    json.dump(value, f, indent=2)
                shutil.move(tmp_path, path)
            except Exception as e:
                logger.error(f"Error writing key {key!r} to {path}: {e}", exc_info=True)
                if os.path.exists(tmp_path):
                    os.remove(tmp_path)
                raise

            if not set_private_permissions(path):
                logger.warning(f"Failed to set secure file permissions for {path}.")

    def delete(self, key: str) -> None:
        path = self._path(key)
        with self._lock:
            if os.path.exists(path):
                os.remove(path)

    def keys(self) -> List[str]:
        suffix = config.KV_FILE_SUFFIX
        with self._lock:
            names = os.listdir(self.directory)
        return sorted(unquote(n[:-len(suffix)]) for n in names if n.endswith(suffix))
