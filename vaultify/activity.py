import time
import logging
from dataclasses import dataclass, asdict
from typing import Any, Dict, List, Optional

from . import config
from .kvstore import KeyValueStore
from .utils import utcnow

logger = logging.getLogger(__name__)

ACTIONS = ('add', 'update', 'delete', 'use', 'security_check')


@dataclass
class ActivityItem:
    """One entry of the recent activity list."""
    id: int
    action: str
    target: str
    date: str

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ActivityItem':
        return cls(**data)


class ActivityLog:
    """Newest-first list of recent vault actions for one identity, capped at ACTIVITY_LOG_LIMIT."""

    def __init__(self, kv: KeyValueStore):
        self.kv = kv

    def _key(self, identity: str) -> str:
        return config.identity_key(identity, config.KEY_ACTIVITY_SUFFIX)

    def record(self, identity: str, action: str, target: str) -> ActivityItem:
        """
        Prepend an action to the identity's activity list.
        Ensures the list stays limited to the last ACTIVITY_LOG_LIMIT entries.
        """
        if action not in ACTIONS:
            raise ValueError(f"Unknown activity action: {action}")

        recent = self.entries(identity)
        newest_id = recent[0].id if recent else 0
        item = ActivityItem(
            id=max(int(time.time() * 1000), newest_id + 1),
            action=action,
            target=target,
            date=utcnow().isoformat(),
        )

        # Add new entry at beginning
        recent.insert(0, item)
        recent = recent[:config.ACTIVITY_LOG_LIMIT]

        self.kv.set(self._key(identity), [a.to_dict() for a in recent])
        logger.debug(f"Activity recorded for {identity}: {action} {target}")
        return item

    def entries(self, identity: str) -> List[ActivityItem]:
        """Load the identity's activity list, skipping entries that do not parse."""
        stored: Optional[list] = self.kv.get(self._key(identity))
        items = []
        for raw in stored or []:
            try:
                items.append(ActivityItem.from_dict(raw))
            except TypeError:
                logger.warning(f"Ignoring malformed activity entry for {identity}: {raw!r}")
        return items

    def clear(self, identity: str) -> None:
        self.kv.delete(self._key(identity))
