"""
Security analysis of a vault: weak, reused and stale credentials plus an
overall 0-100 score.
"""

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from . import config
from . import strength
from .activity import ActivityLog
from .kvstore import KeyValueStore
from .session import SessionGate
from .storage import Credential, CredentialStore
from .utils import months_before, utcnow

logger = logging.getLogger(__name__)

RATING_EXCELLENT = "excellent"
RATING_GOOD = "good"
RATING_NEEDS_ATTENTION = "needs_attention"


@dataclass(frozen=True)
class SecurityReport:
    overall_score: int
    weak_ids: Tuple[int, ...] = field(default_factory=tuple)
    reused_ids: Tuple[int, ...] = field(default_factory=tuple)
    stale_ids: Tuple[int, ...] = field(default_factory=tuple)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'overallScore': self.overall_score,
            'weakCredentialIds': list(self.weak_ids),
            'reusedCredentialIds': list(self.reused_ids),
            'staleCredentialIds': list(self.stale_ids),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'SecurityReport':
        return cls(
            overall_score=int(data['overallScore']),
            weak_ids=tuple(data.get('weakCredentialIds', ())),
            reused_ids=tuple(data.get('reusedCredentialIds', ())),
            stale_ids=tuple(data.get('staleCredentialIds', ())),
        )


def _round_half_up(value: float) -> int:
    return int(Decimal(repr(value)).quantize(Decimal('1'), rounding=ROUND_HALF_UP))


def find_reused(credentials: Sequence[Credential]) -> List[Credential]:
    """Every credential whose current value is shared with at least one other credential."""
    groups: Dict[str, List[Credential]] = defaultdict(list)
    for credential in credentials:
        groups[credential.current_version.value].append(credential)
    return [c for group in groups.values() if len(group) > 1 for c in group]


def analyze_credentials(credentials: Sequence[Credential], now: Optional[datetime] = None) -> SecurityReport:
    """
    Classify credentials and compute the overall score.

    overall = round((100 - (0.4*weak% + 0.4*reused% + 0.2*stale%) + average strength) / 2)

    An empty vault scores 100.
    """
    if not credentials:
        return SecurityReport(overall_score=100)

    now = now or utcnow()
    cutoff = months_before(now, config.STALE_AFTER_MONTHS)

    scores = {c.id: strength.score(c.current_version.value) for c in credentials}
    weak = [c for c in credentials if scores[c.id] < config.WEAK_SCORE_THRESHOLD]
    reused = find_reused(credentials)
    stale = [c for c in credentials if c.current_version.created_at < cutoff]

    count = len(credentials)
    weak_pct = len(weak) / count * 100
    reused_pct = len(reused) / count * 100
    stale_pct = len(stale) / count * 100
    average_strength = sum(scores.values()) / count

    penalty_score = 100 - (
        weak_pct * config.WEAK_WEIGHT
        + reused_pct * config.REUSED_WEIGHT
        + stale_pct * config.STALE_WEIGHT
    )
    overall = _round_half_up((penalty_score + average_strength) / 2)

    return SecurityReport(
        overall_score=overall,
        weak_ids=tuple(c.id for c in weak),
        reused_ids=tuple(c.id for c in reused),
        stale_ids=tuple(c.id for c in stale),
    )


def rating(overall_score: int) -> str:
    """Caller-side verdict for an overall score."""
    if overall_score >= config.RATING_EXCELLENT_MIN:
        return RATING_EXCELLENT
    if overall_score >= config.RATING_GOOD_MIN:
        return RATING_GOOD
    return RATING_NEEDS_ATTENTION


class SecurityAnalyzer:
    """Runs security checks over the session's unlocked vault."""

    def __init__(
        self,
        session: SessionGate,
        store: CredentialStore,
        kv: Optional[KeyValueStore] = None,
        activity: Optional[ActivityLog] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.session = session
        self.store = store
        self.kv = kv
        self.activity = activity
        self._clock = clock or utcnow

    def analyze(self) -> SecurityReport:
        self.session.require_unlocked()
        return analyze_credentials(self.store.list(), now=self._clock())

    def run_check(self) -> SecurityReport:
        """Analyze, cache the report as the last check and record the activity."""
        identity = self.session.require_unlocked()
        report = self.analyze()
        checked_at = self._clock()
        if self.kv is not None:
            self.kv.set(
                config.identity_key(identity, config.KEY_LAST_CHECK_SUFFIX),
                {'checkedAt': checked_at.isoformat(), 'result': report.to_dict()},
            )
        if self.activity is not None:
            self.activity.record(identity, 'security_check', 'Security Check')
        logger.info(
            f"Security check for {identity}: score {report.overall_score}, "
            f"{len(report.weak_ids)} weak, {len(report.reused_ids)} reused, {len(report.stale_ids)} stale"
        )
        return report

    def last_check(self) -> Optional[Tuple[datetime, SecurityReport]]:
        """The cached report of the last ``run_check`` and when it ran, if any."""
        identity = self.session.require_unlocked()
        if self.kv is None:
            return None
        cached = self.kv.get(config.identity_key(identity, config.KEY_LAST_CHECK_SUFFIX))
        if not cached:
            return None
        try:
            return datetime.fromisoformat(cached['checkedAt']), SecurityReport.from_dict(cached['result'])
        except (KeyError, TypeError, ValueError) as e:
            logger.warning(f"Ignoring unreadable cached security report for {identity}: {e}")
            return None
