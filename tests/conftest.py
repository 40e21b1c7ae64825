"""
Shared pytest fixtures for the Vaultify test suite.

  - ``crypto``  -> Argon2id with minimal cost so key derivation is instant
  - ``kv``      -> in-memory key-value medium
  - ``clock``   -> controllable clock for the store and analyzer
  - ``session_clock`` -> controllable clock for session tokens
  - ``gate``/``store``/``analyzer`` -> wired for identity "alice", unlocked
"""

from datetime import datetime, timedelta, timezone

import pytest

from vaultify.activity import ActivityLog
from vaultify.analyzer import SecurityAnalyzer
from vaultify.crypto import CryptoManager
from vaultify.kvstore import MemoryStore
from vaultify.session import SessionGate
from vaultify.storage import CredentialStore

MASTER_PASSWORD = "correct horse battery"


class FakeClock:
    """A clock that only moves when told to."""

    def __init__(self, start: datetime):
        self.current = start

    def now(self) -> datetime:
        return self.current

    def ms(self) -> int:
        return int(self.current.timestamp() * 1000)

    def advance(self, **kwargs) -> None:
        self.current += timedelta(**kwargs)


@pytest.fixture(scope="session")
def crypto():
    return CryptoManager("test-passphrase", time_cost=1, memory_cost=8, parallelism=1)


@pytest.fixture
def kv():
    return MemoryStore()


@pytest.fixture
def clock():
    return FakeClock(datetime(2026, 6, 15, 12, 0, tzinfo=timezone.utc))


@pytest.fixture
def session_clock():
    """Separate clock for token expiry so vault time can jump months ahead."""
    return FakeClock(datetime(2026, 6, 15, 12, 0, tzinfo=timezone.utc))


@pytest.fixture
def activity(kv):
    return ActivityLog(kv)


@pytest.fixture
def gate(kv, session_clock):
    gate = SessionGate(kv, clock_ms=session_clock.ms)
    gate.login("alice")
    gate.set_master_password(MASTER_PASSWORD)
    return gate


@pytest.fixture
def store(gate, kv, crypto, activity, clock):
    return CredentialStore(gate, kv, crypto, activity=activity, clock=clock.now)


@pytest.fixture
def analyzer(gate, store, kv, activity, clock):
    return SecurityAnalyzer(gate, store, kv=kv, activity=activity, clock=clock.now)
