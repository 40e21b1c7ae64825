"""Tests for the security analyzer."""

from datetime import datetime, timedelta, timezone

import pytest

from vaultify import strength
from vaultify.analyzer import SecurityReport, analyze_credentials, find_reused, rating
from vaultify.exceptions import VaultLockedError
from vaultify.storage import Credential, CredentialVersion
from vaultify.utils import months_before

NOW = datetime(2026, 6, 15, 12, 0, tzinfo=timezone.utc)


def make(credential_id, value, created_at=NOW):
    return Credential(
        id=credential_id,
        name=f"cred-{credential_id}",
        category="General",
        current_version=CredentialVersion(value=value, created_at=created_at),
    )


# ── Classification ──────────────────────────────────────────────────


class TestClassification:

    def test_empty_vault_scores_100(self):
        report = analyze_credentials([], now=NOW)
        assert report == SecurityReport(overall_score=100)
        assert report.weak_ids == report.reused_ids == report.stale_ids == ()

    def test_weak_threshold(self):
        report = analyze_credentials([make(1, "abc"), make(2, "Password1!")], now=NOW)
        assert report.weak_ids == (1,)

    def test_weak_agrees_with_strength_scorer(self):
        secrets = ["", "abc", "a1", "password", "Tr0ub4dor&3", "correcthorsebatterystaple", "CorrectHorse9!Battery"]
        credentials = [make(i, s) for i, s in enumerate(secrets, start=1)]
        report = analyze_credentials(credentials, now=NOW)
        expected = tuple(c.id for c in credentials if strength.score(c.value) < 60)
        assert report.weak_ids == expected

    def test_reuse_marks_every_member_of_a_group(self):
        a, b, c = make(1, "same"), make(2, "same"), make(3, "different")
        report = analyze_credentials([a, b, c], now=NOW)
        assert set(report.reused_ids) == {1, 2}

    def test_reuse_with_several_groups(self):
        credentials = [make(1, "x"), make(2, "y"), make(3, "x"), make(4, "y"), make(5, "x"), make(6, "z")]
        assert {c.id for c in find_reused(credentials)} == {1, 2, 3, 4, 5}

    def test_reuse_is_exact_match(self):
        report = analyze_credentials([make(1, "Secret"), make(2, "secret"), make(3, "secret ")], now=NOW)
        assert report.reused_ids == ()

    def test_stale_boundary(self):
        cutoff = months_before(NOW, 6)
        stale = make(1, "x", created_at=cutoff - timedelta(days=1))
        fresh = make(2, "y", created_at=months_before(NOW, 5))
        exactly = make(3, "z", created_at=cutoff)
        report = analyze_credentials([stale, fresh, exactly], now=NOW)
        assert report.stale_ids == (1,)


# ── Overall score ───────────────────────────────────────────────────


class TestOverallScore:

    def test_single_weak_credential(self):
        # weak 100% -> 100 - 40 = 60; average strength 10 -> (60 + 10) / 2
        assert analyze_credentials([make(1, "abc")], now=NOW).overall_score == 35

    def test_reused_strong_credentials(self):
        # reused 100% -> 60; average 80 -> 70
        report = analyze_credentials([make(1, "Password1!"), make(2, "Password1!")], now=NOW)
        assert report.overall_score == 70

    def test_perfect_vault(self):
        assert analyze_credentials([make(1, "CorrectHorse9!Battery")], now=NOW).overall_score == 100

    def test_stale_weight(self):
        old = NOW - timedelta(days=365)
        # stale 100% -> 100 - 20 = 80; average 100 -> 90
        assert analyze_credentials([make(1, "CorrectHorse9!Battery", old)], now=NOW).overall_score == 90

    def test_rounds_half_up(self):
        # weak 50% -> 80; average (30 + 100) / 2 = 65 -> 72.5
        report = analyze_credentials([make(1, "a1"), make(2, "CorrectHorse9!Battery")], now=NOW)
        assert report.overall_score == 73

    def test_idempotent(self):
        credentials = [make(1, "same"), make(2, "same"), make(3, "Tr0ub4dor&3", NOW - timedelta(days=400))]
        assert analyze_credentials(credentials, now=NOW) == analyze_credentials(credentials, now=NOW)

    @pytest.mark.parametrize("value, expected", [
        (100, "excellent"), (90, "excellent"), (89, "good"), (70, "good"), (69, "needs_attention"), (0, "needs_attention"),
    ])
    def test_rating(self, value, expected):
        assert rating(value) == expected


# ── Analyzer over the store ─────────────────────────────────────────


class TestSecurityAnalyzer:

    def test_empty_vault_end_to_end(self, analyzer):
        report = analyzer.analyze()
        assert report.overall_score == 100
        assert report.weak_ids == report.reused_ids == report.stale_ids == ()

    def test_email_and_bank_share_a_password(self, store, analyzer):
        email = store.add("Email", "Password1!")
        assert strength.label(strength.score(email.value)) in ("Strong", "Very Strong")
        bank = store.add("Bank", "Password1!")
        report = analyzer.analyze()
        assert set(report.reused_ids) == {email.id, bank.id}

    def test_credentials_go_stale_as_time_passes(self, store, analyzer, clock):
        credential = store.add("Email", "CorrectHorse9!Battery")
        clock.advance(days=150)
        assert analyzer.analyze().stale_ids == ()
        clock.advance(days=40)
        assert analyzer.analyze().stale_ids == (credential.id,)
        # ...and stops being stale once rotated
        store.update(credential.id, current_version=CredentialVersion("N3w!Passphrase-2026", clock.now()))
        assert analyzer.analyze().stale_ids == ()

    def test_analyze_twice_is_identical(self, store, analyzer):
        store.add("a", "same")
        store.add("b", "same")
        store.add("c", "Tr0ub4dor&3")
        assert analyzer.analyze() == analyzer.analyze()

    def test_analyze_requires_unlocked_vault(self, gate, analyzer):
        gate.lock()
        with pytest.raises(VaultLockedError):
            analyzer.analyze()

    def test_run_check_caches_last_result(self, store, analyzer, activity, clock):
        store.add("Email", "abc")
        assert analyzer.last_check() is None
        report = analyzer.run_check()
        checked_at, cached = analyzer.last_check()
        assert cached == report
        assert checked_at == clock.now()
        assert activity.entries("alice")[0].action == "security_check"

    def test_unreadable_cache_is_ignored(self, analyzer, kv):
        kv.set("alice_lastSecurityResult", {"checkedAt": "yesterday", "result": {}})
        assert analyzer.last_check() is None

    def test_naive_timestamps_from_callers_are_analyzed(self, store, analyzer):
        credential = store.add("Email", "CorrectHorse9!Battery")
        store.update(credential.id, current_version=CredentialVersion("N3w!Passphrase-2026", datetime(2026, 6, 1)))
        store.record_use(credential.id, CredentialVersion("N3w!Passphrase-2026", datetime(2025, 1, 1)))
        report = analyzer.analyze()
        assert report.stale_ids == (credential.id,)
