"""Tests for the password strength heuristic."""

import pytest

from vaultify import config, strength
from vaultify.kvstore import MemoryStore


class TestScore:

    @pytest.mark.parametrize("secret, expected", [
        ("", 0),
        ("abc", 10),
        ("password", 10),             # exactly 8 chars earns no length bonus
        ("a1", 30),                   # lower, digit, letter/digit mixing
        ("Password1!", 80),
        ("Tr0ub4dor&3", 80),
        ("correcthorsebatterystaple", 40),
        ("CorrectHorse9!Battery", 100),
    ])
    def test_known_scores(self, secret, expected):
        assert strength.score(secret) == expected

    def test_length_bonuses_stack(self):
        assert strength.score("a" * 9) == 20
        assert strength.score("a" * 13) == 30
        assert strength.score("a" * 17) == 40

    def test_repeated_symbol_penalty(self):
        # lower + symbol + alnum/symbol mixing = 30, minus 10 for "!!"
        assert strength.score("aa!!") == 20
        assert strength.score("a!a!") == 30 - 10
        assert strength.score("a!b?") == 30

    def test_never_negative(self):
        assert strength.score("!!") == 0

    def test_non_ascii_letters_count_as_symbols(self):
        # "é" is not in [a-z] and is treated as a special character
        assert strength.score("é") == 10

    @pytest.mark.parametrize("secret", [
        "", "a", "!!!!!!!!", "Password1!", "CorrectHorse9!Battery" * 5, "密码密码密码", " \t\n",
    ])
    def test_bounded(self, secret):
        assert 0 <= strength.score(secret) <= 100

    def test_deterministic(self):
        secret = "Tr0ub4dor&3"
        assert len({strength.score(secret) for _ in range(20)}) == 1


class TestLabel:

    @pytest.mark.parametrize("value, expected", [
        (0, "Very Weak"),
        (19, "Very Weak"),
        (20, "Weak"),
        (39, "Weak"),
        (40, "Moderate"),
        (59, "Moderate"),
        (60, "Strong"),
        (79, "Strong"),
        (80, "Very Strong"),
        (100, "Very Strong"),
    ])
    def test_thresholds(self, value, expected):
        assert strength.label(value) == expected


class TestSuggestions:

    def test_short_password_only_needs_length(self):
        assert strength.suggestions("Password1!") == ["Make the password at least 12 characters long"]

    def test_order_is_fixed(self):
        assert strength.suggestions("aaa") == [
            "Make the password at least 12 characters long",
            "Include at least one uppercase letter",
            "Include at least one number",
            "Include at least one special character",
            "Avoid repeating characters more than twice in a row",
        ]

    def test_all_rules_fire_for_empty(self):
        hints = strength.suggestions("")
        assert len(hints) == 5
        assert hints[2] == "Include at least one lowercase letter"

    def test_two_repeats_are_allowed(self):
        hints = strength.suggestions("CorrectHorse9!!Battery")
        assert hints == [strength.STRONG_MESSAGE]

    def test_strong_password_gets_affirmation(self):
        assert strength.suggestions("CorrectHorse9!Battery") == [strength.STRONG_MESSAGE]


class TestLongInputs:

    def test_repeat_penalty_only_checks_leading_characters(self):
        tail = "x!x!"  # "x!" immediately repeated
        padding = "a" * config.STRENGTH_REPEAT_CHECK_LENGTH
        assert strength.score(tail + padding) == strength.score(padding + tail) - 10

    def test_long_single_symbol_input_is_scored(self):
        assert strength.score("a" * 2_000 + "!") == 60


class TestPasswordPolicy:

    def test_default_policy_accepts_strong_password(self):
        assert strength.policy_violations("CorrectHorse9!Battery") == []

    def test_default_policy_reports_every_gap(self):
        assert strength.policy_violations("abc") == [
            "Password must be at least 12 characters long",
            "Password must contain an uppercase letter",
            "Password must contain a number",
            "Password must contain a special character",
        ]

    def test_relaxed_policy(self):
        policy = strength.PasswordPolicy(min_length=6, require_symbols=False, require_uppercase=False)
        assert strength.policy_violations("abc123", policy) == []

    def test_round_trip_through_key_value_store(self):
        kv = MemoryStore()
        assert strength.PasswordPolicy.load(kv) == strength.PasswordPolicy()
        strength.PasswordPolicy(min_length=20, require_numbers=False).save(kv)
        assert kv.get("passwordPolicy") == {
            "minLength": 20,
            "requireUppercase": True,
            "requireLowercase": True,
            "requireNumbers": False,
            "requireSymbols": True,
        }
        assert strength.PasswordPolicy.load(kv).min_length == 20

    def test_partial_stored_policy_keeps_defaults(self):
        policy = strength.PasswordPolicy.from_dict({"requireSymbols": False})
        assert policy.min_length == config.POLICY_MIN_LENGTH
        assert policy.require_symbols is False

    @pytest.mark.parametrize("stored", [{"minLength": "12"}, {"minLength": 0}, {"requireNumbers": 1}])
    def test_invalid_stored_policy(self, stored):
        with pytest.raises(ValueError):
            strength.PasswordPolicy.from_dict(stored)
