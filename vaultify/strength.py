"""
Password strength heuristic.

This is the only implementation of strength scoring in the package; the
security analyzer, the CLI and any caller import it from here.
"""

import re
from dataclasses import asdict, dataclass
from typing import Any, Dict, List, Optional

from . import config

# \w and \d are ASCII-only so non-Latin letters count as symbols everywhere.
_LOWER = re.compile(r'[a-z]')
_UPPER = re.compile(r'[A-Z]')
_DIGIT = re.compile(r'\d', re.ASCII)
_SYMBOL = re.compile(r'[^A-Za-z0-9]')
_MIXED_CASE = re.compile(r'([a-z].*[A-Z])|([A-Z].*[a-z])')
_LETTER_DIGIT = re.compile(r'([a-zA-Z]).*(\d)|(\d).*([a-zA-Z])', re.ASCII)
_ALNUM_SYMBOL = re.compile(r'([a-zA-Z0-9]).*([^A-Za-z0-9])|([^A-Za-z0-9]).*([a-zA-Z0-9])')
_REPEATED_SYMBOL = re.compile(r'(.*[^\w\s])\1', re.ASCII)
_TRIPLE_RUN = re.compile(r'(.)\1{2,}')

POINTS = 10

LABELS = (
    (20, "Very Weak"),
    (40, "Weak"),
    (60, "Moderate"),
    (80, "Strong"),
)
TOP_LABEL = "Very Strong"

STRONG_MESSAGE = "Your password is strong! Remember to use unique passwords for different accounts."


def score(secret: str) -> int:
    """
    Score a secret from 0 to 100.

    Each satisfied rule adds 10 points: three length bonuses (more than 8,
    12 and 16 characters), one per character class present, and three
    "mixing" bonuses. A symbol-terminated run that immediately repeats costs
    10 points; only the first STRENGTH_REPEAT_CHECK_LENGTH characters are
    searched for it because the pattern backtracks quadratically.
    """
    total = 0

    length = len(secret)
    for threshold in (8, 12, 16):
        if length > threshold:
            total += POINTS

    for pattern in (_LOWER, _UPPER, _DIGIT, _SYMBOL,
                    _MIXED_CASE, _LETTER_DIGIT, _ALNUM_SYMBOL):
        if pattern.search(secret):
            total += POINTS

    if _REPEATED_SYMBOL.search(secret[:config.STRENGTH_REPEAT_CHECK_LENGTH]):
        total -= POINTS

    return min(100, max(0, total))


def label(strength: int) -> str:
    """Human readable label for a strength score."""
    for upper_bound, text in LABELS:
        if strength < upper_bound:
            return text
    return TOP_LABEL


def suggestions(secret: str) -> List[str]:
    """Improvement hints for a secret, in a fixed order."""
    hints = []

    if len(secret) < 12:
        hints.append("Make the password at least 12 characters long")
    if not _UPPER.search(secret):
        hints.append("Include at least one uppercase letter")
    if not _LOWER.search(secret):
        hints.append("Include at least one lowercase letter")
    if not _DIGIT.search(secret):
        hints.append("Include at least one number")
    if not _SYMBOL.search(secret):
        hints.append("Include at least one special character")
    if _TRIPLE_RUN.search(secret):
        hints.append("Avoid repeating characters more than twice in a row")

    if not hints:
        hints.append(STRONG_MESSAGE)
    return hints


@dataclass
class PasswordPolicy:
    """Minimum requirements a new password must meet."""
    min_length: int = config.POLICY_MIN_LENGTH
    require_uppercase: bool = config.POLICY_REQUIRE_UPPERCASE
    require_lowercase: bool = config.POLICY_REQUIRE_LOWERCASE
    require_numbers: bool = config.POLICY_REQUIRE_NUMBERS
    require_symbols: bool = config.POLICY_REQUIRE_SYMBOLS

    _FIELDS = {
        'minLength': 'min_length',
        'requireUppercase': 'require_uppercase',
        'requireLowercase': 'require_lowercase',
        'requireNumbers': 'require_numbers',
        'requireSymbols': 'require_symbols',
    }

    def to_dict(self) -> Dict[str, Any]:
        values = asdict(self)
        return {key: values[name] for key, name in self._FIELDS.items()}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'PasswordPolicy':
        """Build a policy from its stored form; missing keys keep their defaults."""
        policy = cls()
        for key, name in cls._FIELDS.items():
            if key in data:
                expected = int if name == 'min_length' else bool
                value = data[key]
                if type(value) is not expected:
                    raise ValueError(f"Password policy {key} must be {expected.__name__}")
                setattr(policy, name, value)
        if policy.min_length < 1:
            raise ValueError("Password policy minLength must be positive")
        return policy

    @classmethod
    def load(cls, kv) -> 'PasswordPolicy':
        stored = kv.get(config.KEY_PASSWORD_POLICY)
        return cls.from_dict(stored) if stored else cls()

    def save(self, kv) -> None:
        kv.set(config.KEY_PASSWORD_POLICY, self.to_dict())


def policy_violations(secret: str, policy: Optional[PasswordPolicy] = None) -> List[str]:
    """Requirements of ``policy`` (the default policy when omitted) that ``secret`` misses."""
    policy = policy or PasswordPolicy()
    problems = []
    if len(secret) < policy.min_length:
        problems.append(f"Password must be at least {policy.min_length} characters long")
    if policy.require_uppercase and not _UPPER.search(secret):
        problems.append("Password must contain an uppercase letter")
    if policy.require_lowercase and not _LOWER.search(secret):
        problems.append("Password must contain a lowercase letter")
    if policy.require_numbers and not _DIGIT.search(secret):
        problems.append("Password must contain a number")
    if policy.require_symbols and not _SYMBOL.search(secret):
        problems.append("Password must contain a special character")
    return problems
