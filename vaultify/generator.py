"""
Random password generation.
"""

import secrets
import string

from . import config


def generate_password(
    length: int = config.PASSWORD_GENERATOR_DEFAULT_LENGTH,
    uppercase: bool = True,
    lowercase: bool = True,
    digits: bool = True,
    symbols: bool = True,
    exclude_ambiguous: bool = False,
) -> str:
    """
    Generate a password from the selected character classes.

    Raises:
        ValueError: If no character class is selected or the length is
            outside the configured bounds
    """
    if not config.PASSWORD_GENERATOR_MIN_LENGTH <= length <= config.PASSWORD_GENERATOR_MAX_LENGTH:
        raise ValueError(
            f"Password length must be between {config.PASSWORD_GENERATOR_MIN_LENGTH} "
            f"and {config.PASSWORD_GENERATOR_MAX_LENGTH}"
        )

    # Build character set
    chars = ""
    if uppercase:
        chars += string.ascii_uppercase
    if lowercase:
        chars += string.ascii_lowercase
    if digits:
        chars += string.digits
    if symbols:
        chars += string.punctuation

    if not chars:
        raise ValueError("Select at least one character type")

    if exclude_ambiguous:
        ambiguous = config.PASSWORD_GENERATOR_AMBIGUOUS_CHARS
        chars = ''.join(c for c in chars if c not in ambiguous)

    return ''.join(secrets.choice(chars) for _ in range(length))
