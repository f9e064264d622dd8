"""
Random code generation and the named alphabets codes are drawn from.

Codes are drawn with the ``secrets`` module. Nothing here is ever seeded
from user input, timestamps or counters.
"""

from __future__ import annotations

import secrets
import string

DIGITS = string.digits
UPPERCASE_ALPHANUMERIC = string.ascii_uppercase + string.digits
ALPHANUMERIC = string.ascii_lowercase + string.ascii_uppercase + string.digits
URL_SAFE = ALPHANUMERIC + "-_"

CHAR_SETS = {
    "digits": DIGITS,
    "upper_alnum": UPPERCASE_ALPHANUMERIC,
    "alnum": ALPHANUMERIC,
    "url_safe": URL_SAFE,
}


def resolve_char_set(char_set: str) -> str:
    """Return the alphabet for a named char set, or *char_set* itself.

    Named sets (``digits``, ``upper_alnum``, ``alnum``, ``url_safe``) are
    looked up first; any other string is used literally as the alphabet.
    """
    return CHAR_SETS.get(char_set, char_set)


def generate_code(alphabet: str, length: int) -> str:
    """Generate a code uniform over ``alphabet ** length``.

    Args:
        alphabet: Characters to draw from. Duplicates skew the distribution,
            so callers pass de-duplicated alphabets.
        length: Number of characters.

    Returns:
        Random string of the requested length.
    """
    return "".join(secrets.choice(alphabet) for _ in range(length))
