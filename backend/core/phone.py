"""Phone-number normalisation.

Identities are keyed by phone, so every lookup, insert and SMS call must
see the same canonical form: ``+1`` followed by 10 digits.
"""

from __future__ import annotations

import re
from typing import Final

#: Only North American numbers are supported.
COUNTRY_CODE: Final[str] = "1"

_NATIONAL_DIGITS: Final[int] = 10

_NON_DIGITS = re.compile(r"\D")


def normalize_phone(raw: str) -> str:
    """Return ``raw`` in canonical ``+1XXXXXXXXXX`` form.

    Formatting characters are ignored, and a leading country code is
    accepted with or without ``+``::

        normalize_phone("(555) 123-4567")  → "+15551234567"
        normalize_phone("+1 555 123 4567") → "+15551234567"

    Raises:
        ValueError: If the number does not contain exactly 10 national digits.
    """
    digits = _NON_DIGITS.sub("", raw or "")
    if len(digits) == _NATIONAL_DIGITS + 1 and digits.startswith(COUNTRY_CODE):
        digits = digits[1:]
    if len(digits) != _NATIONAL_DIGITS:
        raise ValueError("Please enter a valid 10-digit US phone number")
    return f"+{COUNTRY_CODE}{digits}"
