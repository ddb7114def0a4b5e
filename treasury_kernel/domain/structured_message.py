"""
Structured payment references.

A structured id is 12 ASCII digits: a 10-digit sequence followed by a
2-digit mod-97 check (``sequence % 97``, written as 97 when the remainder is
zero).  On a bank transfer it is usually printed as ``+++DDD/DDDD/DDDDD+++``.

Cleaning rules:
    - ``clean_message`` trims and drops ``/`` and ``+`` (the form stored on
      the operation).
    - ``extract_id_from_message`` keeps ASCII ``0-9`` only and preserves
      leading zeros.  Unicode digit look-alikes (circled, full-width,
      Arabic-Indic, superscript) are NOT normalized; they are dropped like any
      other non-digit.

Pure module, ZERO I/O.
"""

from __future__ import annotations

import re

from treasury_kernel.exceptions import InvalidStructuredMessageError

SEQUENCE_LENGTH = 10
CHECK_LENGTH = 2
STRUCTURED_ID_LENGTH = SEQUENCE_LENGTH + CHECK_LENGTH
MAX_SEQUENCE = 10**SEQUENCE_LENGTH - 1

_SEPARATORS = re.compile(r"[/+]")
# [0-9] rather than \d: \d matches every Unicode decimal digit.
_NON_ASCII_DIGITS = re.compile(r"[^0-9]")


def clean_message(message: str) -> str:
    """Trim and remove structured-reference separators."""
    return _SEPARATORS.sub("", message.strip())


def extract_id_from_message(message: str) -> str:
    """Keep only ASCII digits, in order.

    Raises:
        TypeError: If ``message`` is not a string.
    """
    if not isinstance(message, str):
        raise TypeError(f"message must be str, got {type(message).__name__}")
    return _NON_ASCII_DIGITS.sub("", message)


def structured_check_digits(sequence: int) -> str:
    remainder = sequence % 97
    return f"{remainder or 97:02d}"


def build_structured_id(sequence: int) -> str:
    """Build the 12-digit structured id for a sequence number.

    Raises:
        InvalidStructuredMessageError: If the sequence does not fit in 10 digits.
    """
    if not 1 <= sequence <= MAX_SEQUENCE:
        raise InvalidStructuredMessageError(
            str(sequence), f"sequence must be in [1, {MAX_SEQUENCE}]"
        )
    return f"{sequence:0{SEQUENCE_LENGTH}d}{structured_check_digits(sequence)}"


def is_valid_structured_id(digits: str) -> bool:
    if len(digits) != STRUCTURED_ID_LENGTH or _NON_ASCII_DIGITS.search(digits):
        return False
    sequence = int(digits[:SEQUENCE_LENGTH])
    return digits[SEQUENCE_LENGTH:] == structured_check_digits(sequence)


def parse_structured_id(digits: str) -> int:
    """Return the sequence number encoded in a structured id.

    Raises:
        InvalidStructuredMessageError: On wrong length, non-digits or a bad check.
    """
    if not is_valid_structured_id(digits):
        raise InvalidStructuredMessageError(digits, "not a valid structured id")
    return int(digits[:SEQUENCE_LENGTH])


def format_structured_message(structured_id: str) -> str:
    """Render ``000000000101`` as ``+++000/0000/00101+++``."""
    parse_structured_id(structured_id)
    return (
        f"+++{structured_id[:3]}/{structured_id[3:7]}/{structured_id[7:]}+++"
    )
