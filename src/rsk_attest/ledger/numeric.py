"""Timestamp normalisation for ledger integers.

Ledger timestamps are unsigned 256-bit values. Python integers hold them
exactly, but the records leave this package as JSON and are consumed by
clients whose numbers are IEEE doubles, so every timestamp is clamped
into the safe-integer domain before it crosses the ledger boundary.
Out-of-range values saturate; they never wrap.
"""

from __future__ import annotations

import re
from typing import Optional

from rsk_attest.errors import DataIntegrityFailure

MAX_SAFE_INTEGER = 2**53 - 1

_DECIMAL = re.compile(r"[0-9]+")


def normalize_timestamp(value: int) -> int:
    """Return ``value`` unchanged if it is safe, else MAX_SAFE_INTEGER."""
    if value <= MAX_SAFE_INTEGER:
        return value
    return MAX_SAFE_INTEGER


def optional_timestamp(value: int) -> Optional[int]:
    """Normalise a timestamp whose zero value means "absent"."""
    if value == 0:
        return None
    return normalize_timestamp(value)


def parse_timestamp(raw: object, field_name: str, uid: str) -> int:
    """Parse a wire timestamp (decimal string or int) and normalise it.

    Raises DataIntegrityFailure for anything that is not a non-negative
    base-10 integer. A corrupt value is never coerced to zero.
    """
    if isinstance(raw, bool):
        raise DataIntegrityFailure(
            f"Invalid time value in attestation data for UID {uid}: "
            f"{field_name}={raw!r}"
        )
    if isinstance(raw, int):
        value = raw
    elif isinstance(raw, str) and _DECIMAL.fullmatch(raw.strip()):
        value = int(raw.strip(), 10)
    else:
        raise DataIntegrityFailure(
            f"Invalid time value in attestation data for UID {uid}: "
            f"{field_name}={raw!r}"
        )
    if value < 0:
        raise DataIntegrityFailure(
            f"Negative time value in attestation data for UID {uid}: "
            f"{field_name}={value}"
        )
    return normalize_timestamp(value)
