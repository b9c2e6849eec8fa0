"""Ledger access: transaction writes, point reads, timestamp normalisation."""

from rsk_attest.ledger.numeric import MAX_SAFE_INTEGER, normalize_timestamp, parse_timestamp
from rsk_attest.ledger.reader import LedgerPointReader
from rsk_attest.ledger.writer import LedgerWriteClient

__all__ = [
    "MAX_SAFE_INTEGER",
    "normalize_timestamp",
    "parse_timestamp",
    "LedgerPointReader",
    "LedgerWriteClient",
]
