"""Attestation and schema data models.

Records are owned by the ledger; these are read-only snapshots of it.
Ledger sentinels are translated exactly once, where the record is built
from wire data:

- the zero identifier means "no such record" and never becomes a record;
- the zero reference identifier becomes ``ref_uid=None``;
- the zero resolver address becomes ``resolver=None``;
- ``expirationTime == 0`` becomes ``expiration_time=None`` (never expires);
- ``revocationTime == 0`` becomes ``revocation_time=None`` (not revoked).

``to_dict`` re-emits the sentinels so the external JSON shape matches
what the ledger and index report.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional

ZERO_UID = "0x" + "0" * 64
ZERO_ADDRESS = "0x" + "0" * 40

# Returned in place of a derived identifier when the receipt does not
# expose one. The transaction itself still succeeded.
UNKNOWN_UID = "unknown"


def is_zero_uid(uid: Optional[str]) -> bool:
    """True for a missing identifier or the all-zero sentinel."""
    if not uid:
        return True
    return uid.lower() == ZERO_UID


def is_zero_address(address: Optional[str]) -> bool:
    if not address:
        return True
    return address.lower() == ZERO_ADDRESS


@dataclass(frozen=True)
class SchemaRecord:
    """A registered schema: ordered ``type name`` fields plus resolver."""
    uid: str
    definition: str
    resolver: Optional[str]
    revocable: bool

    def to_dict(self) -> dict[str, Any]:
        return {
            "uid": self.uid,
            "schema": self.definition,
            "resolver": self.resolver or ZERO_ADDRESS,
            "revocable": self.revocable,
        }


@dataclass(frozen=True)
class AttestationRecord:
    """A single attestation as stored on the ledger.

    ``time``, ``expiration_time`` and ``revocation_time`` have already
    been normalised into the safe-integer domain.
    """
    uid: str
    schema_uid: str
    recipient: str
    attester: str
    revocable: bool
    ref_uid: Optional[str]
    data: str
    time: int
    expiration_time: Optional[int] = None
    revocation_time: Optional[int] = None

    @property
    def is_revoked(self) -> bool:
        return self.revocation_time is not None

    def expired_at(self, now: int) -> bool:
        """Closed-deadline expiry check against ``now`` (unix seconds)."""
        return self.expiration_time is not None and self.expiration_time < now

    def to_dict(self) -> dict[str, Any]:
        return {
            "uid": self.uid,
            "schema": self.schema_uid,
            "recipient": self.recipient,
            "attester": self.attester,
            "revocable": self.revocable,
            "refUID": self.ref_uid or ZERO_UID,
            "data": self.data,
            "time": self.time,
            "expirationTime": self.expiration_time or 0,
            "revocationTime": self.revocation_time or 0,
        }


@dataclass(frozen=True)
class VerifiedAttestation:
    """An attestation plus validity state derived at evaluation time.

    Never stored: a new instance is computed on every verification.
    """
    record: AttestationRecord
    is_valid: bool
    is_revoked: bool
    is_expired: bool
    evaluated_at: int

    def to_dict(self) -> dict[str, Any]:
        data = self.record.to_dict()
        data.update(
            isValid=self.is_valid,
            isRevoked=self.is_revoked,
            isExpired=self.is_expired,
        )
        return data


@dataclass(frozen=True)
class WriteReceipt:
    """Outcome of a confirmed schema or attestation transaction.

    ``uid`` is UNKNOWN_UID when the identifier could not be derived
    from the receipt.
    """
    uid: str
    tx_hash: str

    @property
    def uid_known(self) -> bool:
        return self.uid != UNKNOWN_UID

    def to_dict(self) -> dict[str, str]:
        return {"uid": self.uid, "txHash": self.tx_hash}


@dataclass(frozen=True)
class RevocationReceipt:
    tx_hash: str

    def to_dict(self) -> dict[str, str]:
        return {"txHash": self.tx_hash}


@dataclass(frozen=True)
class AttestationFilters:
    """Conjunctive filters for an index query. ``None`` means unconstrained."""
    recipient: Optional[str] = None
    attester: Optional[str] = None
    schema_uid: Optional[str] = None
    limit: int = 10

    def present(self) -> dict[str, str]:
        """The supplied filters only, keyed by their wire names."""
        supplied = {
            "recipient": self.recipient,
            "attester": self.attester,
            "schema": self.schema_uid,
        }
        return {k: v for k, v in supplied.items() if v}
