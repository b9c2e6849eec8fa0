"""Capability protocols for the two data sources and the write path.

The ledger and the index disagree by design: the ledger is authoritative
but only answers single-key reads; the index answers filtered queries but
may lag. Every service operation declares which capability it depends
on, so no code path picks a source by convenience.

The protocols are runtime_checkable so the service can verify
conformance of injected collaborators at construction time.
"""

from __future__ import annotations

from typing import Optional, Protocol, runtime_checkable

from rsk_attest.models.attestation import (
    AttestationFilters,
    AttestationRecord,
    RevocationReceipt,
    SchemaRecord,
    WriteReceipt,
)


@runtime_checkable
class LedgerWriter(Protocol):
    """Submits state-changing transactions and awaits confirmation."""

    async def register_schema(
        self,
        definition: str,
        resolver: Optional[str] = None,
        revocable: bool = True,
    ) -> WriteReceipt:
        ...

    async def attest(
        self,
        schema_uid: str,
        recipient: str,
        data: str,
        expiration_time: int = 0,
        revocable: bool = True,
        ref_uid: Optional[str] = None,
        value: int = 0,
    ) -> WriteReceipt:
        ...

    async def revoke(self, schema_uid: str, uid: str) -> RevocationReceipt:
        ...


@runtime_checkable
class PointReader(Protocol):
    """Strongly consistent single-key reads."""

    async def get_attestation(self, uid: str) -> Optional[AttestationRecord]:
        ...

    async def get_schema(self, uid: str) -> Optional[SchemaRecord]:
        ...


@runtime_checkable
class BulkQuerier(Protocol):
    """Eventually consistent filtered queries."""

    async def query_many(self, filters: AttestationFilters) -> list[AttestationRecord]:
        ...

    async def query_one(self, uid: str) -> Optional[AttestationRecord]:
        ...
