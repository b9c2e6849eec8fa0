"""Authoritative point reads from the attestation contracts.

This is the strongly consistent read path. Verification and the
schema lookup that precedes a revocation both go through here, never
through the index.
"""

from __future__ import annotations

import logging
from typing import Optional

from web3 import AsyncWeb3

from rsk_attest.errors import LedgerReadFailure
from rsk_attest.ledger import codec
from rsk_attest.ledger.numeric import normalize_timestamp, optional_timestamp
from rsk_attest.logging_config import LogCategory, event
from rsk_attest.models.attestation import (
    AttestationRecord,
    SchemaRecord,
    is_zero_address,
    is_zero_uid,
)
from rsk_attest.models.network import NetworkConfig

log = logging.getLogger(__name__)


class LedgerPointReader:
    """Single-key reads of attestations and schemas."""

    def __init__(self, config: NetworkConfig, web3: Optional[AsyncWeb3] = None) -> None:
        self._config = config
        self._w3 = web3 if web3 is not None else codec.connect(config)
        self._eas = codec.eas_contract(self._w3, config)
        self._registry = codec.schema_registry_contract(self._w3, config)

    async def get_attestation(self, uid: str) -> Optional[AttestationRecord]:
        """Return the attestation, or None when the ledger has no such uid."""
        key = codec.to_bytes32(uid, "uid")
        log.debug("Reading attestation", extra=event(LogCategory.RPC, {"uid": uid}))
        try:
            raw = await self._eas.functions.getAttestation(key).call()
        except Exception as exc:
            raise LedgerReadFailure(f"Failed to read attestation {uid}: {exc}") from exc

        (
            raw_uid, schema, time, expiration, revocation,
            ref_uid, recipient, attester, revocable, data,
        ) = raw
        record_uid = codec.hex_of(raw_uid)
        if is_zero_uid(record_uid):
            return None

        ref = codec.hex_of(ref_uid)
        return AttestationRecord(
            uid=record_uid,
            schema_uid=codec.hex_of(schema),
            recipient=recipient,
            attester=attester,
            revocable=bool(revocable),
            ref_uid=None if is_zero_uid(ref) else ref,
            data=codec.hex_of(data),
            time=normalize_timestamp(time),
            expiration_time=optional_timestamp(expiration),
            revocation_time=optional_timestamp(revocation),
        )

    async def get_schema(self, uid: str) -> Optional[SchemaRecord]:
        """Return the registered schema, or None for an unknown uid."""
        key = codec.to_bytes32(uid, "uid")
        log.debug("Reading schema", extra=event(LogCategory.RPC, {"uid": uid}))
        try:
            raw = await self._registry.functions.getSchema(key).call()
        except Exception as exc:
            raise LedgerReadFailure(f"Failed to read schema {uid}: {exc}") from exc

        raw_uid, resolver, revocable, definition = raw
        record_uid = codec.hex_of(raw_uid)
        if is_zero_uid(record_uid):
            return None
        return SchemaRecord(
            uid=record_uid,
            definition=definition,
            resolver=None if is_zero_address(resolver) else resolver,
            revocable=bool(revocable),
        )
