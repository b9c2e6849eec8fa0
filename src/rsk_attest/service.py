"""Attestation service: the public facade over the ledger and the index.

Each operation is served by exactly one declared capability:

| Operation          | Capability                 |
|--------------------|----------------------------|
| create_schema      | LedgerWriter               |
| issue_attestation  | LedgerWriter               |
| verify_attestation | PointReader                |
| get_schema         | PointReader                |
| list_attestations  | BulkQuerier                |
| revoke_attestation | PointReader, then LedgerWriter |

The service holds no attestation state and adds no retries. The first
failure from any step propagates unchanged to the caller. Validity is
recomputed on every verification against a freshly read clock.
"""

from __future__ import annotations

import logging
import time
from typing import Callable, Optional

from web3 import AsyncWeb3

from rsk_attest.errors import AttestationError, NotFound
from rsk_attest.index.client import IndexQueryClient
from rsk_attest.ledger import codec
from rsk_attest.ledger.reader import LedgerPointReader
from rsk_attest.ledger.writer import LedgerWriteClient
from rsk_attest.logging_config import LogCategory, event
from rsk_attest.models.attestation import (
    AttestationFilters,
    AttestationRecord,
    RevocationReceipt,
    SchemaRecord,
    VerifiedAttestation,
    WriteReceipt,
)
from rsk_attest.models.network import NetworkConfig
from rsk_attest.protocols import BulkQuerier, LedgerWriter, PointReader

log = logging.getLogger(__name__)


def evaluate_validity(record: AttestationRecord, now: int) -> VerifiedAttestation:
    """Derive validity state for ``record`` at unix time ``now``.

    valid = not revoked and not expired, where expired means a nonzero
    expiration strictly before ``now``.
    """
    is_revoked = record.is_revoked
    is_expired = record.expired_at(now)
    return VerifiedAttestation(
        record=record,
        is_valid=not is_revoked and not is_expired,
        is_revoked=is_revoked,
        is_expired=is_expired,
        evaluated_at=now,
    )


class AttestationService:
    """Issue, verify, list and revoke attestations on one network.

    Usage:
        async with AttestationService.from_config(config, private_key) as service:
            schema = await service.create_schema("string name,uint256 age")
            issued = await service.issue_attestation(schema.uid, recipient, payload)
            verified = await service.verify_attestation(issued.uid)
            await service.revoke_attestation(issued.uid)

    Writes share one signer: keep at most one write in flight per service.
    """

    def __init__(
        self,
        config: NetworkConfig,
        writer: LedgerWriter,
        reader: PointReader,
        querier: BulkQuerier,
        now_func: Callable[[], float] = time.time,
        connection: Optional[AsyncWeb3] = None,
    ) -> None:
        for name, value, protocol in (
            ("writer", writer, LedgerWriter),
            ("reader", reader, PointReader),
            ("querier", querier, BulkQuerier),
        ):
            if not isinstance(value, protocol):
                raise TypeError(
                    f"{name} must satisfy {protocol.__name__}, got {type(value).__name__}"
                )
        self._config = config
        self._writer = writer
        self._reader = reader
        self._querier = querier
        self._now_func = now_func
        # RPC connection owned by this service, released by aclose().
        self._connection = connection
        log.info(
            "AttestationService initialized",
            extra=event(LogCategory.AGENT, {
                "network": config.name.value,
                "rasContract": config.eas_contract,
            }),
        )

    @classmethod
    def from_config(cls, config: NetworkConfig, private_key: str) -> AttestationService:
        """Build the service with live ledger and index clients."""
        log.info(
            f"Connecting to {config.name.value} network",
            extra=event(LogCategory.RPC, {"rpcUrl": config.rpc_url}),
        )
        w3 = codec.connect(config)
        return cls(
            config,
            writer=LedgerWriteClient(config, private_key, web3=w3),
            reader=LedgerPointReader(config, web3=w3),
            querier=IndexQueryClient(config),
            connection=w3,
        )

    @property
    def config(self) -> NetworkConfig:
        return self._config

    def now(self) -> int:
        """Current unix time in whole seconds, read fresh on every call."""
        return int(self._now_func())

    async def aclose(self) -> None:
        """Release the RPC connection opened by from_config. Safe to call twice."""
        connection, self._connection = self._connection, None
        if connection is not None:
            await connection.provider.disconnect()
            log.info("RPC connection closed", extra=event(LogCategory.RPC))

    async def __aenter__(self) -> AttestationService:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def create_schema(
        self,
        definition: str,
        resolver: Optional[str] = None,
        revocable: bool = True,
    ) -> WriteReceipt:
        log.info("Creating schema", extra=event(LogCategory.AGENT, {"schema": definition}))
        try:
            receipt = await self._writer.register_schema(definition, resolver, revocable)
        except AttestationError as exc:
            self._failed("create schema", exc)
            raise
        log.info(
            "Schema created successfully",
            extra=event(LogCategory.AGENT, {
                "uid": receipt.uid, "txHash": receipt.tx_hash, "schema": definition,
            }),
        )
        return receipt

    async def issue_attestation(
        self,
        schema_uid: str,
        recipient: str,
        data: str,
        expiration_time: int = 0,
        revocable: bool = True,
        ref_uid: Optional[str] = None,
        value: int = 0,
    ) -> WriteReceipt:
        """Issue an attestation. ``data`` is the schema-encoded payload (hex)."""
        log.info(
            "Issuing attestation",
            extra=event(LogCategory.AGENT, {"recipient": recipient, "schema": schema_uid}),
        )
        try:
            receipt = await self._writer.attest(
                schema_uid,
                recipient,
                data,
                expiration_time=expiration_time,
                revocable=revocable,
                ref_uid=ref_uid,
                value=value,
            )
        except AttestationError as exc:
            self._failed("issue attestation", exc)
            raise
        log.info(
            "Attestation issued successfully",
            extra=event(LogCategory.AGENT, {"uid": receipt.uid, "txHash": receipt.tx_hash}),
        )
        return receipt

    async def revoke_attestation(self, uid: str) -> RevocationReceipt:
        """Revoke by uid: read the record for its schema, then revoke.

        The read and the write are two independent round trips, not an
        atomic unit. An absent record raises NotFound and nothing is sent.
        """
        log.info("Revoking attestation", extra=event(LogCategory.AGENT, {"uid": uid}))
        try:
            record = await self._reader.get_attestation(uid)
            if record is None:
                raise NotFound(f"Attestation {uid} not found", uid=uid)
            log.info(
                "Retrieved attestation for revocation",
                extra=event(LogCategory.AGENT, {"uid": uid, "schema": record.schema_uid}),
            )
            receipt = await self._writer.revoke(record.schema_uid, uid)
        except AttestationError as exc:
            self._failed("revoke attestation", exc)
            raise
        log.info(
            "Attestation revoked successfully",
            extra=event(LogCategory.AGENT, {"uid": uid, "txHash": receipt.tx_hash}),
        )
        return receipt

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def verify_attestation(self, uid: str) -> Optional[VerifiedAttestation]:
        """Read ``uid`` from the ledger and derive its validity.

        Returns None for an identifier the ledger does not know.
        """
        log.info("Verifying attestation", extra=event(LogCategory.AGENT, {"uid": uid}))
        try:
            record = await self._reader.get_attestation(uid)
        except AttestationError as exc:
            self._failed("verify attestation", exc)
            raise
        if record is None:
            log.info("Attestation not found", extra=event(LogCategory.AGENT, {"uid": uid}))
            return None

        verified = evaluate_validity(record, self.now())
        log.info(
            "Attestation verified",
            extra=event(LogCategory.AGENT, {
                "uid": record.uid,
                "attester": record.attester,
                "isRevoked": verified.is_revoked,
            }),
        )
        return verified

    async def get_schema(self, uid: str) -> Optional[SchemaRecord]:
        try:
            return await self._reader.get_schema(uid)
        except AttestationError as exc:
            self._failed("get schema", exc)
            raise

    async def list_attestations(
        self,
        recipient: Optional[str] = None,
        attester: Optional[str] = None,
        schema_uid: Optional[str] = None,
        limit: int = 10,
    ) -> list[AttestationRecord]:
        """Indexed attestations matching every supplied filter, newest first."""
        filters = AttestationFilters(
            recipient=recipient, attester=attester, schema_uid=schema_uid, limit=limit,
        )
        log.info(
            "Listing attestations",
            extra=event(LogCategory.AGENT, {
                "recipient": recipient, "attester": attester, "schema": schema_uid,
            }),
        )
        try:
            records = await self._querier.query_many(filters)
        except AttestationError as exc:
            self._failed("list attestations", exc)
            raise
        log.info(
            "Attestations retrieved via GraphQL",
            extra=event(LogCategory.AGENT, {
                "count": len(records), "network": self._config.name.value,
            }),
        )
        return records

    def _failed(self, operation: str, exc: AttestationError) -> None:
        log.error(
            f"Failed to {operation}",
            extra=event(LogCategory.ERROR, {"code": exc.code, "error": exc.message}),
        )
