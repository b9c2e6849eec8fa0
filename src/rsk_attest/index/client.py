"""HTTP client for the attestation index (GraphQL).

The index is an eventually consistent mirror of ledger history. It
answers filtered, ordered, paginated queries that the point-read path
cannot, but it is never used where strong consistency is required, and
there is no fallback to a ledger scan when it is unavailable.

Every request is bounded by a single overall deadline
(INDEX_DEADLINE_SECONDS). When the deadline elapses the in-flight
request is cancelled and QueryTimeout is raised.

Failure classification:
- timeout (transport or overall deadline) -> QueryTimeout
- other transport errors, non-2xx status, non-JSON body, GraphQL
  ``errors`` entries, missing ``data`` container -> QueryFailure
- a record whose timestamps do not parse -> DataIntegrityFailure
None of these is ever reported as "no results".
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Optional

import httpx

from rsk_attest.errors import DataIntegrityFailure, QueryFailure, QueryTimeout
from rsk_attest.index import queries
from rsk_attest.ledger.numeric import parse_timestamp
from rsk_attest.logging_config import LogCategory, event
from rsk_attest.models.attestation import (
    AttestationFilters,
    AttestationRecord,
    is_zero_uid,
)
from rsk_attest.models.network import NetworkConfig

log = logging.getLogger(__name__)

INDEX_DEADLINE_SECONDS = 30.0


class IndexQueryClient:
    """Bulk and single-record queries against the index service.

    Args:
        config: Network whose ``index_url`` is queried.
        deadline: Overall per-request deadline in seconds.
        transport: Optional httpx transport (used to stub the service).
    """

    def __init__(
        self,
        config: NetworkConfig,
        deadline: float = INDEX_DEADLINE_SECONDS,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._config = config
        self._deadline = deadline
        self._transport = transport

    @property
    def endpoint(self) -> str:
        return self._config.index_url

    async def query_many(self, filters: AttestationFilters) -> list[AttestationRecord]:
        """Attestations matching all supplied filters, newest first."""
        log.info(
            "Querying GraphQL for attestations",
            extra=event(LogCategory.RPC, {
                "endpoint": self.endpoint,
                "filters": filters.present(),
                "limit": filters.limit,
            }),
        )
        body = await self._post(
            queries.build_many_query(filters),
            queries.build_many_variables(filters),
        )
        data = body.get("data")
        if not isinstance(data, dict) or not isinstance(data.get("attestations"), list):
            raise QueryFailure("No data returned from GraphQL query")

        parsed = [parse_attestation(item) for item in data["attestations"]]
        records = [record for record in parsed if not is_zero_uid(record.uid)]
        log.info(
            "GraphQL query completed",
            extra=event(LogCategory.AGENT, {
                "resultCount": len(records),
                "endpoint": self.endpoint,
            }),
        )
        return records

    async def query_one(self, uid: str) -> Optional[AttestationRecord]:
        """A single attestation by uid, or None if the index has none."""
        log.info(
            "Querying single attestation via GraphQL",
            extra=event(LogCategory.RPC, {"uid": uid, "endpoint": self.endpoint}),
        )
        body = await self._post(queries.SINGLE_QUERY, {"uid": uid})
        data = body.get("data")
        if not isinstance(data, dict):
            raise QueryFailure("No data returned from GraphQL query")
        item = data.get("attestation")
        if item is None:
            return None
        record = parse_attestation(item)
        if is_zero_uid(record.uid):
            return None
        return record

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    async def _post(self, query: str, variables: dict[str, Any]) -> dict[str, Any]:
        try:
            response = await asyncio.wait_for(
                self._send(query, variables), timeout=self._deadline,
            )
        except (asyncio.TimeoutError, httpx.TimeoutException) as exc:
            log.error(
                "GraphQL query timed out",
                extra=event(LogCategory.ERROR, {
                    "endpoint": self.endpoint,
                    "deadline": self._deadline,
                }),
            )
            raise QueryTimeout(
                f"GraphQL query timed out after {self._deadline:g}s"
            ) from exc
        except httpx.RequestError as exc:
            log.error(
                "GraphQL request failed",
                extra=event(LogCategory.ERROR, {"error": str(exc)}),
            )
            raise QueryFailure(f"GraphQL request failed: {exc}") from exc

        if not response.is_success:
            raise QueryFailure(f"HTTP {response.status_code}: {response.reason_phrase}")

        try:
            body = response.json()
        except ValueError as exc:
            raise QueryFailure(f"Malformed GraphQL response: {exc}") from exc
        if not isinstance(body, dict):
            raise QueryFailure("Malformed GraphQL response: expected a JSON object")

        errors = body.get("errors")
        if errors:
            messages = ", ".join(_error_message(e) for e in errors)
            raise QueryFailure(f"GraphQL errors: {messages}")
        return body

    async def _send(self, query: str, variables: dict[str, Any]) -> httpx.Response:
        async with httpx.AsyncClient(
            timeout=self._deadline,
            transport=self._transport,
        ) as client:
            return await client.post(
                self.endpoint,
                json={"query": query, "variables": variables},
                headers={"Content-Type": "application/json"},
            )


def _error_message(entry: Any) -> str:
    if isinstance(entry, dict):
        return str(entry.get("message", entry))
    return str(entry)


def parse_attestation(item: Any) -> AttestationRecord:
    """Convert one index record into an AttestationRecord.

    Timestamps arrive as decimal strings. A value that does not parse
    aborts the call with DataIntegrityFailure.
    """
    if not isinstance(item, dict):
        raise DataIntegrityFailure(f"Attestation entry is not an object: {item!r}")
    try:
        uid = item["id"]
        schema_uid = item["schema"]["id"]
        raw_times = (
            item["timeCreated"], item["expirationTime"], item["revocationTime"],
        )
        recipient = item["recipient"]
        attester = item["attester"]
    except (KeyError, TypeError) as exc:
        raise DataIntegrityFailure(
            f"Attestation entry missing field {exc}: {item!r}"
        ) from exc

    created = parse_timestamp(raw_times[0], "timeCreated", uid)
    expiration = parse_timestamp(raw_times[1], "expirationTime", uid)
    revocation = parse_timestamp(raw_times[2], "revocationTime", uid)
    ref_uid = item.get("refUID")

    return AttestationRecord(
        uid=uid,
        schema_uid=schema_uid,
        recipient=recipient,
        attester=attester,
        revocable=bool(item.get("revocable", False)),
        ref_uid=None if is_zero_uid(ref_uid) else ref_uid,
        data=item.get("data") or "0x",
        time=created,
        expiration_time=expiration or None,
        revocation_time=revocation or None,
    )
