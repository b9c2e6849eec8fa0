"""Tests for AttestationService: source routing, validity, failure propagation."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from fakes import (
    NOW,
    RECIPIENT,
    TEST_PRIVATE_KEY,
    TEST_SIGNER,
    FakeIndex,
    make_config,
    uid_for,
)
from rsk_attest.errors import (
    LedgerReadFailure,
    NotFound,
    QueryTimeout,
    ValidationFailure,
    WriteFailure,
)
from rsk_attest.ledger import codec
from rsk_attest.ledger.writer import LedgerWriteClient
from rsk_attest.models.attestation import AttestationRecord
from rsk_attest.service import AttestationService, evaluate_validity

SCHEMA = "0x" + "22" * 32


def _record(**overrides) -> AttestationRecord:
    fields = dict(
        uid=uid_for(1), schema_uid=SCHEMA, recipient=RECIPIENT, attester=TEST_SIGNER,
        revocable=True, ref_uid=None, data="0x", time=NOW,
    )
    fields.update(overrides)
    return AttestationRecord(**fields)


class TestEvaluateValidity:
    def test_fresh_record_is_valid(self) -> None:
        verified = evaluate_validity(_record(), NOW)
        assert verified.is_valid
        assert not verified.is_revoked
        assert not verified.is_expired

    @pytest.mark.parametrize("expiration", [None, NOW - 10, NOW + 10])
    def test_revoked_is_invalid_regardless_of_expiry(self, expiration) -> None:
        verified = evaluate_validity(
            _record(revocation_time=NOW - 1, expiration_time=expiration), NOW,
        )
        assert not verified.is_valid
        assert verified.is_revoked

    def test_expired_unrevoked(self) -> None:
        verified = evaluate_validity(_record(expiration_time=NOW - 1), NOW)
        assert not verified.is_valid
        assert verified.is_expired
        assert not verified.is_revoked

    def test_expiring_exactly_now_is_still_valid(self) -> None:
        assert evaluate_validity(_record(expiration_time=NOW), NOW).is_valid

    def test_to_dict_has_derived_flags(self) -> None:
        data = evaluate_validity(_record(), NOW).to_dict()
        assert data["isValid"] is True
        assert data["isRevoked"] is False
        assert data["isExpired"] is False
        assert data["uid"] == uid_for(1)


class TestConstruction:
    def test_rejects_collaborator_missing_capability(self, ledger, index) -> None:
        with pytest.raises(TypeError, match="querier"):
            AttestationService(make_config(), writer=ledger, reader=ledger, querier=ledger)

    def test_now_is_read_fresh(self, service, clock) -> None:
        assert service.now() == NOW
        clock[0] = NOW + 3.9
        assert service.now() == NOW + 3


class TestLifecycle:
    @pytest.fixture
    def w3(self, monkeypatch) -> MagicMock:
        w3 = MagicMock()
        w3.provider.disconnect = AsyncMock()
        monkeypatch.setattr(codec, "connect", lambda config: w3)
        return w3

    @pytest.mark.asyncio
    async def test_context_manager_closes_connection(self, w3) -> None:
        async with AttestationService.from_config(make_config(), TEST_PRIVATE_KEY) as service:
            assert isinstance(service, AttestationService)
            w3.provider.disconnect.assert_not_awaited()
        w3.provider.disconnect.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_closed_on_error(self, w3) -> None:
        with pytest.raises(RuntimeError):
            async with AttestationService.from_config(make_config(), TEST_PRIVATE_KEY):
                raise RuntimeError("boom")
        w3.provider.disconnect.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_aclose_is_idempotent(self, w3) -> None:
        service = AttestationService.from_config(make_config(), TEST_PRIVATE_KEY)
        await service.aclose()
        await service.aclose()
        w3.provider.disconnect.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_injected_collaborators_own_no_connection(self, service) -> None:
        async with service:
            pass
        await service.aclose()


class TestOutOfRangeArguments:
    @pytest.mark.asyncio
    async def test_abi_rejection_is_validation_failure(self, ledger, index) -> None:
        writer = LedgerWriteClient(make_config(), TEST_PRIVATE_KEY)
        service = AttestationService(make_config(), writer=writer, reader=ledger, querier=index)
        with pytest.raises(ValidationFailure, match="Invalid arguments for attest"):
            await service.issue_attestation(SCHEMA, RECIPIENT, "0x", value=2**256)


class TestVerify:
    @pytest.mark.asyncio
    async def test_absent_uid_returns_none(self, service) -> None:
        assert await service.verify_attestation(uid_for(999)) is None

    @pytest.mark.asyncio
    async def test_expiry_follows_clock(self, service, clock) -> None:
        issued = await service.issue_attestation(
            SCHEMA, RECIPIENT, "0x", expiration_time=NOW + 60,
        )
        assert (await service.verify_attestation(issued.uid)).is_valid
        clock[0] = NOW + 61
        verified = await service.verify_attestation(issued.uid)
        assert verified.is_expired
        assert not verified.is_valid

    @pytest.mark.asyncio
    async def test_reads_ledger_not_index(self, config, ledger, clock) -> None:
        lagging = FakeIndex(ledger, lag=1)
        service = AttestationService(
            config, writer=ledger, reader=ledger, querier=lagging,
            now_func=lambda: clock[0],
        )
        issued = await service.issue_attestation(SCHEMA, RECIPIENT, "0x")
        assert await service.list_attestations(recipient=RECIPIENT) == []
        assert (await service.verify_attestation(issued.uid)).is_valid

    @pytest.mark.asyncio
    async def test_read_failure_propagates(self, config, ledger, index) -> None:
        class BrokenReader:
            async def get_attestation(self, uid):
                raise LedgerReadFailure("rpc down")

            async def get_schema(self, uid):
                raise LedgerReadFailure("rpc down")

        service = AttestationService(config, writer=ledger, reader=BrokenReader(), querier=index)
        with pytest.raises(LedgerReadFailure):
            await service.verify_attestation(uid_for(1))


class TestRevoke:
    @pytest.mark.asyncio
    async def test_absent_record_raises_not_found_without_write(self, service, ledger) -> None:
        with pytest.raises(NotFound) as exc_info:
            await service.revoke_attestation(uid_for(404))
        assert exc_info.value.uid == uid_for(404)
        assert ledger.writes == []

    @pytest.mark.asyncio
    async def test_revoke_uses_record_schema(self, service, ledger) -> None:
        issued = await service.issue_attestation(SCHEMA, RECIPIENT, "0x")
        await service.revoke_attestation(issued.uid)
        assert ledger.writes[-1] == ("revoke", (SCHEMA, issued.uid))

    @pytest.mark.asyncio
    async def test_write_failure_propagates(self, service, ledger) -> None:
        issued = await service.issue_attestation(SCHEMA, RECIPIENT, "0x")
        ledger.fail_next_write = "nonce too low"
        with pytest.raises(WriteFailure, match="nonce too low"):
            await service.revoke_attestation(issued.uid)


class TestList:
    @pytest.mark.asyncio
    async def test_filters_passed_through(self, service, index) -> None:
        await service.list_attestations(recipient=RECIPIENT, limit=5)
        (filters,) = index.queries
        assert filters.present() == {"recipient": RECIPIENT}
        assert filters.limit == 5

    @pytest.mark.asyncio
    async def test_query_failure_not_reported_as_empty(self, config, ledger) -> None:
        class DownIndex:
            async def query_many(self, filters):
                raise QueryTimeout("GraphQL query timed out after 30s")

            async def query_one(self, uid):
                raise QueryTimeout("GraphQL query timed out after 30s")

        service = AttestationService(config, writer=ledger, reader=ledger, querier=DownIndex())
        with pytest.raises(QueryTimeout):
            await service.list_attestations(recipient=RECIPIENT)


class TestSchemas:
    @pytest.mark.asyncio
    async def test_create_and_read_schema(self, service) -> None:
        receipt = await service.create_schema("string name,uint256 age", revocable=False)
        schema = await service.get_schema(receipt.uid)
        assert schema.definition == "string name,uint256 age"
        assert schema.revocable is False

    @pytest.mark.asyncio
    async def test_unknown_schema(self, service) -> None:
        assert await service.get_schema(uid_for(77)) is None


class TestFromConfig:
    def test_builds_live_clients(self) -> None:
        service = AttestationService.from_config(make_config(), TEST_PRIVATE_KEY)
        assert service.config.chain_id == 31
