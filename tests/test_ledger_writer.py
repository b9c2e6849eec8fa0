"""Tests for the ledger write client: submit, confirm, derive uid."""

from unittest.mock import AsyncMock, MagicMock

import pytest
from hexbytes import HexBytes
from web3.exceptions import MismatchedABI, TimeExhausted

from fakes import RECIPIENT, TEST_PRIVATE_KEY, TEST_SIGNER, make_config
from rsk_attest.errors import (
    ConfigurationError,
    ConfirmationFailure,
    ValidationFailure,
    WriteFailure,
)
from rsk_attest.ledger.writer import RECEIPT_TIMEOUT, LedgerWriteClient
from rsk_attest.models.attestation import UNKNOWN_UID, ZERO_UID

SCHEMA_UID = "0x" + "11" * 32
NEW_UID = b"\x22" * 32
TX_HASH = b"\xaa" * 32


class _Ready:
    """Awaitable property value (web3's ``await eth.gas_price``)."""

    def __init__(self, value) -> None:
        self.value = value

    def __await__(self):
        if False:
            yield
        return self.value


def _unsigned_tx(params: dict) -> dict:
    return {
        "to": "0xc300aeEaDd60999933468738c9F5D7e9C0671e1c",
        "value": params["value"],
        "gas": 250_000,
        "gasPrice": params["gasPrice"],
        "nonce": params["nonce"],
        "chainId": params["chainId"],
        "data": "0x1234",
    }


@pytest.fixture
def w3() -> MagicMock:
    w3 = MagicMock()
    w3.eth.get_transaction_count = AsyncMock(return_value=7)
    w3.eth.gas_price = _Ready(60_000_000)
    w3.eth.send_raw_transaction = AsyncMock(return_value=HexBytes(TX_HASH))
    w3.eth.wait_for_transaction_receipt = AsyncMock(
        return_value={"status": 1, "blockNumber": 42, "logs": []},
    )
    contract = w3.eth.contract.return_value
    for name in ("attest", "revoke", "register"):
        getattr(contract.functions, name).return_value.build_transaction = AsyncMock(
            side_effect=_unsigned_tx,
        )
    for name in ("Attested", "Registered"):
        getattr(contract.events, name).return_value.process_receipt.return_value = [
            {"args": {"uid": NEW_UID}},
        ]
    return w3


@pytest.fixture
def writer(w3) -> LedgerWriteClient:
    return LedgerWriteClient(make_config(), TEST_PRIVATE_KEY, web3=w3)


class TestConstruction:
    def test_signer_address(self, writer) -> None:
        assert writer.address == TEST_SIGNER

    def test_repr_hides_key(self, writer) -> None:
        assert TEST_PRIVATE_KEY[2:] not in repr(writer)

    def test_invalid_key_raises_configuration_error(self, w3) -> None:
        with pytest.raises(ConfigurationError) as exc_info:
            LedgerWriteClient(make_config(), "0xnot-a-key", web3=w3)
        assert "not-a-key" not in exc_info.value.message
        assert exc_info.value.__cause__ is None


class TestAttest:
    @pytest.mark.asyncio
    async def test_returns_uid_and_tx_hash(self, writer) -> None:
        receipt = await writer.attest(SCHEMA_UID, RECIPIENT, "0xdead")
        assert receipt.uid == "0x" + "22" * 32
        assert receipt.tx_hash == "0x" + "aa" * 32
        assert receipt.uid_known

    @pytest.mark.asyncio
    async def test_request_encoding(self, writer, w3) -> None:
        ref = "0x" + "33" * 32
        await writer.attest(
            SCHEMA_UID, RECIPIENT, "0xdead",
            expiration_time=99, revocable=False, ref_uid=ref, value=5,
        )
        contract = w3.eth.contract.return_value
        (request,), _ = contract.functions.attest.call_args
        schema, (recipient, expiration, revocable, ref_uid, data, value) = request
        assert schema == b"\x11" * 32
        assert recipient == RECIPIENT
        assert expiration == 99
        assert revocable is False
        assert ref_uid == b"\x33" * 32
        assert data == b"\xde\xad"
        assert value == 5

    @pytest.mark.asyncio
    async def test_absent_ref_uid_sends_zero(self, writer, w3) -> None:
        await writer.attest(SCHEMA_UID, RECIPIENT, "0x")
        contract = w3.eth.contract.return_value
        (request,), _ = contract.functions.attest.call_args
        assert request[1][3] == bytes.fromhex(ZERO_UID[2:])

    @pytest.mark.asyncio
    async def test_transaction_parameters(self, writer, w3) -> None:
        await writer.attest(SCHEMA_UID, RECIPIENT, "0x", value=3)
        build = w3.eth.contract.return_value.functions.attest.return_value.build_transaction
        (params,), _ = build.call_args
        assert params["from"] == TEST_SIGNER
        assert params["nonce"] == 7
        assert params["value"] == 3
        assert params["chainId"] == 31
        w3.eth.get_transaction_count.assert_awaited_once_with(TEST_SIGNER, "pending")
        w3.eth.send_raw_transaction.assert_awaited_once()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("field, args", [
        ("schema", ("0x1234", RECIPIENT, "0x")),
        ("recipient", (SCHEMA_UID, "0xnot-an-address", "0x")),
        ("data", (SCHEMA_UID, RECIPIENT, "dead")),
        ("data", (SCHEMA_UID, RECIPIENT, "0xabc")),
    ])
    async def test_invalid_input_rejected_before_network(self, writer, w3, field, args) -> None:
        with pytest.raises(ValidationFailure) as exc_info:
            await writer.attest(*args)
        assert field in exc_info.value.message
        w3.eth.send_raw_transaction.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_submission_rejected(self, writer, w3) -> None:
        w3.eth.send_raw_transaction.side_effect = ValueError("insufficient funds for gas")
        with pytest.raises(WriteFailure) as exc_info:
            await writer.attest(SCHEMA_UID, RECIPIENT, "0x")
        assert "insufficient funds" in exc_info.value.message
        w3.eth.wait_for_transaction_receipt.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_unreachable_rpc(self, writer, w3) -> None:
        w3.eth.get_transaction_count.side_effect = ConnectionError("connection refused")
        with pytest.raises(WriteFailure, match="connection refused"):
            await writer.attest(SCHEMA_UID, RECIPIENT, "0x")

    @pytest.mark.asyncio
    async def test_reverted_receipt(self, writer, w3) -> None:
        w3.eth.wait_for_transaction_receipt.return_value = {"status": 0, "blockNumber": 1}
        with pytest.raises(ConfirmationFailure) as exc_info:
            await writer.attest(SCHEMA_UID, RECIPIENT, "0x")
        assert exc_info.value.tx_hash == "0x" + "aa" * 32
        assert "reverted" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_confirmation_wait_failure(self, writer, w3) -> None:
        w3.eth.wait_for_transaction_receipt.side_effect = TimeExhausted("not mined")
        with pytest.raises(ConfirmationFailure) as exc_info:
            await writer.attest(SCHEMA_UID, RECIPIENT, "0x")
        assert exc_info.value.tx_hash == "0x" + "aa" * 32

    @pytest.mark.asyncio
    async def test_missing_event_yields_placeholder(self, writer, w3) -> None:
        contract = w3.eth.contract.return_value
        contract.events.Attested.return_value.process_receipt.return_value = []
        receipt = await writer.attest(SCHEMA_UID, RECIPIENT, "0x")
        assert receipt.uid == UNKNOWN_UID
        assert receipt.tx_hash == "0x" + "aa" * 32
        assert not receipt.uid_known


class TestRegisterSchema:
    @pytest.mark.asyncio
    async def test_register_uses_registered_event(self, writer, w3) -> None:
        receipt = await writer.register_schema("string name,uint256 age")
        contract = w3.eth.contract.return_value
        contract.events.Registered.return_value.process_receipt.assert_called_once()
        assert receipt.uid == "0x" + "22" * 32

    @pytest.mark.asyncio
    async def test_default_resolver_is_zero_address(self, writer, w3) -> None:
        await writer.register_schema("bool ok", revocable=False)
        contract = w3.eth.contract.return_value
        args, _ = contract.functions.register.call_args
        assert args == ("bool ok", "0x0000000000000000000000000000000000000000", False)

    @pytest.mark.asyncio
    async def test_invalid_resolver(self, writer, w3) -> None:
        with pytest.raises(ValidationFailure):
            await writer.register_schema("bool ok", resolver="0x12")
        w3.eth.send_raw_transaction.assert_not_awaited()


class TestRevoke:
    @pytest.mark.asyncio
    async def test_revoke_request(self, writer, w3) -> None:
        uid = "0x" + "44" * 32
        receipt = await writer.revoke(SCHEMA_UID, uid)
        contract = w3.eth.contract.return_value
        (request,), _ = contract.functions.revoke.call_args
        assert request == (b"\x11" * 32, (b"\x44" * 32, 0))
        assert receipt.tx_hash == "0x" + "aa" * 32

    @pytest.mark.asyncio
    async def test_revoke_reverted(self, writer, w3) -> None:
        w3.eth.wait_for_transaction_receipt.return_value = {"status": 0}
        with pytest.raises(ConfirmationFailure):
            await writer.revoke(SCHEMA_UID, "0x" + "44" * 32)


class TestArgumentBinding:
    @pytest.mark.asyncio
    async def test_abi_mismatch_is_validation_failure(self, writer, w3) -> None:
        contract = w3.eth.contract.return_value
        contract.functions.attest.side_effect = MismatchedABI("arguments are not valid")
        with pytest.raises(ValidationFailure, match="Invalid arguments for attest"):
            await writer.attest(SCHEMA_UID, RECIPIENT, "0x")
        w3.eth.get_transaction_count.assert_not_awaited()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("overrides", [
        {"value": 2**256},
        {"expiration_time": -1},
        {"expiration_time": 2**64},
    ])
    async def test_out_of_range_integers_rejected_by_abi(self, overrides) -> None:
        # Real contract bindings; the RPC endpoint is never contacted.
        writer = LedgerWriteClient(make_config(), TEST_PRIVATE_KEY)
        with pytest.raises(ValidationFailure, match="Invalid arguments for attest"):
            await writer.attest(SCHEMA_UID, RECIPIENT, "0x", **overrides)


class TestConfirmationTimeout:
    @pytest.mark.asyncio
    async def test_default_receipt_timeout(self, writer, w3) -> None:
        await writer.attest(SCHEMA_UID, RECIPIENT, "0x")
        _, kwargs = w3.eth.wait_for_transaction_receipt.call_args
        assert kwargs["timeout"] == RECEIPT_TIMEOUT == 300

    @pytest.mark.asyncio
    async def test_custom_receipt_timeout(self, w3) -> None:
        writer = LedgerWriteClient(make_config(), TEST_PRIVATE_KEY, web3=w3, receipt_timeout=5)
        await writer.revoke(SCHEMA_UID, "0x" + "44" * 32)
        _, kwargs = w3.eth.wait_for_transaction_receipt.call_args
        assert kwargs["timeout"] == 5
