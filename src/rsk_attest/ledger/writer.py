"""Ledger write client: schema registration, attestation and revocation.

Every write is two-phase:

1. Submit: build the transaction, sign it locally, send it. This is fast
   and fails fast (malformed input, insufficient funds, unreachable RPC);
   such failures raise WriteFailure with the underlying error text.
2. Confirm: wait for the receipt. A failed wait or a reverted receipt
   raises ConfirmationFailure, which carries the transaction hash because
   the transaction may already have cost fees.

Submit happens-before confirm happens-before identifier derivation, all
within one call. Nothing is retried.

Concurrency: one client holds one signer, and nonces are taken from the
signer's pending transaction count at submit time. Two writes in flight
from the same client race on that nonce. Callers must keep at most one
write in flight per signer.

Confirmation waits up to ``receipt_timeout`` seconds (RECEIPT_TIMEOUT,
300 s, by default) for the receipt; an expired wait raises
ConfirmationFailure. Callers that need a tighter bound pass a smaller
timeout or wrap the call in ``asyncio.wait_for``.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from eth_account import Account
from eth_account.signers.local import LocalAccount
from hexbytes import HexBytes
from web3 import AsyncWeb3
from web3.contract import AsyncContract
from web3.exceptions import Web3Exception
from web3.logs import DISCARD

from rsk_attest.errors import (
    ConfigurationError,
    ConfirmationFailure,
    ValidationFailure,
    WriteFailure,
)
from rsk_attest.ledger import codec
from rsk_attest.logging_config import LogCategory, event
from rsk_attest.models.attestation import (
    UNKNOWN_UID,
    ZERO_ADDRESS,
    ZERO_UID,
    RevocationReceipt,
    WriteReceipt,
)
from rsk_attest.models.network import NetworkConfig

log = logging.getLogger(__name__)

# Seconds to wait for a receipt before giving up on confirmation.
RECEIPT_TIMEOUT = 300


class LedgerWriteClient:
    """Submits and confirms transactions against the attestation contracts.

    Usage:
        writer = LedgerWriteClient(config, private_key)
        receipt = await writer.register_schema("string name,uint256 age")
        receipt = await writer.attest(receipt.uid, recipient, "0x...")
        await writer.revoke(schema_uid, receipt.uid)
    """

    def __init__(
        self,
        config: NetworkConfig,
        private_key: str,
        web3: Optional[AsyncWeb3] = None,
        receipt_timeout: float = RECEIPT_TIMEOUT,
    ) -> None:
        self._config = config
        self._receipt_timeout = receipt_timeout
        self._w3 = web3 if web3 is not None else codec.connect(config)
        try:
            self._account: LocalAccount = Account.from_key(private_key)
        except Exception:
            # The key never reaches the error text or the exception chain.
            raise ConfigurationError("Signing key is not a valid private key") from None
        self._eas = codec.eas_contract(self._w3, config)
        self._registry = codec.schema_registry_contract(self._w3, config)

    @property
    def address(self) -> str:
        """Address of the signer; the attester of every attestation issued."""
        return self._account.address

    def __repr__(self) -> str:
        return f"LedgerWriteClient(network={self._config.name.value!r}, signer={self.address!r})"

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    async def register_schema(
        self,
        definition: str,
        resolver: Optional[str] = None,
        revocable: bool = True,
    ) -> WriteReceipt:
        """Register a schema and return its derived uid and the tx hash."""
        resolver_address = codec.to_address(resolver or ZERO_ADDRESS, "resolver")
        function = self._bind(
            self._registry, "register", definition, resolver_address, revocable,
        )
        tx_hash = await self._submit(function, "Schema transaction submitted")
        receipt = await self._confirm(tx_hash)
        uid = self._derive_uid(self._registry.events.Registered(), receipt)
        return WriteReceipt(uid=uid, tx_hash=tx_hash)

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
        """Create an attestation with an already-encoded payload."""
        request = (
            codec.to_bytes32(schema_uid, "schema"),
            (
                codec.to_address(recipient, "recipient"),
                expiration_time,
                revocable,
                codec.to_bytes32(ref_uid or ZERO_UID, "refUID"),
                codec.to_payload(data),
                value,
            ),
        )
        function = self._bind(self._eas, "attest", request)
        tx_hash = await self._submit(function, "Transaction submitted", value=value)
        receipt = await self._confirm(tx_hash)
        uid = self._derive_uid(self._eas.events.Attested(), receipt)
        return WriteReceipt(uid=uid, tx_hash=tx_hash)

    async def revoke(self, schema_uid: str, uid: str) -> RevocationReceipt:
        """Revoke ``uid``; revocation authority is scoped to its schema."""
        request = (
            codec.to_bytes32(schema_uid, "schema"),
            (codec.to_bytes32(uid, "uid"), 0),
        )
        function = self._bind(self._eas, "revoke", request)
        tx_hash = await self._submit(function, "Revocation transaction submitted")
        await self._confirm(tx_hash)
        return RevocationReceipt(tx_hash=tx_hash)

    # ------------------------------------------------------------------
    # Transaction lifecycle
    # ------------------------------------------------------------------

    def _bind(self, contract: AsyncContract, name: str, *args: Any) -> Any:
        """Bind arguments to a contract function.

        web3 checks the arguments against the ABI here (integer ranges,
        tuple shapes), so a mismatch is a caller input problem and is
        raised as ValidationFailure before any RPC.
        """
        try:
            return getattr(contract.functions, name)(*args)
        except (Web3Exception, TypeError, ValueError) as exc:
            log.error(
                "Transaction arguments rejected",
                extra=event(LogCategory.ERROR, {"function": name, "error": str(exc)}),
            )
            raise ValidationFailure(f"Invalid arguments for {name}: {exc}") from exc

    async def _submit(self, function: Any, message: str, value: int = 0) -> str:
        """Build, sign and send; any rejection becomes WriteFailure."""
        try:
            nonce = await self._w3.eth.get_transaction_count(self.address, "pending")
            gas_price = await self._w3.eth.gas_price
            tx = await function.build_transaction({
                "from": self.address,
                "nonce": nonce,
                "value": value,
                "gasPrice": gas_price,
                "chainId": self._config.chain_id,
            })
            signed = self._account.sign_transaction(tx)
            sent = await self._w3.eth.send_raw_transaction(signed.raw_transaction)
        except Exception as exc:
            log.error(
                "Transaction submission failed",
                extra=event(LogCategory.ERROR, {"error": str(exc)}),
            )
            raise WriteFailure(str(exc)) from exc

        tx_hash = codec.hex_of(HexBytes(sent))
        log.info(message, extra=event(LogCategory.RPC, {"txHash": tx_hash}))
        return tx_hash

    async def _confirm(self, tx_hash: str) -> Any:
        try:
            receipt = await self._w3.eth.wait_for_transaction_receipt(
                HexBytes(tx_hash), timeout=self._receipt_timeout,
            )
        except Exception as exc:
            log.error(
                "Transaction confirmation failed",
                extra=event(LogCategory.ERROR, {"txHash": tx_hash, "error": str(exc)}),
            )
            raise ConfirmationFailure(
                f"Confirmation of {tx_hash} failed: {exc}", tx_hash=tx_hash,
            ) from exc

        if receipt["status"] == 0:
            log.error(
                "Transaction reverted",
                extra=event(LogCategory.ERROR, {"txHash": tx_hash}),
            )
            raise ConfirmationFailure(f"Transaction {tx_hash} reverted", tx_hash=tx_hash)

        log.info(
            "Transaction confirmed",
            extra=event(LogCategory.RPC, {
                "txHash": tx_hash,
                "blockNumber": receipt.get("blockNumber"),
            }),
        )
        return receipt

    def _derive_uid(self, contract_event: Any, receipt: Any) -> str:
        """Read the new uid from the receipt's event log.

        Returns UNKNOWN_UID instead of raising: by this point the write has
        been confirmed and the caller must still learn its tx hash.
        """
        try:
            decoded = contract_event.process_receipt(receipt, errors=DISCARD)
            uid = decoded[0]["args"]["uid"]
        except (IndexError, KeyError, TypeError, ValueError, Web3Exception) as exc:
            log.warning(
                "Could not derive identifier from receipt",
                extra=event(LogCategory.RPC, {"error": str(exc)}),
            )
            return UNKNOWN_UID
        return codec.hex_of(uid)
