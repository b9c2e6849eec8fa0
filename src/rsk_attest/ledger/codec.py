"""Conversions between caller-facing hex strings and ledger values.

Shape errors are raised as ValidationFailure here, before any RPC is
attempted.
"""

from __future__ import annotations

import re

from eth_typing import ChecksumAddress
from web3 import AsyncHTTPProvider, AsyncWeb3, Web3
from web3.contract import AsyncContract

from rsk_attest.errors import ValidationFailure
from rsk_attest.ledger.abi import EAS_ABI, SCHEMA_REGISTRY_ABI
from rsk_attest.models.network import NetworkConfig

_BYTES32 = re.compile(r"0x[0-9a-fA-F]{64}")
_HEX = re.compile(r"0x(?:[0-9a-fA-F]{2})*")


def to_bytes32(value: str, field_name: str = "uid") -> bytes:
    """Decode a 0x-prefixed 32-byte identifier."""
    if not isinstance(value, str) or not _BYTES32.fullmatch(value):
        raise ValidationFailure(
            f"{field_name} must be a 32-byte hex string (0x + 64 hex digits), "
            f"got {value!r}"
        )
    return bytes.fromhex(value[2:])


def to_address(value: str, field_name: str = "address") -> ChecksumAddress:
    if not isinstance(value, str) or not Web3.is_address(value):
        raise ValidationFailure(f"{field_name} is not a valid address: {value!r}")
    return Web3.to_checksum_address(value)


def to_payload(value: str) -> bytes:
    """Decode an already-encoded attestation payload (0x-prefixed hex)."""
    if not isinstance(value, str) or not _HEX.fullmatch(value):
        raise ValidationFailure(
            f"data must be 0x-prefixed hex with an even number of digits, got {value!r}"
        )
    return bytes.fromhex(value[2:])


def hex_of(value: bytes) -> str:
    return Web3.to_hex(value)


def connect(config: NetworkConfig) -> AsyncWeb3:
    """Open an RPC connection for the configured network."""
    return AsyncWeb3(AsyncHTTPProvider(config.rpc_url))


def eas_contract(w3: AsyncWeb3, config: NetworkConfig) -> AsyncContract:
    return w3.eth.contract(
        address=to_address(config.eas_contract, "eas_contract"),
        abi=EAS_ABI,
    )


def schema_registry_contract(w3: AsyncWeb3, config: NetworkConfig) -> AsyncContract:
    return w3.eth.contract(
        address=to_address(config.schema_registry, "schema_registry"),
        abi=SCHEMA_REGISTRY_ABI,
    )
