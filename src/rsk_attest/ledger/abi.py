"""ABI fragments for the attestation contract and the schema registry.

Only the functions and events this package calls are declared. The
layout follows the EAS contracts that the Rootstock Attestation Service
deploys.
"""

from __future__ import annotations

from typing import Any

_ATTESTATION_REQUEST_DATA = [
    {"name": "recipient", "type": "address"},
    {"name": "expirationTime", "type": "uint64"},
    {"name": "revocable", "type": "bool"},
    {"name": "refUID", "type": "bytes32"},
    {"name": "data", "type": "bytes"},
    {"name": "value", "type": "uint256"},
]

_ATTESTATION = [
    {"name": "uid", "type": "bytes32"},
    {"name": "schema", "type": "bytes32"},
    {"name": "time", "type": "uint64"},
    {"name": "expirationTime", "type": "uint64"},
    {"name": "revocationTime", "type": "uint64"},
    {"name": "refUID", "type": "bytes32"},
    {"name": "recipient", "type": "address"},
    {"name": "attester", "type": "address"},
    {"name": "revocable", "type": "bool"},
    {"name": "data", "type": "bytes"},
]

_SCHEMA_RECORD = [
    {"name": "uid", "type": "bytes32"},
    {"name": "resolver", "type": "address"},
    {"name": "revocable", "type": "bool"},
    {"name": "schema", "type": "string"},
]

EAS_ABI: list[dict[str, Any]] = [
    {
        "type": "function",
        "name": "attest",
        "stateMutability": "payable",
        "inputs": [
            {
                "name": "request",
                "type": "tuple",
                "components": [
                    {"name": "schema", "type": "bytes32"},
                    {
                        "name": "data",
                        "type": "tuple",
                        "components": _ATTESTATION_REQUEST_DATA,
                    },
                ],
            }
        ],
        "outputs": [{"name": "", "type": "bytes32"}],
    },
    {
        "type": "function",
        "name": "revoke",
        "stateMutability": "payable",
        "inputs": [
            {
                "name": "request",
                "type": "tuple",
                "components": [
                    {"name": "schema", "type": "bytes32"},
                    {
                        "name": "data",
                        "type": "tuple",
                        "components": [
                            {"name": "uid", "type": "bytes32"},
                            {"name": "value", "type": "uint256"},
                        ],
                    },
                ],
            }
        ],
        "outputs": [],
    },
    {
        "type": "function",
        "name": "getAttestation",
        "stateMutability": "view",
        "inputs": [{"name": "uid", "type": "bytes32"}],
        "outputs": [{"name": "", "type": "tuple", "components": _ATTESTATION}],
    },
    {
        "type": "event",
        "name": "Attested",
        "anonymous": False,
        "inputs": [
            {"name": "recipient", "type": "address", "indexed": True},
            {"name": "attester", "type": "address", "indexed": True},
            {"name": "uid", "type": "bytes32", "indexed": False},
            {"name": "schemaUID", "type": "bytes32", "indexed": True},
        ],
    },
]

SCHEMA_REGISTRY_ABI: list[dict[str, Any]] = [
    {
        "type": "function",
        "name": "register",
        "stateMutability": "nonpayable",
        "inputs": [
            {"name": "schema", "type": "string"},
            {"name": "resolver", "type": "address"},
            {"name": "revocable", "type": "bool"},
        ],
        "outputs": [{"name": "", "type": "bytes32"}],
    },
    {
        "type": "function",
        "name": "getSchema",
        "stateMutability": "view",
        "inputs": [{"name": "uid", "type": "bytes32"}],
        "outputs": [{"name": "", "type": "tuple", "components": _SCHEMA_RECORD}],
    },
    {
        "type": "event",
        "name": "Registered",
        "anonymous": False,
        "inputs": [
            {"name": "uid", "type": "bytes32", "indexed": True},
            {"name": "registerer", "type": "address", "indexed": True},
            {
                "name": "schema",
                "type": "tuple",
                "indexed": False,
                "components": _SCHEMA_RECORD,
            },
        ],
    },
]
