"""Data models for attestations, schemas and networks."""

from rsk_attest.models.attestation import (
    UNKNOWN_UID,
    ZERO_ADDRESS,
    ZERO_UID,
    AttestationFilters,
    AttestationRecord,
    RevocationReceipt,
    SchemaRecord,
    VerifiedAttestation,
    WriteReceipt,
    is_zero_address,
    is_zero_uid,
)
from rsk_attest.models.network import NetworkConfig, NetworkName

__all__ = [
    "UNKNOWN_UID",
    "ZERO_ADDRESS",
    "ZERO_UID",
    "AttestationFilters",
    "AttestationRecord",
    "RevocationReceipt",
    "SchemaRecord",
    "VerifiedAttestation",
    "WriteReceipt",
    "is_zero_address",
    "is_zero_uid",
    "NetworkConfig",
    "NetworkName",
]
