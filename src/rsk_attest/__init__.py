"""Attestation client for the Rootstock Attestation Service."""

from rsk_attest.errors import AttestationError
from rsk_attest.models import AttestationRecord, NetworkConfig, NetworkName, SchemaRecord
from rsk_attest.service import AttestationService

__version__ = "0.1.0"

__all__ = [
    "AttestationError",
    "AttestationRecord",
    "AttestationService",
    "NetworkConfig",
    "NetworkName",
    "SchemaRecord",
]
