"""Attestation index: filtered bulk queries over the GraphQL mirror."""

from rsk_attest.index.client import INDEX_DEADLINE_SECONDS, IndexQueryClient, parse_attestation

__all__ = ["INDEX_DEADLINE_SECONDS", "IndexQueryClient", "parse_attestation"]
