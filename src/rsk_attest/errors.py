"""Error taxonomy for attestation operations.

Every failure surfaced by the core carries a stable ``code`` and a
human-readable message. Third-party exceptions (web3, httpx, pydantic)
are translated into these classes by the client that called the library
and are chained with ``raise ... from exc``; nothing above the clients
ever sees a library exception.

- ValidationFailure: caller input rejected before any network call.
- WriteFailure: transaction submission rejected.
- ConfirmationFailure: submitted, but the receipt failed or reverted.
- NotFound: a prerequisite point-read returned the zero sentinel.
- LedgerReadFailure: the authoritative point-read itself failed.
- QueryFailure / QueryTimeout: index service unreachable, slow or malformed.
- DataIntegrityFailure: a transport-valid response with a corrupt field.
- ConfigurationError: settings could not be resolved.
"""

from __future__ import annotations


class AttestationError(Exception):
    """Base exception for all attestation errors."""

    code = "ATTESTATION_ERROR"

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class ValidationFailure(AttestationError):
    code = "VALIDATION_FAILED"


class WriteFailure(AttestationError):
    """Transaction submission was rejected.

    The message is the underlying transport or chain error text. Never
    retried automatically: a blind retry of a state-changing transaction
    can duplicate its side effects.
    """

    code = "WRITE_FAILED"


class ConfirmationFailure(AttestationError):
    """The transaction was submitted but confirmation failed or reverted.

    Distinct from WriteFailure because a reverted transaction may still
    have cost the signer network fees.
    """

    code = "CONFIRMATION_FAILED"

    def __init__(self, message: str, tx_hash: str = "") -> None:
        self.tx_hash = tx_hash
        super().__init__(message)


class NotFound(AttestationError):
    code = "NOT_FOUND"

    def __init__(self, message: str, uid: str = "") -> None:
        self.uid = uid
        super().__init__(message)


class LedgerReadFailure(AttestationError):
    code = "LEDGER_READ_FAILED"


class QueryFailure(AttestationError):
    code = "QUERY_FAILED"


class QueryTimeout(QueryFailure):
    code = "QUERY_TIMEOUT"


class DataIntegrityFailure(AttestationError):
    code = "DATA_INTEGRITY_FAILED"


class ConfigurationError(AttestationError):
    code = "CONFIGURATION_ERROR"
