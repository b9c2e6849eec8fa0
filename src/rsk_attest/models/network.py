"""Network descriptors.

A NetworkConfig is resolved once (see rsk_attest.config) and handed to
every client. It is frozen: nothing in the core mutates or re-resolves it.
The signing credential is deliberately not part of it, so the config can
be logged and shared freely.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass


class NetworkName(str, enum.Enum):
    """The two supported Rootstock environments."""
    TESTNET = "testnet"
    MAINNET = "mainnet"


@dataclass(frozen=True)
class NetworkConfig:
    """Immutable per-deployment endpoints and contract addresses."""
    name: NetworkName
    rpc_url: str
    eas_contract: str
    schema_registry: str
    index_url: str
    chain_id: int
    explorer_url: str = ""

    def tx_url(self, tx_hash: str) -> str:
        """Explorer link for a transaction hash ('' if no explorer is known)."""
        if not self.explorer_url:
            return ""
        return f"{self.explorer_url.rstrip('/')}/tx/{tx_hash}"

    def to_dict(self) -> dict[str, object]:
        return {
            "name": self.name.value,
            "rpcUrl": self.rpc_url,
            "rasContract": self.eas_contract,
            "schemaRegistry": self.schema_registry,
            "indexUrl": self.index_url,
            "chainId": self.chain_id,
        }
