"""Environment-backed configuration.

The only module that reads the process environment. A ``.env`` file in
the working directory (or the path given to ``load_environment``) is
loaded first; real environment variables win over it.

Core clients never call into this module: they receive a resolved
NetworkConfig and signing key at construction.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Optional

from dotenv import find_dotenv, load_dotenv

from rsk_attest.errors import ConfigurationError, ValidationFailure
from rsk_attest.models.network import NetworkConfig, NetworkName

_DEFAULTS: dict[NetworkName, dict[str, object]] = {
    NetworkName.TESTNET: {
        "rpc_url": "https://rpc.testnet.rootstock.io",
        "eas_contract": "0xc300aeEadd60999933468738c9F5d7e9c0671e1C",
        "schema_registry": "0x679c62956cD2801ABaBF80e9D430F18859eea2D5",
        "index_url": "https://easscan-testnet.rootstock.io/graphql",
        "chain_id": 31,
        "explorer_url": "https://explorer.testnet.rootstock.io",
    },
    NetworkName.MAINNET: {
        "rpc_url": "https://rpc.mainnet.rootstock.io",
        "eas_contract": "0x54c0726E9D2D57Bc37aD52C7E219a3229E0ee963",
        "schema_registry": "0xef29675d82Cc5967069D6D9c17F2719F67728F5b",
        "index_url": "https://easscan.rootstock.io/graphql",
        "chain_id": 30,
        "explorer_url": "https://explorer.rootstock.io",
    },
}

# Setting -> environment variable prefix; the suffix is _TESTNET/_MAINNET.
_ENV_PREFIXES = {
    "rpc_url": "RSK_RPC_URL",
    "eas_contract": "RAS_CONTRACT",
    "schema_registry": "SCHEMA_REGISTRY",
    "index_url": "GRAPHQL_ENDPOINT",
}


def load_environment(dotenv_path: Optional[Path] = None) -> bool:
    """Load a .env file without overriding variables already set."""
    return load_dotenv(dotenv_path or find_dotenv(usecwd=True), override=False)


def parse_network(name: str) -> NetworkName:
    try:
        return NetworkName(str(name).lower())
    except ValueError:
        valid = ", ".join(n.value for n in NetworkName)
        raise ValidationFailure(f"Unknown network {name!r}; expected one of: {valid}") from None


def get_network_config(network: str | NetworkName) -> NetworkConfig:
    """Resolve endpoints and contracts for ``network`` from env and defaults."""
    name = network if isinstance(network, NetworkName) else parse_network(network)
    settings = dict(_DEFAULTS[name])
    suffix = name.value.upper()
    for key, prefix in _ENV_PREFIXES.items():
        override = os.getenv(f"{prefix}_{suffix}")
        if override:
            settings[key] = override
    return NetworkConfig(name=name, **settings)


def get_private_key() -> str:
    """The signing key from PRIVATE_KEY.

    The error never echoes any part of the environment.
    """
    private_key = os.getenv("PRIVATE_KEY")
    if not private_key:
        raise ConfigurationError("PRIVATE_KEY environment variable not set")
    return private_key


def get_default_network() -> NetworkName:
    return parse_network(os.getenv("RSK_NETWORK") or NetworkName.TESTNET.value)
