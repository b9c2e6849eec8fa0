"""Shared fixtures for the attestation client tests."""

from __future__ import annotations

import pytest

from fakes import NOW, FakeIndex, FakeLedger, make_config
from rsk_attest.models.network import NetworkConfig
from rsk_attest.service import AttestationService


@pytest.fixture
def config() -> NetworkConfig:
    return make_config()


@pytest.fixture
def ledger() -> FakeLedger:
    return FakeLedger()


@pytest.fixture
def index(ledger: FakeLedger) -> FakeIndex:
    return FakeIndex(ledger)


@pytest.fixture
def clock() -> list[int]:
    """Mutable wall clock: tests advance ``clock[0]``."""
    return [NOW]


@pytest.fixture
def service(config, ledger, index, clock) -> AttestationService:
    return AttestationService(
        config, writer=ledger, reader=ledger, querier=index,
        now_func=lambda: clock[0],
    )
