"""Pytest fixtures for proposal factory tests.

Common fixtures for testing prediction and gated creation.
"""

from __future__ import annotations

# Load environment variables from .env before any tests run
from dotenv import load_dotenv

load_dotenv()

from pathlib import Path

import pytest

from src.factory.authorization import DelegatedPowerQuery, DelegationType, PowerLedger
from src.factory.creation_ledger import CreationLedger
from src.factory.logger import EventLogger
from src.factory.orchestrator import ProposalFactory
from src.factory.params import ArtifactParameters
from tests.testing_utils import CODE, DELEGATOR, FACTORY_ADDRESS, THRESHOLD, make_params


def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers."""
    config.addinivalue_line(
        "markers",
        "feature(name): mark test as belonging to a feature. "
        "Usage: @pytest.mark.feature('prediction')"
    )


@pytest.fixture
def params() -> ArtifactParameters:
    """The reference proposal."""
    return make_params()


@pytest.fixture
def power_ledger() -> PowerLedger:
    """Delegation ledger where DELEGATOR holds well over the threshold."""
    ledger = PowerLedger()
    ledger.set_balance(DELEGATOR, 2 * THRESHOLD)
    return ledger


@pytest.fixture
def creation_ledger() -> CreationLedger:
    return CreationLedger()


@pytest.fixture
def event_logger(tmp_path: Path) -> EventLogger:
    return EventLogger(str(tmp_path / "factory.jsonl"))


@pytest.fixture
def factory(
    power_ledger: PowerLedger,
    creation_ledger: CreationLedger,
    event_logger: EventLogger,
) -> ProposalFactory:
    """Factory reading proposition power from ``power_ledger``."""
    return ProposalFactory(
        code=CODE,
        authorization=DelegatedPowerQuery(power_ledger, DelegationType.PROPOSITION),
        threshold=THRESHOLD,
        ledger=creation_ledger,
        namespace=FACTORY_ADDRESS,
        event_logger=event_logger,
    )
