"""Unit tests for ProposalFactory prediction and gated creation."""

from __future__ import annotations

import logging
import threading
from unittest.mock import MagicMock

import pytest

from src.config_schema import validate_config_dict
from src.factory.artifacts import InMemoryAllocator, ProposalArtifact
from src.factory.authorization import DelegationType, PowerLedger, StaticPowerQuery
from src.factory.creation_ledger import CreationLedger, SequenceCounter
from src.factory.deriver import Identifier, derive, sha3
from src.factory.errors import (
    AlreadyExistsError,
    ErrorCode,
    InsufficientAuthorizationError,
    InternalConsistencyError,
    InvalidParametersError,
)
from src.factory.logger import EventLogger
from src.factory.orchestrator import ProposalCreated, ProposalFactory
from src.factory.params import ArtifactParameters
from tests.testing_utils import (
    CODE,
    DELEGATOR,
    ECOSYSTEM_CONTROLLER,
    FACTORY_ADDRESS,
    THRESHOLD,
    address,
    make_params,
)


def _delegate_to(power_ledger: PowerLedger, identifier: Identifier) -> None:
    power_ledger.delegate_by_type(DELEGATOR, identifier, DelegationType.PROPOSITION)


class TestConstruction:
    """Factory construction."""

    def test_negative_threshold_rejected(self) -> None:
        with pytest.raises(ValueError):
            ProposalFactory(CODE, StaticPowerQuery(), threshold=-1)

    def test_threshold_read_only(self, factory: ProposalFactory) -> None:
        assert factory.threshold == THRESHOLD
        with pytest.raises(AttributeError):
            factory.threshold = 0  # type: ignore[misc]

    def test_from_config(self) -> None:
        config = validate_config_dict({
            "factory": {"address": FACTORY_ADDRESS},
            "authorization": {"threshold": 5},
        })
        factory = ProposalFactory.from_config(config, CODE, StaticPowerQuery())
        assert factory.threshold == 5
        assert factory.namespace == FACTORY_ADDRESS
        assert factory.code_hash == sha3(CODE)


class TestCalculateIdentifier:
    """Prediction has no side effects."""

    def test_deterministic(self, factory: ProposalFactory, params: ArtifactParameters) -> None:
        assert factory.calculate_identifier(params) == factory.calculate_identifier(params)

    def test_matches_pure_derivation(self, factory: ProposalFactory, params: ArtifactParameters) -> None:
        assert factory.calculate_identifier(params) == derive(CODE, params, FACTORY_ADDRESS)

    def test_no_side_effects(
        self,
        factory: ProposalFactory,
        params: ArtifactParameters,
        creation_ledger: CreationLedger,
        event_logger: EventLogger,
    ) -> None:
        factory.calculate_identifier(params)
        assert creation_ledger.count() == 0
        assert factory.events() == []
        assert event_logger.read_recent(10) == []

    def test_is_created(
        self, factory: ProposalFactory, params: ArtifactParameters, power_ledger: PowerLedger
    ) -> None:
        assert factory.is_created(params) is False
        _delegate_to(power_ledger, factory.calculate_identifier(params))
        factory.create(params)
        assert factory.is_created(params) is True


class TestCreate:
    """Successful creation."""

    def test_prediction_equals_reality(
        self, factory: ProposalFactory, params: ArtifactParameters, power_ledger: PowerLedger
    ) -> None:
        predicted = factory.calculate_identifier(params)
        _delegate_to(power_ledger, predicted)
        assert factory.create(params) == predicted

    def test_record_written(
        self,
        factory: ProposalFactory,
        params: ArtifactParameters,
        power_ledger: PowerLedger,
        creation_ledger: CreationLedger,
    ) -> None:
        predicted = factory.calculate_identifier(params)
        _delegate_to(power_ledger, predicted)
        factory.create(params)

        record = creation_ledger.get(predicted)
        assert record is not None
        assert record.creator == params.creator
        assert record.created_at_sequence == 1
        assert factory.get_record(predicted) == record

    def test_notification_emitted(
        self, factory: ProposalFactory, params: ArtifactParameters, power_ledger: PowerLedger
    ) -> None:
        predicted = factory.calculate_identifier(params)
        _delegate_to(power_ledger, predicted)
        factory.create(params)
        assert factory.events() == [ProposalCreated(predicted, params.creator, 1)]

    def test_power_equal_to_threshold_passes(self, params: ArtifactParameters) -> None:
        query = StaticPowerQuery()
        factory = ProposalFactory(CODE, query, threshold=10, namespace=FACTORY_ADDRESS)
        query.set_power(factory.calculate_identifier(params), 10)
        factory.create(params)

    def test_zero_threshold_needs_no_power(self, params: ArtifactParameters) -> None:
        factory = ProposalFactory(CODE, StaticPowerQuery(), threshold=0)
        factory.create(params)

    def test_sequences_increase(self, power_ledger: PowerLedger) -> None:
        factory = ProposalFactory(
            CODE, StaticPowerQuery(), threshold=0, sequence=SequenceCounter(start=10)
        )
        first = factory.create(make_params(values=[1]))
        second = factory.create(make_params(values=[2]))
        assert factory.get_record(first).created_at_sequence == 10
        assert factory.get_record(second).created_at_sequence == 11
        assert [e.sequence for e in factory.events()] == [10, 11]

    def test_artifact_allocated(self, params: ArtifactParameters) -> None:
        allocator = InMemoryAllocator(FACTORY_ADDRESS)
        factory = ProposalFactory(
            CODE, StaticPowerQuery(), threshold=0, namespace=FACTORY_ADDRESS, allocator=allocator
        )
        identifier = factory.create(params)
        artifact = allocator.get(identifier)
        assert artifact is not None
        assert artifact.params == params
        assert artifact.created_by == params.creator


class TestCreateOnce:
    """A second create of the same parameters fails."""

    def test_second_create_fails(
        self,
        factory: ProposalFactory,
        params: ArtifactParameters,
        power_ledger: PowerLedger,
        creation_ledger: CreationLedger,
    ) -> None:
        _delegate_to(power_ledger, factory.calculate_identifier(params))
        factory.create(params)
        with pytest.raises(AlreadyExistsError):
            factory.create(params)
        assert creation_ledger.count() == 1
        assert len(factory.events()) == 1

    def test_existing_checked_before_power(self, params: ArtifactParameters) -> None:
        """A created identifier reports AlreadyExists even after power is withdrawn."""
        query = StaticPowerQuery()
        factory = ProposalFactory(CODE, query, threshold=1)
        ident = factory.calculate_identifier(params)
        query.set_power(ident, 1)
        factory.create(params)
        query.set_power(ident, 0)
        with pytest.raises(AlreadyExistsError):
            factory.create(params)

    def test_racing_creates_single_winner(self, params: ArtifactParameters) -> None:
        factory = ProposalFactory(CODE, StaticPowerQuery(), threshold=0)
        barrier = threading.Barrier(10)
        results: list[object] = []
        lock = threading.Lock()

        def attempt() -> None:
            barrier.wait()
            try:
                outcome: object = factory.create(params)
            except AlreadyExistsError as exc:
                outcome = exc
            with lock:
                results.append(outcome)

        threads = [threading.Thread(target=attempt) for _ in range(10)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        winners = [r for r in results if isinstance(r, Identifier)]
        assert len(winners) == 1
        assert sum(isinstance(r, AlreadyExistsError) for r in results) == 9
        assert factory.ledger.count() == 1
        assert len(factory.events()) == 1

    def test_factories_sharing_ledger_allocate_once(self, params: ArtifactParameters) -> None:
        """A second factory on the same ledger waits, then fails before allocating."""
        ledger = CreationLedger()
        entered, release = threading.Event(), threading.Event()
        alloc_a = _PausingAllocator(FACTORY_ADDRESS, entered, release)
        alloc_b = InMemoryAllocator(FACTORY_ADDRESS)
        factory_a = ProposalFactory(
            CODE, StaticPowerQuery(), 0, ledger=ledger, namespace=FACTORY_ADDRESS, allocator=alloc_a
        )
        factory_b = ProposalFactory(
            CODE, StaticPowerQuery(), 0, ledger=ledger, namespace=FACTORY_ADDRESS, allocator=alloc_b
        )
        results: dict[str, object] = {}

        def attempt(name: str, factory: ProposalFactory) -> None:
            try:
                results[name] = factory.create(params)
            except AlreadyExistsError as exc:
                results[name] = exc

        thread_a = threading.Thread(target=attempt, args=("a", factory_a))
        thread_a.start()
        assert entered.wait(timeout=5)

        thread_b = threading.Thread(target=attempt, args=("b", factory_b))
        thread_b.start()
        thread_b.join(timeout=0.2)
        # Blocked on the ledger while A is mid-allocation
        assert thread_b.is_alive()

        release.set()
        thread_a.join(timeout=5)
        thread_b.join(timeout=5)

        assert isinstance(results["a"], Identifier)
        assert isinstance(results["b"], AlreadyExistsError)
        assert alloc_a.count() == 1
        assert alloc_b.count() == 0
        assert ledger.count() == 1
        assert factory_b.events() == []


class _PausingAllocator(InMemoryAllocator):
    """Allocator that signals entry and waits to be released."""

    def __init__(
        self, namespace: str, entered: threading.Event, release: threading.Event
    ) -> None:
        super().__init__(namespace)
        self._entered = entered
        self._release = release

    def allocate(self, code: bytes, salt: bytes, params: ArtifactParameters) -> ProposalArtifact:
        self._entered.set()
        self._release.wait(timeout=5)
        return super().allocate(code, salt, params)



class TestAuthorizationGate:
    """Power below threshold blocks creation without state change."""

    def test_insufficient_power(
        self,
        factory: ProposalFactory,
        params: ArtifactParameters,
        creation_ledger: CreationLedger,
    ) -> None:
        with pytest.raises(InsufficientAuthorizationError) as exc_info:
            factory.create(params)
        assert exc_info.value.power == 0
        assert exc_info.value.threshold == THRESHOLD
        assert exc_info.value.identifier == factory.calculate_identifier(params)
        assert creation_ledger.count() == 0
        assert factory.events() == []

    def test_just_below_threshold(self, params: ArtifactParameters) -> None:
        query = StaticPowerQuery()
        factory = ProposalFactory(CODE, query, threshold=10)
        query.set_power(factory.calculate_identifier(params), 9)
        with pytest.raises(InsufficientAuthorizationError):
            factory.create(params)

    def test_retry_after_delegation(
        self,
        factory: ProposalFactory,
        params: ArtifactParameters,
        power_ledger: PowerLedger,
    ) -> None:
        predicted = factory.calculate_identifier(params)
        with pytest.raises(InsufficientAuthorizationError):
            factory.create(params)
        _delegate_to(power_ledger, predicted)
        assert factory.create(params) == predicted

    def test_power_read_at_predicted_identifier(self, params: ArtifactParameters) -> None:
        query = MagicMock()
        query.power_of.return_value = 100
        factory = ProposalFactory(CODE, query, threshold=1)
        factory.create(params)
        query.power_of.assert_called_once_with(factory.calculate_identifier(params))

    def test_voting_power_does_not_count(
        self, factory: ProposalFactory, params: ArtifactParameters, power_ledger: PowerLedger
    ) -> None:
        power_ledger.delegate_by_type(
            DELEGATOR, factory.calculate_identifier(params), DelegationType.VOTING
        )
        with pytest.raises(InsufficientAuthorizationError):
            factory.create(params)


class TestValidation:
    """Malformed bundles fail before any collaborator is touched."""

    def test_length_mismatch(self, params: ArtifactParameters) -> None:
        query = MagicMock()
        ledger = MagicMock()
        factory = ProposalFactory(CODE, query, threshold=0, ledger=ledger)
        bad = make_params(targets=[ECOSYSTEM_CONTROLLER, address(7)], values=[0])
        with pytest.raises(InvalidParametersError) as exc_info:
            factory.create(bad)
        assert exc_info.value.code == ErrorCode.LENGTH_MISMATCH
        query.power_of.assert_not_called()
        ledger.exists.assert_not_called()
        ledger.insert.assert_not_called()

    def test_empty_actions(self) -> None:
        factory = ProposalFactory(CODE, StaticPowerQuery(), threshold=0)
        empty = make_params(
            targets=[], values=[], signatures=[], calldatas=[], with_delegatecalls=[]
        )
        with pytest.raises(InvalidParametersError) as exc_info:
            factory.create(empty)
        assert exc_info.value.code == ErrorCode.EMPTY_ACTIONS
        assert factory.ledger.count() == 0


class _MisplacingAllocator:
    """Allocator that reports a different identity than requested."""

    def allocate(self, code: bytes, salt: bytes, params: ArtifactParameters) -> ProposalArtifact:
        return ProposalArtifact(
            identifier=Identifier(b"\xee" * 20),
            params=params,
            code_hash=sha3(code),
            created_by=params.creator,
        )


class TestInternalConsistency:
    """Identity mismatches are fatal and leave the ledger untouched."""

    def test_mismatch_raises(self, params: ArtifactParameters) -> None:
        factory = ProposalFactory(
            CODE, StaticPowerQuery(), threshold=0, allocator=_MisplacingAllocator()
        )
        with pytest.raises(InternalConsistencyError) as exc_info:
            factory.create(params)
        assert exc_info.value.expected == factory.calculate_identifier(params)
        assert exc_info.value.actual == Identifier(b"\xee" * 20)
        assert factory.ledger.count() == 0
        assert factory.events() == []

    def test_allocator_in_other_namespace_detected(self, params: ArtifactParameters) -> None:
        factory = ProposalFactory(
            CODE,
            StaticPowerQuery(),
            threshold=0,
            namespace=FACTORY_ADDRESS,
            allocator=InMemoryAllocator(address(42)),
        )
        with pytest.raises(InternalConsistencyError):
            factory.create(params)


class TestEventLog:
    """JSONL trail of creation attempts."""

    def test_created_logged(
        self,
        factory: ProposalFactory,
        params: ArtifactParameters,
        power_ledger: PowerLedger,
        event_logger: EventLogger,
    ) -> None:
        predicted = factory.calculate_identifier(params)
        _delegate_to(power_ledger, predicted)
        factory.create(params)
        events = event_logger.read_recent(10)
        assert [e["event_type"] for e in events] == ["proposal_created"]
        assert events[0]["identifier"] == str(predicted)
        assert events[0]["creator"] == params.creator

    def test_rejections_logged(
        self,
        factory: ProposalFactory,
        params: ArtifactParameters,
        event_logger: EventLogger,
    ) -> None:
        with pytest.raises(InsufficientAuthorizationError):
            factory.create(params)
        with pytest.raises(InvalidParametersError):
            factory.create(make_params(values=[0, 0]))

        events = event_logger.read_recent(10)
        assert [e["event_type"] for e in events] == ["proposal_rejected", "proposal_rejected"]
        assert events[0]["code"] == "insufficient_power"
        assert events[0]["identifier"] == str(factory.calculate_identifier(params))
        assert events[1]["code"] == "length_mismatch"
        assert "identifier" not in events[1]

    def test_failed_log_write_keeps_creation(
        self, params: ArtifactParameters, caplog: pytest.LogCaptureFixture
    ) -> None:
        event_logger = MagicMock()
        event_logger.log_proposal_created.side_effect = OSError("disk full")
        factory = ProposalFactory(CODE, StaticPowerQuery(), 0, event_logger=event_logger)

        with caplog.at_level(logging.ERROR, logger="src.factory.orchestrator"):
            identifier = factory.create(params)

        assert identifier == factory.calculate_identifier(params)
        assert factory.ledger.exists(identifier)
        assert len(factory.events()) == 1
        event_logger.log_proposal_rejected.assert_not_called()
        assert "Could not write creation event" in caplog.text
