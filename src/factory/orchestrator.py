"""Proposal factory - predicts and creates proposal instances

Flow of ``create``:

1. validate the parameter arrays
2. derive the identifier
3. reject if the identifier was already created
4. read delegated power at the identifier; reject below threshold
5. allocate the artifact, assert it landed at the identifier, record it
6. emit ProposalCreated
7. return the identifier

Steps 3-6 run inside the creation ledger's transaction: of two racing
attempts for the same identifier, from one factory or from several
sharing a ledger, exactly one succeeds and the other fails with
AlreadyExistsError before anything is allocated.
Every failure leaves the ledger exactly as it was.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Any, TYPE_CHECKING

from .artifacts import ArtifactAllocator, InMemoryAllocator
from .authorization import AuthorizationQuery
from .constants import DEFAULT_FACTORY_ADDRESS
from .creation_ledger import CreationLedger, CreationRecord, SequenceCounter, SequenceSource
from .deriver import Identifier, IdentifierDeriver
from .errors import (
    AlreadyExistsError,
    FactoryError,
    InsufficientAuthorizationError,
    InternalConsistencyError,
)
from .params import ArtifactParameters

if TYPE_CHECKING:
    from ..config_schema import AppConfig
    from .logger import EventLogger

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProposalCreated:
    """Notification emitted once per successful creation."""

    identifier: Identifier
    creator: str
    sequence: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "identifier": str(self.identifier),
            "creator": self.creator,
            "sequence": self.sequence,
        }


class ProposalFactory:
    """Gated, create-once factory for proposal instances.

    Collaborators are passed in explicitly: the creation ledger (the only
    mutable state), the authorization query (read-only), and the allocator
    that instantiates artifacts. The threshold is fixed at construction.
    """

    def __init__(
        self,
        code: bytes,
        authorization: AuthorizationQuery,
        threshold: int,
        ledger: CreationLedger | None = None,
        namespace: str = DEFAULT_FACTORY_ADDRESS,
        allocator: ArtifactAllocator | None = None,
        sequence: SequenceSource | None = None,
        event_logger: "EventLogger | None" = None,
    ) -> None:
        if threshold < 0:
            raise ValueError(f"threshold cannot be negative: {threshold}")
        self._code = code
        self._deriver = IdentifierDeriver(code, namespace)
        self._authorization = authorization
        self._threshold = threshold
        self._ledger = ledger if ledger is not None else CreationLedger()
        self._allocator = allocator if allocator is not None else InMemoryAllocator(namespace)
        self._sequence = sequence if sequence is not None else SequenceCounter()
        self._event_logger = event_logger
        self._events: list[ProposalCreated] = []
        self._lock = threading.Lock()

    @classmethod
    def from_config(
        cls,
        config: "AppConfig",
        code: bytes,
        authorization: AuthorizationQuery,
        ledger: CreationLedger | None = None,
        allocator: ArtifactAllocator | None = None,
        event_logger: "EventLogger | None" = None,
    ) -> "ProposalFactory":
        """Create a factory from validated config.

        Args:
            config: Validated AppConfig (factory address, threshold)
            code: Artifact code the factory instantiates
            authorization: Power lookup for predicted identifiers
            ledger: Optional existing CreationLedger
            allocator: Optional allocator (defaults to InMemoryAllocator)
            event_logger: Optional JSONL event logger

        Returns:
            Configured ProposalFactory instance
        """
        return cls(
            code=code,
            authorization=authorization,
            threshold=config.authorization.threshold,
            ledger=ledger,
            namespace=config.factory.address,
            allocator=allocator,
            event_logger=event_logger,
        )

    @property
    def threshold(self) -> int:
        """Minimum power required at an identifier for creation."""
        return self._threshold

    @property
    def namespace(self) -> str:
        return self._deriver.namespace

    @property
    def code_hash(self) -> bytes:
        return self._deriver.code_hash

    @property
    def ledger(self) -> CreationLedger:
        return self._ledger

    # ===== QUERIES =====

    def calculate_identifier(self, params: ArtifactParameters) -> Identifier:
        """Predict the identifier *params* will be created at. No side effects."""
        identifier = self._deriver.derive(params)
        logger.debug("Predicted %s for creator %s", identifier, params.creator)
        return identifier

    def get_record(self, identifier: Identifier) -> CreationRecord | None:
        return self._ledger.get(identifier)

    def is_created(self, params: ArtifactParameters) -> bool:
        """Whether the proposal described by *params* already exists."""
        return self._ledger.exists(self.calculate_identifier(params))

    def events(self) -> list[ProposalCreated]:
        """Creation notifications emitted so far, oldest first."""
        with self._lock:
            return list(self._events)

    # ===== COMMAND =====

    def create(self, params: ArtifactParameters) -> Identifier:
        """Create the proposal described by *params*.

        Returns:
            The identifier, equal to ``calculate_identifier(params)``

        Raises:
            InvalidParametersError: Array lengths differ or are empty
            AlreadyExistsError: The identifier was already created
            InsufficientAuthorizationError: Power at the identifier is below threshold
            InternalConsistencyError: The allocator placed the artifact elsewhere
        """
        identifier: Identifier | None = None
        try:
            params.validate()
            identifier = self._deriver.derive(params)
            with self._ledger.transaction():
                return self._create_locked(identifier, params)
        except FactoryError as exc:
            self._log_rejection(identifier, params, exc)
            raise

    def _create_locked(self, identifier: Identifier, params: ArtifactParameters) -> Identifier:
        if self._ledger.exists(identifier):
            raise AlreadyExistsError(identifier)

        power = self._authorization.power_of(identifier)
        if power < self._threshold:
            raise InsufficientAuthorizationError(identifier, power, self._threshold)

        artifact = self._allocator.allocate(self._code, self._deriver.salt(params), params)
        if artifact.identifier != identifier:
            logger.error(
                "Allocator placed proposal at %s, derived %s",
                artifact.identifier, identifier,
            )
            raise InternalConsistencyError(identifier, artifact.identifier)

        record = CreationRecord(
            identifier=identifier,
            creator=params.creator,
            created_at_sequence=self._sequence.next(),
        )
        self._ledger.insert(record)

        event = ProposalCreated(identifier, params.creator, record.created_at_sequence)
        with self._lock:
            self._events.append(event)
        if self._event_logger is not None:
            # The record is committed; a failed log write must not undo that
            try:
                self._event_logger.log_proposal_created(
                    str(identifier), params.creator, record.created_at_sequence
                )
            except OSError:
                logger.exception("Could not write creation event for %s", identifier)
        logger.info(
            "Created proposal %s for %s (power %d, threshold %d)",
            identifier, params.creator, power, self._threshold,
        )
        return identifier

    def _log_rejection(
        self,
        identifier: Identifier | None,
        params: ArtifactParameters,
        exc: FactoryError,
    ) -> None:
        logger.warning("Rejected proposal %s: %s", identifier, exc.message)
        if self._event_logger is not None:
            self._event_logger.log_proposal_rejected(
                str(identifier) if identifier is not None else None,
                params.creator,
                exc.code.value,
                exc.message,
            )
