"""Proposal factory: identifier prediction and gated create-once creation."""

from .params import ArtifactParameters
from .deriver import Identifier, IdentifierDeriver, derive, compute_identifier, load_code
from .authorization import (
    AuthorizationQuery, DelegationType, PowerLedger,
    DelegatedPowerQuery, StaticPowerQuery,
)
from .creation_ledger import CreationLedger, CreationRecord, SequenceCounter
from .artifacts import ArtifactAllocator, InMemoryAllocator, ProposalArtifact
from .logger import EventLogger
from .orchestrator import ProposalFactory, ProposalCreated
from .errors import (
    FactoryError, InvalidParametersError, AlreadyExistsError,
    InsufficientAuthorizationError, InternalConsistencyError,
    ErrorCode, ErrorCategory,
)

__all__ = [
    "ArtifactParameters",
    "Identifier", "IdentifierDeriver", "derive", "compute_identifier", "load_code",
    "AuthorizationQuery", "DelegationType", "PowerLedger",
    "DelegatedPowerQuery", "StaticPowerQuery",
    "CreationLedger", "CreationRecord", "SequenceCounter",
    "ArtifactAllocator", "InMemoryAllocator", "ProposalArtifact",
    "EventLogger",
    "ProposalFactory", "ProposalCreated",
    "FactoryError", "InvalidParametersError", "AlreadyExistsError",
    "InsufficientAuthorizationError", "InternalConsistencyError",
    "ErrorCode", "ErrorCategory",
]
