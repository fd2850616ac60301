"""Artifact allocation - where created proposals actually live

The factory decides *whether* a proposal may be created; an allocator
performs the instantiation. The allocator computes the placement address
itself from (namespace, salt, code), the same way a deterministic deployer
would, and the factory checks it against its own prediction.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Protocol

from .deriver import Identifier, compute_identifier, sha3
from .errors import AlreadyExistsError
from .params import ArtifactParameters, normalize_address


@dataclass
class ProposalArtifact:
    """A created proposal instance.

    Its internal behavior (queuing, execution) is not modelled here.
    """

    identifier: Identifier
    params: ArtifactParameters
    code_hash: bytes
    created_by: str
    created_at: str = field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat()
    )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": str(self.identifier),
            "params": self.params.to_dict(),
            "code_hash": "0x" + self.code_hash.hex(),
            "created_by": self.created_by,
            "created_at": self.created_at,
        }


class ArtifactAllocator(Protocol):
    """Instantiates an artifact from code and salt."""

    def allocate(
        self, code: bytes, salt: bytes, params: ArtifactParameters
    ) -> ProposalArtifact:
        """Create the artifact and return it with its self-reported identity."""
        ...


class InMemoryAllocator:
    """Deterministic allocator keeping artifacts in a dict.

    Refuses to place two artifacts at the same address.
    """

    namespace: str
    _artifacts: dict[Identifier, ProposalArtifact]

    def __init__(self, namespace: str) -> None:
        self.namespace = normalize_address(namespace, "namespace")
        self._artifacts = {}
        self._lock = threading.Lock()

    def allocate(
        self, code: bytes, salt: bytes, params: ArtifactParameters
    ) -> ProposalArtifact:
        code_hash = sha3(code)
        identifier = compute_identifier(self.namespace, salt, code_hash)
        with self._lock:
            if identifier in self._artifacts:
                raise AlreadyExistsError(identifier, f"An artifact already lives at '{identifier}'")
            artifact = ProposalArtifact(
                identifier=identifier,
                params=params,
                code_hash=code_hash,
                created_by=params.creator,
            )
            self._artifacts[identifier] = artifact
        return artifact

    def get(self, identifier: Identifier) -> ProposalArtifact | None:
        with self._lock:
            return self._artifacts.get(identifier)

    def count(self) -> int:
        with self._lock:
            return len(self._artifacts)
