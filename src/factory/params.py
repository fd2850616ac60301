"""Proposal parameters - the immutable input of every derivation and creation.

An ``ArtifactParameters`` bundle describes one proposal: who creates it,
which governance and executor it targets, the ordered list of actions it
will perform, and the content hash of its off-chain description.

Element formats are checked at construction (anything that could not be
canonically encoded is rejected). Array lengths are NOT checked at
construction: ``validate()`` enforces them and is called by the factory
before any state is touched.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Sequence

from .constants import ADDRESS_SIZE, HASH_SIZE, MAX_UINT256
from .errors import ErrorCode, InvalidParametersError

_ADDRESS_RE = re.compile(r"^0x[0-9a-fA-F]{%d}$" % (ADDRESS_SIZE * 2))


def normalize_address(value: Any, field_name: str = "address") -> str:
    """Return *value* as a lowercase ``0x`` address or raise InvalidParametersError."""
    if not isinstance(value, str) or not _ADDRESS_RE.match(value):
        raise InvalidParametersError(
            f"{field_name} must be a 0x-prefixed {ADDRESS_SIZE}-byte hex address, got {value!r}",
            field=field_name,
        )
    return value.lower()


def to_bytes(value: Any, field_name: str) -> bytes:
    """Coerce raw bytes or a ``0x`` hex string into bytes."""
    if isinstance(value, (bytes, bytearray)):
        return bytes(value)
    if isinstance(value, str) and value.startswith("0x"):
        try:
            return bytes.fromhex(value[2:])
        except ValueError:
            pass
    raise InvalidParametersError(
        f"{field_name} must be bytes or a 0x-prefixed hex string, got {value!r}",
        field=field_name,
    )


def _check_value(value: Any, index: int) -> int:
    # bool is an int subclass; a flag in the values list is a caller mistake
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidParametersError(
            f"values[{index}] must be an integer, got {value!r}",
            field="values",
            index=index,
        )
    if value < 0 or value > MAX_UINT256:
        raise InvalidParametersError(
            f"values[{index}] out of range: {value}",
            field="values",
            index=index,
        )
    return value


@dataclass(frozen=True)
class ArtifactParameters:
    """Immutable value bundle describing one creation request.

    Attributes:
        creator: Address of the requester
        governance: Governance contract the proposal is submitted to
        executor: Executor that will run the proposal's actions
        targets: Addresses the proposal acts upon, in order
        values: Amount sent with each action
        signatures: Function signature of each action
        calldatas: Encoded arguments of each action
        with_delegatecalls: Whether each action is a delegatecall
        ipfs_hash: 32-byte hash of the off-chain proposal description
    """

    creator: str
    governance: str
    executor: str
    targets: tuple[str, ...]
    values: tuple[int, ...]
    signatures: tuple[str, ...]
    calldatas: tuple[bytes, ...]
    with_delegatecalls: tuple[bool, ...]
    ipfs_hash: bytes

    def __post_init__(self) -> None:
        # Frozen dataclass: normalize through object.__setattr__
        setattr_ = object.__setattr__
        setattr_(self, "creator", normalize_address(self.creator, "creator"))
        setattr_(self, "governance", normalize_address(self.governance, "governance"))
        setattr_(self, "executor", normalize_address(self.executor, "executor"))

        setattr_(self, "targets", tuple(
            normalize_address(t, f"targets[{i}]") for i, t in enumerate(self.targets)
        ))
        setattr_(self, "values", tuple(
            _check_value(v, i) for i, v in enumerate(self.values)
        ))

        signatures = tuple(self.signatures)
        for i, sig in enumerate(signatures):
            if not isinstance(sig, str):
                raise InvalidParametersError(
                    f"signatures[{i}] must be a string, got {sig!r}",
                    field="signatures",
                    index=i,
                )
            try:
                sig.encode("utf-8")
            except UnicodeEncodeError as exc:
                raise InvalidParametersError(
                    f"signatures[{i}] is not valid UTF-8: {exc.reason}",
                    field="signatures",
                    index=i,
                ) from exc
        setattr_(self, "signatures", signatures)

        setattr_(self, "calldatas", tuple(
            to_bytes(c, f"calldatas[{i}]") for i, c in enumerate(self.calldatas)
        ))

        flags = tuple(self.with_delegatecalls)
        for i, flag in enumerate(flags):
            if not isinstance(flag, bool):
                raise InvalidParametersError(
                    f"with_delegatecalls[{i}] must be a bool, got {flag!r}",
                    field="with_delegatecalls",
                    index=i,
                )
        setattr_(self, "with_delegatecalls", flags)

        ipfs_hash = to_bytes(self.ipfs_hash, "ipfs_hash")
        if len(ipfs_hash) != HASH_SIZE:
            raise InvalidParametersError(
                f"ipfs_hash must be {HASH_SIZE} bytes, got {len(ipfs_hash)}",
                field="ipfs_hash",
            )
        setattr_(self, "ipfs_hash", ipfs_hash)

    @property
    def action_count(self) -> int:
        """Number of actions, taken from ``targets``."""
        return len(self.targets)

    def array_lengths(self) -> dict[str, int]:
        """Length of every per-action array, keyed by field name."""
        return {
            "targets": len(self.targets),
            "values": len(self.values),
            "signatures": len(self.signatures),
            "calldatas": len(self.calldatas),
            "with_delegatecalls": len(self.with_delegatecalls),
        }

    def validate(self) -> None:
        """Check the per-action arrays are non-empty and of equal length.

        Raises:
            InvalidParametersError: With code EMPTY_ACTIONS or LENGTH_MISMATCH
        """
        lengths = self.array_lengths()
        if len(set(lengths.values())) != 1:
            raise InvalidParametersError(
                "targets, values, signatures, calldatas and with_delegatecalls "
                "must have equal length",
                code=ErrorCode.LENGTH_MISMATCH,
                lengths=lengths,
            )
        if self.action_count == 0:
            raise InvalidParametersError(
                "a proposal needs at least one action",
                code=ErrorCode.EMPTY_ACTIONS,
            )

    def to_dict(self) -> dict[str, Any]:
        """Serialize with byte fields as 0x hex strings."""
        return {
            "creator": self.creator,
            "governance": self.governance,
            "executor": self.executor,
            "targets": list(self.targets),
            "values": list(self.values),
            "signatures": list(self.signatures),
            "calldatas": ["0x" + c.hex() for c in self.calldatas],
            "with_delegatecalls": list(self.with_delegatecalls),
            "ipfs_hash": "0x" + self.ipfs_hash.hex(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ArtifactParameters:
        """Deserialize from a dict (YAML scenario, JSON request)."""
        missing = [name for name in _FIELDS if name not in data]
        if missing:
            raise InvalidParametersError(
                f"missing parameter fields: {', '.join(missing)}",
                missing=missing,
            )
        return cls(
            creator=data["creator"],
            governance=data["governance"],
            executor=data["executor"],
            targets=_as_sequence(data["targets"], "targets"),
            values=_as_sequence(data["values"], "values"),
            signatures=_as_sequence(data["signatures"], "signatures"),
            calldatas=_as_sequence(data["calldatas"], "calldatas"),
            with_delegatecalls=_as_sequence(data["with_delegatecalls"], "with_delegatecalls"),
            ipfs_hash=data["ipfs_hash"],
        )


_FIELDS = (
    "creator", "governance", "executor", "targets", "values",
    "signatures", "calldatas", "with_delegatecalls", "ipfs_hash",
)


def _as_sequence(value: Any, field_name: str) -> Sequence[Any]:
    if not isinstance(value, (list, tuple)):
        raise InvalidParametersError(
            f"{field_name} must be a list, got {type(value).__name__}",
            field=field_name,
        )
    return tuple(value)
