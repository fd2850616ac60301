"""Canonical byte encoding of proposal parameters.

Every value is laid out in 32-byte words:

- address: left-padded to one word
- uint: one big-endian word
- bool: one word holding 0 or 1
- bytes / string: a length word, then the data right-padded to a word boundary
- array: a length word, then each element's encoding in order

Every variable-length item carries its own length, so the stream is
self-delimiting: two different parameter bundles can never produce the same
bytes. Field order is fixed by ``encode_parameters``.
"""

from __future__ import annotations

from typing import Callable, Iterable, TypeVar, TYPE_CHECKING

from .constants import ADDRESS_SIZE, MAX_UINT256, WORD_SIZE

if TYPE_CHECKING:
    from .params import ArtifactParameters

T = TypeVar("T")


def encode_uint(value: int) -> bytes:
    """Encode an unsigned integer as one big-endian word."""
    if value < 0 or value > MAX_UINT256:
        raise ValueError(f"uint out of range: {value}")
    return value.to_bytes(WORD_SIZE, "big")


def encode_bool(value: bool) -> bytes:
    """Encode a boolean as a 0/1 word."""
    return encode_uint(1 if value else 0)


def encode_address(address: str) -> bytes:
    """Encode a 0x-prefixed address, left-padded to one word."""
    raw = bytes.fromhex(address[2:])
    if len(raw) != ADDRESS_SIZE:
        raise ValueError(f"address must be {ADDRESS_SIZE} bytes: {address}")
    return raw.rjust(WORD_SIZE, b"\x00")


def encode_bytes(data: bytes) -> bytes:
    """Encode a byte string as length word plus right-padded data."""
    padding = (-len(data)) % WORD_SIZE
    return encode_uint(len(data)) + data + b"\x00" * padding


def encode_string(text: str) -> bytes:
    """Encode a string as its UTF-8 bytes."""
    return encode_bytes(text.encode("utf-8"))


def encode_array(items: Iterable[T], encode_item: Callable[[T], bytes]) -> bytes:
    """Encode a sequence as a length word followed by its elements."""
    encoded = [encode_item(item) for item in items]
    return encode_uint(len(encoded)) + b"".join(encoded)


def encode_parameters(params: "ArtifactParameters") -> bytes:
    """Canonical encoding of a full parameter bundle.

    The ipfs hash is fixed-width and goes in as raw bytes after the arrays.
    """
    return b"".join((
        encode_address(params.creator),
        encode_address(params.governance),
        encode_address(params.executor),
        encode_array(params.targets, encode_address),
        encode_array(params.values, encode_uint),
        encode_array(params.signatures, encode_string),
        encode_array(params.calldatas, encode_bytes),
        encode_array(params.with_delegatecalls, encode_bool),
        params.ipfs_hash,
    ))
