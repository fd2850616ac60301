"""Deterministic identifier derivation.

A proposal's identifier is known before the proposal exists. It is computed
from three inputs, in two hash passes (H = SHA3-256):

    salt       = H(encode_parameters(params))
    code_hash  = H(code)
    identifier = H(0xff || namespace || salt || code_hash)[12:]

``namespace`` is the 20-byte address of the factory, so two factories with
the same code never hand out the same identifier. The creator is bound
through the salt (it is the first encoded field).

The layout is fixed: callers recompute it offline to delegate power to a
proposal before asking the factory to create it.
"""

from __future__ import annotations

import hashlib
import re
from dataclasses import dataclass
from pathlib import Path

from .constants import ADDRESS_SIZE, CREATE2_PREFIX, HASH_SIZE
from .encoding import encode_parameters
from .params import ArtifactParameters, normalize_address

_HEX_TEXT_RE = re.compile(r"^(0x)?([0-9a-fA-F]{2})*$")


def sha3(data: bytes) -> bytes:
    """The hash primitive used for every derivation step."""
    return hashlib.sha3_256(data).digest()


@dataclass(frozen=True)
class Identifier:
    """Fixed-width proposal identifier (20 bytes)."""

    value: bytes

    def __post_init__(self) -> None:
        if len(self.value) != ADDRESS_SIZE:
            raise ValueError(
                f"Identifier must be {ADDRESS_SIZE} bytes, got {len(self.value)}"
            )

    @property
    def hex(self) -> str:
        """Lowercase 0x-prefixed rendering."""
        return "0x" + self.value.hex()

    def __str__(self) -> str:
        return self.hex

    @classmethod
    def from_hex(cls, text: str) -> Identifier:
        """Parse a 0x-prefixed 20-byte hex string."""
        return cls(bytes.fromhex(normalize_address(text, "identifier")[2:]))


def compute_identifier(namespace: str, salt: bytes, code_hash: bytes) -> Identifier:
    """Final hash pass combining namespace, salt and code identity."""
    if len(salt) != HASH_SIZE or len(code_hash) != HASH_SIZE:
        raise ValueError("salt and code_hash must be full digests")
    namespace_bytes = bytes.fromhex(normalize_address(namespace, "namespace")[2:])
    digest = sha3(CREATE2_PREFIX + namespace_bytes + salt + code_hash)
    return Identifier(digest[HASH_SIZE - ADDRESS_SIZE:])


def compute_salt(params: ArtifactParameters) -> bytes:
    """Hash of the canonical parameter encoding."""
    return sha3(encode_parameters(params))


def derive(code: bytes, params: ArtifactParameters, namespace: str) -> Identifier:
    """Derive the identifier for *params* deployed from *code* under *namespace*.

    Pure: no I/O, no shared state. Never fails for a constructed
    ``ArtifactParameters``; array lengths are not checked here.
    """
    return compute_identifier(namespace, compute_salt(params), sha3(code))


class IdentifierDeriver:
    """Derivation bound to one factory: fixed code and namespace.

    The code hash is computed once at construction.
    """

    namespace: str
    code_hash: bytes

    def __init__(self, code: bytes, namespace: str) -> None:
        self.namespace = normalize_address(namespace, "namespace")
        self.code_hash = sha3(code)

    def salt(self, params: ArtifactParameters) -> bytes:
        return compute_salt(params)

    def derive(self, params: ArtifactParameters) -> Identifier:
        return compute_identifier(self.namespace, compute_salt(params), self.code_hash)


def load_code(path: str | Path) -> bytes:
    """Read artifact code from *path*.

    Compiler ``.bin`` output (hex text, optional 0x prefix) is decoded;
    anything else is returned as raw bytes.
    """
    raw = Path(path).read_bytes()
    try:
        text = raw.decode("ascii").strip()
    except UnicodeDecodeError:
        return raw
    if text and _HEX_TEXT_RE.match(text):
        return bytes.fromhex(text[2:] if text.startswith("0x") else text)
    return raw
