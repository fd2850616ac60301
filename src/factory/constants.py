"""Centralized constants for the factory module.

Widths, prefixes and defaults used by the encoder, the deriver and the
configuration layer live here to avoid magic numbers scattered across modules.
"""

# Width of one canonical encoding word
WORD_SIZE = 32

# Identifiers and addresses share the same width
ADDRESS_SIZE = 20

# Content hashes (salt, code hash, ipfs hash) are full digests
HASH_SIZE = 32

# Largest value an encoded unsigned word can carry
MAX_UINT256 = 2**256 - 1

# Domain-separation byte prepended before the final hash pass
CREATE2_PREFIX = b"\xff"

# Factory namespace used when no address is configured
DEFAULT_FACTORY_ADDRESS = "0x" + "00" * 19 + "fa"

# Environment variable that overrides the CLI config path
CONFIG_PATH_ENV = "PROPOSAL_FACTORY_CONFIG"
