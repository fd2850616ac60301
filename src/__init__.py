"""Proposal Factory source package.

This package contains the factory components:
- config: Configuration loading and management
- factory: Identifier derivation, creation ledger, authorization and the factory
"""

from __future__ import annotations

__all__: list[str] = []
