"""Authorization power lookups.

The factory never owns delegated power; it only reads it. ``AuthorizationQuery``
is the one-method capability it is handed. Implementations:

- DelegatedPowerQuery: reads one delegation type from a ``PowerLedger``
- StaticPowerQuery: fixed power table (fixtures, dry runs)

``PowerLedger`` is an in-memory delegation ledger. Each holder's balance
counts toward the power of its current delegatee for each delegation type
(the holder itself until it delegates). Delegatees can be any address,
including a predicted proposal identifier with nothing behind it yet.

All balances are integer token units. Never allow negative balances - fail loud.
"""

from __future__ import annotations

import logging
import threading
from enum import IntEnum
from typing import Mapping, Protocol, runtime_checkable

from .deriver import Identifier
from .params import normalize_address

logger = logging.getLogger(__name__)


class DelegationType(IntEnum):
    """Kinds of power a holder can delegate independently."""

    VOTING = 0
    PROPOSITION = 1


@runtime_checkable
class AuthorizationQuery(Protocol):
    """Read-only capability: how much power is assigned to an identifier."""

    def power_of(self, identifier: Identifier) -> int:
        """Current power assigned to *identifier*.

        Called with the predicted identifier, before any artifact exists.
        """
        ...


class PowerLedger:
    """In-memory token balances with per-type delegation.

    Thread-safety: every public method takes the internal lock, so reads
    observe a consistent balance/delegation snapshot.
    """

    _balances: dict[str, int]
    _delegatees: dict[DelegationType, dict[str, str]]
    _lock: threading.Lock

    def __init__(self) -> None:
        self._balances = {}
        self._delegatees = {t: {} for t in DelegationType}
        self._lock = threading.Lock()

    def set_balance(self, holder: str, amount: int) -> None:
        """Set a holder's token balance."""
        if amount < 0:
            raise ValueError(f"balance cannot be negative: {amount}")
        holder = normalize_address(holder, "holder")
        with self._lock:
            self._balances[holder] = amount

    def get_balance(self, holder: str) -> int:
        holder = normalize_address(holder, "holder")
        with self._lock:
            return self._balances.get(holder, 0)

    def transfer(self, from_holder: str, to_holder: str, amount: int) -> bool:
        """Move tokens between holders. Returns False if insufficient."""
        if amount <= 0:
            return False
        from_holder = normalize_address(from_holder, "from_holder")
        to_holder = normalize_address(to_holder, "to_holder")
        with self._lock:
            current = self._balances.get(from_holder, 0)
            if current < amount:
                return False
            self._balances[from_holder] = current - amount
            self._balances[to_holder] = self._balances.get(to_holder, 0) + amount
            return True

    def delegate_by_type(
        self,
        delegator: str,
        delegatee: str | Identifier,
        delegation_type: DelegationType | int,
    ) -> None:
        """Point *delegator*'s power of one type at *delegatee*.

        Delegating back to oneself clears the delegation.
        """
        kind = DelegationType(delegation_type)
        delegator = normalize_address(delegator, "delegator")
        target = normalize_address(str(delegatee), "delegatee")
        with self._lock:
            if target == delegator:
                self._delegatees[kind].pop(delegator, None)
            else:
                self._delegatees[kind][delegator] = target
        logger.debug("Delegated %s power of %s to %s", kind.name, delegator, target)

    def get_delegatee_by_type(self, delegator: str, delegation_type: DelegationType | int) -> str:
        """Current delegatee of *delegator* (itself when not delegated)."""
        kind = DelegationType(delegation_type)
        delegator = normalize_address(delegator, "delegator")
        with self._lock:
            return self._delegatees[kind].get(delegator, delegator)

    def get_power_current(self, user: str | Identifier, delegation_type: DelegationType | int) -> int:
        """Total balance currently counting toward *user* for one type."""
        kind = DelegationType(delegation_type)
        user = normalize_address(str(user), "user")
        with self._lock:
            delegatees = self._delegatees[kind]
            return sum(
                balance
                for holder, balance in self._balances.items()
                if delegatees.get(holder, holder) == user
            )

    def total_supply(self) -> int:
        with self._lock:
            return sum(self._balances.values())


class DelegatedPowerQuery:
    """``AuthorizationQuery`` backed by a ``PowerLedger``."""

    def __init__(
        self,
        power_ledger: PowerLedger,
        delegation_type: DelegationType = DelegationType.PROPOSITION,
    ) -> None:
        self._power_ledger = power_ledger
        self.delegation_type = delegation_type

    def power_of(self, identifier: Identifier) -> int:
        return self._power_ledger.get_power_current(identifier, self.delegation_type)


class StaticPowerQuery:
    """``AuthorizationQuery`` over a fixed ``{identifier hex: power}`` table."""

    def __init__(self, powers: Mapping[str, int] | None = None) -> None:
        self._powers = {k.lower(): v for k, v in (powers or {}).items()}

    def set_power(self, identifier: Identifier | str, power: int) -> None:
        self._powers[str(identifier).lower()] = power

    def power_of(self, identifier: Identifier) -> int:
        return self._powers.get(str(identifier).lower(), 0)
