"""
Fee Ledger - the external token ledger the custodian settles against.

The canvas only ever needs two movements:
- transfer_in: debit an actor, credit the custody account
- transfer_out: debit the custody account, credit a recipient

A rejected transfer returns False and moves nothing. Partial transfers
do not exist.

InMemoryFeeLedger is a reference implementation for local runs and tests.
Real deployments plug in their own ledger client with the same three methods.
"""

import threading
from typing import Dict, Protocol, runtime_checkable


DEFAULT_CUSTODY_ACCOUNT = "pixelboard:custody"


@runtime_checkable
class FeeLedger(Protocol):
    """What the custodian needs from a fee ledger."""

    def transfer_in(self, sender: str, amount: int) -> bool:
        ...

    def transfer_out(self, recipient: str, amount: int) -> bool:
        ...

    def balance_of(self, identity: str) -> int:
        ...


class InMemoryFeeLedger:
    """Balances and allowances kept in process memory.

    An actor must both hold `amount` and have approved the custody account
    for at least `amount` before transfer_in succeeds.
    """

    def __init__(self, custody_account: str = DEFAULT_CUSTODY_ACCOUNT, require_approval: bool = True):
        self.custody_account = custody_account
        self.require_approval = require_approval
        self._balances: Dict[str, int] = {}
        self._allowances: Dict[str, int] = {}
        self._lock = threading.Lock()

    def deposit(self, identity: str, amount: int) -> None:
        """Fund an identity (bootstrap / tests)."""
        if amount < 0:
            raise ValueError("deposit amount must be non-negative")
        with self._lock:
            self._balances[identity] = self._balances.get(identity, 0) + amount

    def approve(self, owner: str, amount: int) -> None:
        """Let the custody account pull up to `amount` from `owner`."""
        if amount < 0:
            raise ValueError("allowance must be non-negative")
        with self._lock:
            self._allowances[owner] = amount

    def allowance(self, owner: str) -> int:
        return self._allowances.get(owner, 0)

    def balance_of(self, identity: str) -> int:
        return self._balances.get(identity, 0)

    def transfer_in(self, sender: str, amount: int) -> bool:
        with self._lock:
            if amount <= 0 or self._balances.get(sender, 0) < amount:
                return False
            if self.require_approval and self._allowances.get(sender, 0) < amount:
                return False
            self._balances[sender] -= amount
            if self.require_approval:
                self._allowances[sender] -= amount
            self._balances[self.custody_account] = self._balances.get(self.custody_account, 0) + amount
            return True

    def transfer_out(self, recipient: str, amount: int) -> bool:
        with self._lock:
            if amount <= 0 or self._balances.get(self.custody_account, 0) < amount:
                return False
            self._balances[self.custody_account] -= amount
            self._balances[recipient] = self._balances.get(recipient, 0) + amount
            return True


def describe_ledger(ledger: FeeLedger) -> str:
    """Short name for log lines."""
    name = type(ledger).__name__
    custody = getattr(ledger, "custody_account", None)
    if custody:
        return f"{name}({custody})"
    return name
