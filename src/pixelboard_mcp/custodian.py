"""
Fee Custodian - holds the fees paid for cooldown-bypassing writes.

Bookkeeping invariant: withdrawn_total <= collected_total, always.
Totals move only after the fee ledger confirms a transfer.
"""

import sys
import threading
from typing import Any, Dict

from .admin import AdminSurface
from .errors import FeeTransferFailed, Unauthorized, WithdrawFailed
from .ledger import FeeLedger


class FeeCustodian:
    """Collects fees into custody and pays them out to the administrator's choice of destination."""

    def __init__(self, ledger: FeeLedger, admin: AdminSurface):
        self.ledger = ledger
        self.admin = admin
        self._collected_total = 0
        self._withdrawn_total = 0
        self._lock = threading.RLock()

    @property
    def collected_total(self) -> int:
        return self._collected_total

    @property
    def withdrawn_total(self) -> int:
        return self._withdrawn_total

    @property
    def balance(self) -> int:
        """Fees collected and not yet withdrawn."""
        with self._lock:
            return self._collected_total - self._withdrawn_total

    def collect(self, actor: str, amount: int) -> None:
        """
        Move `amount` from the actor's ledger balance into custody.

        Raises:
            FeeTransferFailed: ledger rejected (or errored on) the transfer.
        """
        if not isinstance(amount, int) or isinstance(amount, bool) or amount <= 0:
            raise FeeTransferFailed(actor, amount, "fee amount must be a positive integer")

        with self._lock:
            try:
                ok = self.ledger.transfer_in(actor, amount)
            except Exception as e:
                print(f"[Custody] Ledger error collecting from {actor}: {e}", file=sys.stderr, flush=True)
                raise FeeTransferFailed(actor, amount, f"ledger error: {e}") from e
            if not ok:
                raise FeeTransferFailed(actor, amount)
            self._collected_total += amount

    def withdraw(self, caller: str, destination: str, amount: int) -> int:
        """
        Pay `amount` out of custody to `destination`. Administrator only.

        Returns the remaining withdrawable balance.

        Raises:
            Unauthorized: caller is not the administrator.
            WithdrawFailed: bad destination or amount, more than the balance, or ledger refusal.
        """
        if not self.admin.is_admin(caller):
            raise Unauthorized(caller, "withdraw")
        if not destination:
            raise WithdrawFailed(destination, amount, "destination is required")
        if destination == getattr(self.ledger, "custody_account", None):
            raise WithdrawFailed(destination, amount, "destination is the custody account")
        if not isinstance(amount, int) or isinstance(amount, bool) or amount <= 0:
            raise WithdrawFailed(destination, amount, "amount must be a positive integer")

        with self._lock:
            available = self._collected_total - self._withdrawn_total
            if amount > available:
                raise WithdrawFailed(destination, amount, f"only {available} available")
            try:
                ok = self.ledger.transfer_out(destination, amount)
            except Exception as e:
                print(f"[Custody] Ledger error paying {destination}: {e}", file=sys.stderr, flush=True)
                raise WithdrawFailed(destination, amount, f"ledger error: {e}") from e
            if not ok:
                raise WithdrawFailed(destination, amount)
            self._withdrawn_total += amount
            remaining = self._collected_total - self._withdrawn_total

        print(f"[Custody] Withdrew {amount} to {destination} (remaining {remaining})", file=sys.stderr, flush=True)
        return remaining

    def restore(self, collected_total: int, withdrawn_total: int) -> None:
        """Load totals from a snapshot."""
        if withdrawn_total > collected_total:
            raise ValueError("withdrawn_total cannot exceed collected_total")
        with self._lock:
            self._collected_total = collected_total
            self._withdrawn_total = withdrawn_total

    def to_dict(self) -> Dict[str, Any]:
        with self._lock:
            return {
                "collected_total": self._collected_total,
                "withdrawn_total": self._withdrawn_total,
                "balance": self._collected_total - self._withdrawn_total,
                "administrator": self.admin.administrator,
            }
