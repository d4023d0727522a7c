"""Tests for ledger module: the in-memory reference fee ledger."""

import pytest

from pixelboard_mcp.ledger import FeeLedger, InMemoryFeeLedger, describe_ledger

from conftest import ALICE, BOB, fund


class TestInMemoryFeeLedger:

    def test_satisfies_protocol(self, ledger):
        assert isinstance(ledger, FeeLedger)

    def test_transfer_in_needs_balance_and_allowance(self, ledger):
        ledger.deposit(ALICE, 5)
        assert ledger.transfer_in(ALICE, 1) is False
        ledger.approve(ALICE, 1)
        assert ledger.transfer_in(ALICE, 1) is True
        assert ledger.allowance(ALICE) == 0
        assert ledger.transfer_in(ALICE, 1) is False

    def test_transfer_in_is_all_or_nothing(self, ledger):
        fund(ledger, ALICE, 3)
        assert ledger.transfer_in(ALICE, 4) is False
        assert ledger.balance_of(ALICE) == 3
        assert ledger.balance_of(ledger.custody_account) == 0

    def test_transfer_out_limited_to_custody(self, ledger):
        fund(ledger, ALICE, 3)
        ledger.transfer_in(ALICE, 3)
        assert ledger.transfer_out(BOB, 4) is False
        assert ledger.transfer_out(BOB, 3) is True
        assert ledger.balance_of(BOB) == 3
        assert ledger.balance_of(ledger.custody_account) == 0

    def test_non_positive_transfers_rejected(self, ledger):
        fund(ledger, ALICE, 3)
        assert ledger.transfer_in(ALICE, 0) is False
        assert ledger.transfer_out(BOB, -1) is False

    def test_approval_optional(self):
        ledger = InMemoryFeeLedger(require_approval=False)
        ledger.deposit(ALICE, 2)
        assert ledger.transfer_in(ALICE, 2) is True

    def test_negative_deposit_rejected(self, ledger):
        with pytest.raises(ValueError):
            ledger.deposit(ALICE, -1)
        with pytest.raises(ValueError):
            ledger.approve(ALICE, -1)

    def test_describe(self, ledger):
        assert describe_ledger(ledger) == f"InMemoryFeeLedger({ledger.custody_account})"
