"""
Shared test fixtures for pixelboard-mcp test suite.

Local fixtures in individual test files override these (pytest convention).
"""

import pytest

from pixelboard_mcp.admin import AdminSurface
from pixelboard_mcp.canvas import CanvasStore
from pixelboard_mcp.custodian import FeeCustodian
from pixelboard_mcp.ledger import InMemoryFeeLedger

ADMIN = "admin"
ALICE = "alice"
BOB = "bob"


class FakeClock:
    """Settable clock: tests move time explicitly."""

    def __init__(self, now: int = 0):
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, seconds: int) -> int:
        self.now += seconds
        return self.now


# ---------------------------------------------------------------------------
# Components
# ---------------------------------------------------------------------------

@pytest.fixture
def clock():
    return FakeClock(0)


@pytest.fixture
def ledger():
    """In-memory fee ledger with nobody funded."""
    return InMemoryFeeLedger()


@pytest.fixture
def admin():
    """Administrator 'admin', cooldown 600s, restricted set_cooldown."""
    return AdminSurface(administrator=ADMIN, cooldown_seconds=600)


@pytest.fixture
def custodian(ledger, admin):
    return FeeCustodian(ledger, admin)


@pytest.fixture
def canvas(admin, custodian, clock):
    return CanvasStore(admin, custodian, clock=clock)


def fund(ledger: InMemoryFeeLedger, actor: str, amount: int) -> None:
    """Give an actor `amount` tokens and approve custody to pull them.

    Plain function (not a fixture). Importable as:

        from conftest import fund
    """
    ledger.deposit(actor, amount)
    ledger.approve(actor, ledger.allowance(actor) + amount)


# ---------------------------------------------------------------------------
# Installed board (for handler / HTTP tests)
# ---------------------------------------------------------------------------

@pytest.fixture
def board(clock):
    """A board installed as the process-wide board; removed afterwards."""
    from pixelboard_mcp.config import CanvasSettings
    from pixelboard_mcp.server_state import build_board, set_board

    settings = CanvasSettings(administrator=ADMIN, cooldown_seconds=600, fixed_fee=5)
    b = build_board(settings, clock=clock)
    previous = set_board(b)
    yield b
    set_board(previous)
