"""
Server State - constants and the process-wide board for the pixelboard-mcp server.

The board (admin surface, fee ledger, custodian, canvas store and optional
snapshot store) is built once in server.wake() and shared by every handler
through get_board().
"""

import sys
import threading
from dataclasses import dataclass, field
from typing import Callable, Optional

from .admin import AdminSurface
from .canvas import CanvasStore, PixelPlaced, wall_clock
from .config import CanvasSettings
from .custodian import FeeCustodian
from .ledger import FeeLedger, InMemoryFeeLedger, describe_ledger
from .persistence import SnapshotStore

# ---------------------------------------------------------------------------
# Configuration constants
# ---------------------------------------------------------------------------

DEFAULT_HTTP_PORT = 8767
DEFAULT_EVENTS_LIMIT = 100
MAX_EVENTS_LIMIT = 1000
SNAPSHOT_ERROR_LOG_THROTTLE = 10  # Log every Nth consecutive snapshot failure


@dataclass
class Board:
    """Everything one canvas needs, wired together."""
    settings: CanvasSettings
    admin: AdminSurface
    ledger: FeeLedger
    custodian: FeeCustodian
    canvas: CanvasStore
    snapshots: Optional[SnapshotStore] = None
    writes_since_snapshot: int = 0
    snapshot_failures: int = field(default=0, repr=False)

    def save_snapshot(self) -> Optional[dict]:
        if self.snapshots is None:
            return None
        summary = self.snapshots.save(self.canvas, self.custodian, self.admin)
        self.writes_since_snapshot = 0
        return summary

    def _on_pixel_placed(self, event: PixelPlaced) -> None:
        self.writes_since_snapshot += 1
        every = self.settings.snapshot_every
        if self.snapshots is None or every <= 0 or self.writes_since_snapshot < every:
            return
        try:
            self.save_snapshot()
            self.snapshot_failures = 0
        except Exception as e:
            self.snapshot_failures += 1
            if self.snapshot_failures % SNAPSHOT_ERROR_LOG_THROTTLE == 1:
                print(f"[Snapshot] Periodic save failed (non-fatal, #{self.snapshot_failures}): {e}",
                      file=sys.stderr, flush=True)


def build_board(
    settings: CanvasSettings,
    ledger: Optional[FeeLedger] = None,
    clock: Callable[[], int] = wall_clock,
    db_path: Optional[str] = None,
) -> Board:
    """Wire a board from settings. Restores the snapshot at db_path if there is one."""
    if ledger is None:
        ledger = InMemoryFeeLedger(custody_account=settings.custody_account)

    admin = AdminSurface(
        administrator=settings.administrator,
        cooldown_seconds=settings.cooldown_seconds,
        open_cooldown=settings.open_cooldown,
    )
    custodian = FeeCustodian(ledger, admin)
    canvas = CanvasStore(
        admin, custodian,
        clock=clock,
        fee=settings.fixed_fee,
        event_log_size=settings.event_log_size,
    )
    snapshots = SnapshotStore(db_path) if db_path else None
    board = Board(
        settings=settings, admin=admin, ledger=ledger,
        custodian=custodian, canvas=canvas, snapshots=snapshots,
    )
    if snapshots is not None:
        snapshots.load(canvas, custodian, admin)
    canvas.subscribe(board._on_pixel_placed)

    if settings.administrator is None:
        print("[Board] Warning: no administrator configured - withdrawals disabled", file=sys.stderr, flush=True)
    print(f"[Board] Ready: {canvas.width}x{canvas.height}, cooldown {admin.cooldown_seconds}s, "
          f"fee {canvas.fee}, ledger {describe_ledger(ledger)}", file=sys.stderr, flush=True)
    return board


# ---------------------------------------------------------------------------
# Process-wide board
# ---------------------------------------------------------------------------

_state_lock = threading.Lock()
_board: Optional[Board] = None


def get_board() -> Optional[Board]:
    return _board


def set_board(board: Optional[Board]) -> Optional[Board]:
    """Install a board (or None). Returns the one it replaced."""
    global _board
    with _state_lock:
        previous = _board
        _board = board
    return previous
