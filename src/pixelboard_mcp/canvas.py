"""
Canvas Store - the shared 500x500 pixel grid and its write policy.

Two ways to set a pixel:
- Free: allowed once the actor's cooldown has elapsed since their last free write
- Paid: skips the cooldown entirely by paying FIXED_FEE into custody

Every successful write sets color, writer and timestamp together and appends
a PixelPlaced event to an ordered log. A refused write changes nothing.

One RLock guards the grid, the cooldown map and the event log. The paid path
calls the custodian while holding it, so the fee transfer and the cell write
commit together or not at all.
"""

import sys
import threading
import time
from collections import deque
from dataclasses import dataclass, asdict
from typing import Any, Callable, Deque, Dict, List, Optional, Tuple

import numpy as np

from .admin import AdminSurface
from .custodian import FeeCustodian
from .errors import CooldownActive, InvalidColor, InvalidCoordinates


WIDTH = 500
HEIGHT = 500
MAX_COLOR = 0xFFFFFF
FIXED_FEE = 1
EVENT_LOG_SIZE = 10_000


@dataclass(frozen=True)
class Cell:
    """One grid position. Never-written cells are (0, None, 0)."""
    x: int
    y: int
    color: int = 0
    writer: Optional[str] = None
    written_at: int = 0

    @property
    def is_set(self) -> bool:
        """True once any actor has written this cell."""
        return self.writer is not None

    def as_tuple(self) -> Tuple[int, Optional[str], int]:
        return (self.color, self.writer, self.written_at)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "x": self.x,
            "y": self.y,
            "color": self.color,
            "hex": f"#{self.color:06x}",
            "writer": self.writer,
            "written_at": self.written_at,
            "is_set": self.is_set,
        }


@dataclass(frozen=True)
class PixelPlaced:
    """Change notification for one successful write."""
    seq: int
    x: int
    y: int
    color: int
    actor: str
    timestamp: int
    paid: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def wall_clock() -> int:
    """Whole seconds since the epoch."""
    return int(time.time())


def check_coordinates(x: Any, y: Any, width: int = WIDTH, height: int = HEIGHT) -> None:
    for v in (x, y):
        if not isinstance(v, int) or isinstance(v, bool):
            raise InvalidCoordinates(x, y)
    if not (0 <= x < width and 0 <= y < height):
        raise InvalidCoordinates(x, y)


def check_color(color: Any) -> None:
    if not isinstance(color, int) or isinstance(color, bool) or not (0 <= color <= MAX_COLOR):
        raise InvalidColor(color)


class CanvasStore:
    """Owns the grid, the per-actor cooldown map and the event log."""

    def __init__(
        self,
        admin: AdminSurface,
        custodian: FeeCustodian,
        clock: Callable[[], int] = wall_clock,
        fee: int = FIXED_FEE,
        event_log_size: int = EVENT_LOG_SIZE,
    ):
        self.admin = admin
        self.custodian = custodian
        self.clock = clock
        self.fee = fee
        self.width = WIDTH
        self.height = HEIGHT

        # Indexed [y, x]
        self._colors = np.zeros((HEIGHT, WIDTH), dtype=np.uint32)
        self._written_at = np.zeros((HEIGHT, WIDTH), dtype=np.int64)
        self._writers: Dict[Tuple[int, int], str] = {}

        self._cooldowns: Dict[str, int] = {}
        self._events: Deque[PixelPlaced] = deque(maxlen=event_log_size)
        self._next_seq = 1
        self._observers: List[Callable[[PixelPlaced], None]] = []
        self._lock = threading.RLock()

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_pixel(self, x: int, y: int) -> Cell:
        check_coordinates(x, y, self.width, self.height)
        with self._lock:
            return Cell(
                x=x,
                y=y,
                color=int(self._colors[y, x]),
                writer=self._writers.get((x, y)),
                written_at=int(self._written_at[y, x]),
            )

    def region(self, x0: int, y0: int, x1: int, y1: int) -> np.ndarray:
        """Colors of the half-open rectangle [x0, x1) x [y0, y1), indexed [y, x]."""
        check_coordinates(x0, y0, self.width, self.height)
        check_coordinates(x1 - 1, y1 - 1, self.width, self.height)
        if x1 <= x0 or y1 <= y0:
            raise InvalidCoordinates(x1, y1)
        with self._lock:
            return self._colors[y0:y1, x0:x1].copy()

    def colors(self) -> np.ndarray:
        """Copy of the whole color plane."""
        with self._lock:
            return self._colors.copy()

    def cooldown_remaining(self, actor: str) -> int:
        """Seconds until `actor` may write for free again (0 = now)."""
        with self._lock:
            last = self._cooldowns.get(actor)
            if last is None:
                return 0
            return max(0, last + self.admin.cooldown_seconds - self.clock())

    def last_free_write(self, actor: str) -> Optional[int]:
        with self._lock:
            return self._cooldowns.get(actor)

    def events_since(self, seq: int = 0, limit: int = 100) -> List[PixelPlaced]:
        """Events with sequence number greater than `seq`, oldest first."""
        with self._lock:
            out = [e for e in self._events if e.seq > seq]
        return out[:limit]

    @property
    def last_seq(self) -> int:
        return self._next_seq - 1

    def stats(self) -> Dict[str, Any]:
        with self._lock:
            return {
                "width": self.width,
                "height": self.height,
                "cells_written": len(self._writers),
                "actors_on_cooldown_map": len(self._cooldowns),
                "last_seq": self._next_seq - 1,
                "fee": self.fee,
                "cooldown_seconds": self.admin.cooldown_seconds,
            }

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def place_pixel_free(self, actor: str, x: int, y: int, color: int) -> PixelPlaced:
        """
        Write a pixel without paying, subject to the actor's cooldown.

        Raises:
            InvalidCoordinates, InvalidColor, CooldownActive
        """
        check_coordinates(x, y, self.width, self.height)
        check_color(color)

        with self._lock:
            now = self.clock()
            cooldown = self.admin.cooldown_seconds
            last = self._cooldowns.get(actor)
            if last is not None and now < last + cooldown:
                raise CooldownActive(last, cooldown)

            self._set_cell(x, y, color, actor, now)
            self._cooldowns[actor] = now
            return self._emit(x, y, color, actor, now, paid=False)

    def place_pixel_paid(self, actor: str, x: int, y: int, color: int) -> PixelPlaced:
        """
        Write a pixel immediately by paying the fixed fee. Cooldown is neither
        checked nor updated.

        Raises:
            InvalidCoordinates, InvalidColor, FeeTransferFailed
        """
        check_coordinates(x, y, self.width, self.height)
        check_color(color)

        with self._lock:
            now = self.clock()
            self.custodian.collect(actor, self.fee)
            self._set_cell(x, y, color, actor, now)
            return self._emit(x, y, color, actor, now, paid=True)

    def _set_cell(self, x: int, y: int, color: int, actor: str, now: int) -> None:
        self._colors[y, x] = color
        self._written_at[y, x] = now
        self._writers[(x, y)] = actor

    def _emit(self, x: int, y: int, color: int, actor: str, now: int, paid: bool) -> PixelPlaced:
        event = PixelPlaced(
            seq=self._next_seq, x=x, y=y, color=color,
            actor=actor, timestamp=now, paid=paid,
        )
        self._next_seq += 1
        self._events.append(event)
        for observer in list(self._observers):
            try:
                observer(event)
            except Exception as e:
                print(f"[Canvas] Observer error (non-fatal): {e}", file=sys.stderr, flush=True)
        return event

    # ------------------------------------------------------------------
    # Observers
    # ------------------------------------------------------------------

    def subscribe(self, observer: Callable[[PixelPlaced], None]) -> None:
        with self._lock:
            self._observers.append(observer)

    def unsubscribe(self, observer: Callable[[PixelPlaced], None]) -> None:
        with self._lock:
            if observer in self._observers:
                self._observers.remove(observer)

    # ------------------------------------------------------------------
    # Snapshot support
    # ------------------------------------------------------------------

    def snapshot(self) -> Dict[str, Any]:
        """Everything needed to rebuild the grid and cooldown map."""
        with self._lock:
            cells = [
                (x, y, int(self._colors[y, x]), writer, int(self._written_at[y, x]))
                for (x, y), writer in self._writers.items()
            ]
            return {
                "cells": cells,
                "cooldowns": dict(self._cooldowns),
                "next_seq": self._next_seq,
            }

    def restore(self, state: Dict[str, Any]) -> None:
        """Replace grid and cooldowns with a snapshot. Event log starts empty."""
        cells = list(state.get("cells", []))
        for x, y, color, _writer, _written_at in cells:
            check_coordinates(x, y, self.width, self.height)
            check_color(color)

        with self._lock:
            self._colors.fill(0)
            self._written_at.fill(0)
            self._writers.clear()
            for x, y, color, writer, written_at in cells:
                self._set_cell(x, y, color, writer, written_at)
            self._cooldowns = dict(state.get("cooldowns", {}))
            self._events.clear()
            self._next_seq = max(1, int(state.get("next_seq", 1)))
