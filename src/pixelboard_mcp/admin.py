"""Admin surface - cooldown duration and the administrator identity."""

import sys
import threading
from typing import Any, Dict, Optional

from .errors import InvalidCooldown, Unauthorized


DEFAULT_COOLDOWN_SECONDS = 600


class AdminSurface:
    """
    Runtime configuration shared by the canvas store and the custodian.

    The administrator is fixed at construction. The cooldown can change at
    runtime, but only through set_cooldown by the administrator, unless
    open_cooldown is set (permissive test mode).
    """

    def __init__(
        self,
        administrator: Optional[str],
        cooldown_seconds: int = DEFAULT_COOLDOWN_SECONDS,
        open_cooldown: bool = False,
    ):
        _check_cooldown(cooldown_seconds)
        self._administrator = administrator
        self._cooldown_seconds = cooldown_seconds
        self.open_cooldown = open_cooldown
        self._lock = threading.Lock()

    @property
    def administrator(self) -> Optional[str]:
        return self._administrator

    @property
    def cooldown_seconds(self) -> int:
        return self._cooldown_seconds

    def is_admin(self, identity: Optional[str]) -> bool:
        """Capability check: plain equality against the stored administrator."""
        return self._administrator is not None and identity == self._administrator

    def set_cooldown(self, caller: Optional[str], duration: int) -> int:
        """Change the cooldown. Returns the previous value."""
        if not self.open_cooldown and not self.is_admin(caller):
            raise Unauthorized(caller, "set_cooldown")
        _check_cooldown(duration)
        with self._lock:
            previous = self._cooldown_seconds
            self._cooldown_seconds = duration
        print(f"[Admin] Cooldown {previous}s -> {duration}s (by {caller})", file=sys.stderr, flush=True)
        return previous

    def restore(self, cooldown_seconds: int) -> None:
        """Load the cooldown from a snapshot (no caller check)."""
        _check_cooldown(cooldown_seconds)
        with self._lock:
            self._cooldown_seconds = cooldown_seconds

    def to_dict(self) -> Dict[str, Any]:
        return {
            "administrator": self._administrator,
            "cooldown_seconds": self._cooldown_seconds,
            "open_cooldown": self.open_cooldown,
        }


def _check_cooldown(duration: Any) -> None:
    if not isinstance(duration, int) or isinstance(duration, bool) or duration < 0:
        raise InvalidCooldown(duration)
