"""
Canvas Errors - every way a canvas operation can be refused.

All errors are synchronous, never retried internally, and never leave partial
state behind. Each carries enough detail for the caller to decide what to do:

- InvalidCoordinates / InvalidColor: bad input, don't retry as-is
- CooldownActive: retry after `retry_at`
- FeeTransferFailed: fund or authorize on the fee ledger, then retry
- Unauthorized: caller lacks the administrator capability
- WithdrawFailed: custody payout refused
- InvalidCooldown: bad cooldown duration
"""

from enum import Enum
from typing import Any, Dict, Optional


class ErrorKind(Enum):
    """Classification of canvas errors."""
    INVALID_COORDINATES = "invalid_coordinates"
    INVALID_COLOR = "invalid_color"
    COOLDOWN_ACTIVE = "cooldown_active"
    FEE_TRANSFER_FAILED = "fee_transfer_failed"
    UNAUTHORIZED = "unauthorized"
    WITHDRAW_FAILED = "withdraw_failed"
    INVALID_COOLDOWN = "invalid_cooldown"


class CanvasError(Exception):
    """Base class for refused canvas operations."""
    kind: ErrorKind = ErrorKind.INVALID_COORDINATES
    retryable: bool = False

    def details(self) -> Dict[str, Any]:
        return {}

    def to_dict(self) -> Dict[str, Any]:
        """Payload for tool responses."""
        data = {
            "error": self.kind.value,
            "message": str(self),
            "retryable": self.retryable,
        }
        data.update(self.details())
        return data


class InvalidCoordinates(CanvasError):
    kind = ErrorKind.INVALID_COORDINATES

    def __init__(self, x: Any, y: Any):
        self.x = x
        self.y = y
        super().__init__(f"Coordinates out of bounds: ({x}, {y})")

    def details(self) -> Dict[str, Any]:
        return {"x": self.x, "y": self.y}


class InvalidColor(CanvasError):
    kind = ErrorKind.INVALID_COLOR

    def __init__(self, color: Any):
        self.color = color
        super().__init__(f"Color must be a 24-bit RGB integer, got {color!r}")

    def details(self) -> Dict[str, Any]:
        return {"color": self.color}


class CooldownActive(CanvasError):
    kind = ErrorKind.COOLDOWN_ACTIVE
    retryable = True

    def __init__(self, last_write_time: int, cooldown: int):
        self.last_write_time = last_write_time
        self.cooldown = cooldown
        super().__init__(
            f"Cooldown active: last free write at {last_write_time}, "
            f"next allowed at {self.retry_at}"
        )

    @property
    def retry_at(self) -> int:
        return self.last_write_time + self.cooldown

    def details(self) -> Dict[str, Any]:
        return {
            "last_write_time": self.last_write_time,
            "cooldown": self.cooldown,
            "retry_at": self.retry_at,
        }


class FeeTransferFailed(CanvasError):
    kind = ErrorKind.FEE_TRANSFER_FAILED
    retryable = True

    def __init__(self, actor: str, amount: int, reason: Optional[str] = None):
        self.actor = actor
        self.amount = amount
        self.reason = reason or "transfer rejected by fee ledger"
        super().__init__(f"Fee transfer of {amount} from {actor} failed: {self.reason}")

    def details(self) -> Dict[str, Any]:
        return {"actor": self.actor, "amount": self.amount, "reason": self.reason}


class Unauthorized(CanvasError):
    kind = ErrorKind.UNAUTHORIZED

    def __init__(self, caller: Optional[str], operation: str):
        self.caller = caller
        self.operation = operation
        super().__init__(f"{caller!r} is not allowed to {operation}")

    def details(self) -> Dict[str, Any]:
        return {"caller": self.caller, "operation": self.operation}


class WithdrawFailed(CanvasError):
    kind = ErrorKind.WITHDRAW_FAILED

    def __init__(self, destination: str, amount: Any, reason: Optional[str] = None):
        self.destination = destination
        self.amount = amount
        self.reason = reason or "transfer rejected by fee ledger"
        super().__init__(f"Withdrawal of {amount} to {destination} failed: {self.reason}")

    def details(self) -> Dict[str, Any]:
        return {"destination": self.destination, "amount": self.amount, "reason": self.reason}


class InvalidCooldown(CanvasError):
    kind = ErrorKind.INVALID_COOLDOWN

    def __init__(self, duration: Any):
        self.duration = duration
        super().__init__(f"Cooldown must be a non-negative integer number of seconds, got {duration!r}")

    def details(self) -> Dict[str, Any]:
        return {"duration": self.duration}
