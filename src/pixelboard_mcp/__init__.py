"""
Pixelboard MCP - a shared canvas with a cooldown, a fee, and a custodian

Anyone can place one pixel per cooldown for free, or pay the fixed fee to
place one right away. Fees sit in custody until the administrator withdraws them.
"""

__version__ = "0.1.0"

from .admin import AdminSurface, DEFAULT_COOLDOWN_SECONDS
from .canvas import CanvasStore, Cell, PixelPlaced, WIDTH, HEIGHT, FIXED_FEE, MAX_COLOR
from .custodian import FeeCustodian
from .ledger import FeeLedger, InMemoryFeeLedger
from .errors import (
    CanvasError,
    ErrorKind,
    InvalidCoordinates,
    InvalidColor,
    CooldownActive,
    FeeTransferFailed,
    Unauthorized,
    WithdrawFailed,
    InvalidCooldown,
)
from .config import CanvasSettings, PixelboardConfig, ConfigManager, get_config_manager
from .persistence import SnapshotStore

__all__ = [
    "AdminSurface",
    "DEFAULT_COOLDOWN_SECONDS",
    "CanvasStore",
    "Cell",
    "PixelPlaced",
    "WIDTH",
    "HEIGHT",
    "FIXED_FEE",
    "MAX_COLOR",
    "FeeCustodian",
    "FeeLedger",
    "InMemoryFeeLedger",
    "CanvasError",
    "ErrorKind",
    "InvalidCoordinates",
    "InvalidColor",
    "CooldownActive",
    "FeeTransferFailed",
    "Unauthorized",
    "WithdrawFailed",
    "InvalidCooldown",
    "CanvasSettings",
    "PixelboardConfig",
    "ConfigManager",
    "get_config_manager",
    "SnapshotStore",
]
