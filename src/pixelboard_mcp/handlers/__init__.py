"""MCP Tool Handlers: organized by domain.

Each module groups handlers by their functional area.
"""

from .canvas_ops import (
    handle_get_pixel,
    handle_place_pixel_free,
    handle_place_pixel_paid,
    handle_get_events,
    handle_get_cooldown,
    handle_capture_canvas,
)

from .admin_ops import (
    handle_get_custody,
    handle_withdraw,
    handle_set_cooldown,
    handle_save_snapshot,
)

__all__ = [
    # Canvas reads and writes
    "handle_get_pixel",
    "handle_place_pixel_free",
    "handle_place_pixel_paid",
    "handle_get_events",
    "handle_get_cooldown",
    "handle_capture_canvas",
    # Custody and administration
    "handle_get_custody",
    "handle_withdraw",
    "handle_set_cooldown",
    "handle_save_snapshot",
]
