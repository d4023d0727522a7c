"""Admin handlers - custody, withdrawals, cooldown, snapshots.

Handlers: get_custody, withdraw, set_cooldown, save_snapshot.

The `actor` argument is the caller identity the host has already
authenticated. Administrator checks compare it with the configured
administrator.
"""

import sys

from mcp.types import TextContent

from ..errors import CanvasError, Unauthorized
from ..server_state import get_board
from .canvas_ops import _reply, _no_board, _int_arg, _require_actor


async def handle_get_custody(arguments: dict) -> list[TextContent]:
    """Collected fees, withdrawals and the withdrawable balance. Read-only, open to everyone."""
    board = get_board()
    if board is None:
        return _no_board()

    result = board.custodian.to_dict()
    result["fee"] = board.canvas.fee
    result["cooldown_seconds"] = board.admin.cooldown_seconds
    return _reply(result)


async def handle_withdraw(arguments: dict) -> list[TextContent]:
    """Pay collected fees out to a destination. Administrator only."""
    board = get_board()
    if board is None:
        return _no_board()

    caller = _require_actor(arguments)
    destination = arguments.get("destination")
    amount = _int_arg(arguments.get("amount"))

    try:
        remaining = board.custodian.withdraw(caller, destination, amount)
    except CanvasError as e:
        return _reply(e.to_dict())

    return _reply({
        "success": True,
        "destination": destination,
        "amount": amount,
        "remaining_balance": remaining,
    })


async def handle_set_cooldown(arguments: dict) -> list[TextContent]:
    """Change the free-write cooldown (seconds). Administrator only unless the board runs with open_cooldown."""
    board = get_board()
    if board is None:
        return _no_board()

    caller = _require_actor(arguments)
    duration = _int_arg(arguments.get("duration"))

    try:
        previous = board.admin.set_cooldown(caller, duration)
    except CanvasError as e:
        return _reply(e.to_dict())

    return _reply({
        "success": True,
        "previous_cooldown_seconds": previous,
        "cooldown_seconds": board.admin.cooldown_seconds,
    })


async def handle_save_snapshot(arguments: dict) -> list[TextContent]:
    """Persist the board now. Administrator only."""
    board = get_board()
    if board is None:
        return _no_board()

    caller = _require_actor(arguments)
    if not board.admin.is_admin(caller):
        return _reply(Unauthorized(caller, "save_snapshot").to_dict())
    if board.snapshots is None:
        return _reply({"error": "Persistence disabled (no database configured)"})

    try:
        summary = board.save_snapshot()
    except Exception as e:
        print(f"[Snapshot] Save failed: {e}", file=sys.stderr, flush=True)
        return _reply({"error": f"Snapshot failed: {e}"})

    return _reply({"success": True, **summary})
