"""Canvas handlers - read pixels, place pixels, follow the event log, export the board.

Handlers: get_pixel, place_pixel_free, place_pixel_paid, get_events,
get_cooldown, capture_canvas.

Every handler takes the raw MCP arguments dict and returns a single JSON
TextContent. Refusals come back as {"error": <kind>, ...}; they never raise.
"""

import json
import sys
import traceback

from mcp.types import TextContent

from ..errors import CanvasError
from ..server_state import get_board, DEFAULT_EVENTS_LIMIT, MAX_EVENTS_LIMIT


def _reply(payload: dict) -> list[TextContent]:
    return [TextContent(type="text", text=json.dumps(payload))]


def _no_board() -> list[TextContent]:
    return _reply({"error": "Board not initialized"})


def _int_arg(value):
    """Accept ints, and numeric strings from loosely typed clients. Anything else passes through for validation."""
    if isinstance(value, str):
        text = value.strip()
        if text.lstrip("-").isdigit():
            return int(text)
    return value


def parse_color(value):
    """Accept 0xRRGGBB ints, "#rrggbb", "0xrrggbb" or decimal strings."""
    if isinstance(value, str):
        text = value.strip().lower()
        try:
            if text.startswith("#"):
                return int(text[1:], 16)
            if text.startswith("0x"):
                return int(text[2:], 16)
            return int(text)
        except ValueError:
            return value
    return value


def _require_actor(arguments: dict):
    actor = arguments.get("actor")
    if not actor or not isinstance(actor, str):
        return None
    return actor


async def handle_get_pixel(arguments: dict) -> list[TextContent]:
    """Read one cell. Never-written cells come back as color 0, writer null, written_at 0."""
    board = get_board()
    if board is None:
        return _no_board()

    try:
        cell = board.canvas.get_pixel(_int_arg(arguments.get("x")), _int_arg(arguments.get("y")))
    except CanvasError as e:
        return _reply(e.to_dict())
    return _reply(cell.to_dict())


async def _place(arguments: dict, paid: bool) -> list[TextContent]:
    board = get_board()
    if board is None:
        return _no_board()

    actor = _require_actor(arguments)
    if actor is None:
        return _reply({"error": "actor is required"})

    x = _int_arg(arguments.get("x"))
    y = _int_arg(arguments.get("y"))
    color = parse_color(arguments.get("color"))
    place = board.canvas.place_pixel_paid if paid else board.canvas.place_pixel_free

    try:
        event = place(actor, x, y, color)
    except CanvasError as e:
        return _reply(e.to_dict())
    except Exception as e:
        print(f"[Canvas] Unexpected error placing pixel for {actor}: {e}", file=sys.stderr, flush=True)
        traceback.print_exc(file=sys.stderr)
        return _reply({"error": str(e)})

    result = {"success": True, "event": event.to_dict()}
    if paid:
        result["fee"] = board.canvas.fee
    else:
        result["next_free_write_at"] = event.timestamp + board.admin.cooldown_seconds
    return _reply(result)


async def handle_place_pixel_free(arguments: dict) -> list[TextContent]:
    """Place a pixel for free; refused with cooldown_active while the actor's cooldown runs."""
    return await _place(arguments, paid=False)


async def handle_place_pixel_paid(arguments: dict) -> list[TextContent]:
    """Place a pixel immediately by paying the fixed fee from the actor's ledger balance."""
    return await _place(arguments, paid=True)


async def handle_get_events(arguments: dict) -> list[TextContent]:
    """PixelPlaced events after `since` (sequence number), oldest first."""
    board = get_board()
    if board is None:
        return _no_board()

    since = _int_arg(arguments.get("since", 0))
    limit = _int_arg(arguments.get("limit", DEFAULT_EVENTS_LIMIT))
    if not isinstance(since, int) or not isinstance(limit, int) or limit <= 0:
        return _reply({"error": "since and limit must be integers (limit > 0)"})
    limit = min(limit, MAX_EVENTS_LIMIT)

    events = board.canvas.events_since(since, limit)
    return _reply({
        "events": [e.to_dict() for e in events],
        "count": len(events),
        "last_seq": board.canvas.last_seq,
    })


async def handle_get_cooldown(arguments: dict) -> list[TextContent]:
    """How long until an actor may place a free pixel again."""
    board = get_board()
    if board is None:
        return _no_board()

    actor = _require_actor(arguments)
    if actor is None:
        return _reply({"error": "actor is required"})

    remaining = board.canvas.cooldown_remaining(actor)
    return _reply({
        "actor": actor,
        "cooldown_seconds": board.admin.cooldown_seconds,
        "last_free_write": board.canvas.last_free_write(actor),
        "remaining_seconds": remaining,
        "can_place_free": remaining == 0,
        "fee": board.canvas.fee,
    })


async def handle_capture_canvas(arguments: dict) -> list[TextContent]:
    """
    Export the board (or a region) as base64-encoded PNG.

    Display as: <img src='data:image/png;base64,{image_base64}' />
    """
    from ..render import render_png_base64

    board = get_board()
    if board is None:
        return _no_board()

    scale = _int_arg(arguments.get("scale", 1))
    region = arguments.get("region")
    if region is not None:
        if not isinstance(region, list) or len(region) != 4:
            return _reply({"error": "region must be [x0, y0, x1, y1]"})
        region = tuple(_int_arg(v) for v in region)

    try:
        image_base64 = render_png_base64(board.canvas, scale=scale, region=region)
    except CanvasError as e:
        return _reply(e.to_dict())
    except (ValueError, TypeError) as e:
        return _reply({"error": str(e)})

    x0, y0, x1, y1 = region if region else (0, 0, board.canvas.width, board.canvas.height)
    return _reply({
        "success": True,
        "image_base64": image_base64,
        "width": (x1 - x0) * scale,
        "height": (y1 - y0) * scale,
        "scale": scale,
        "format": "PNG",
        "last_seq": board.canvas.last_seq,
    })
