"""MCP Tool Registry: tool definitions, handler mapping, and server factory.

This module contains:
- TOOLS_ESSENTIAL / TOOLS_STANDARD: Tool schema definitions (tiered)
- HANDLERS: Maps tool names → handler functions
- set_tool_mode() / get_active_tools(): Which tier is exposed
- get_fastmcp() / create_server(): Server factory functions
"""

import inspect
import json
import sys
from typing import List, Optional, Union

from mcp.server import Server
from mcp.server.fastmcp import FastMCP
from mcp.server.transport_security import TransportSecuritySettings
from mcp.types import Tool, TextContent

from .config import TOOL_MODES, DEFAULT_TOOL_MODE
from .handlers import (
    # Canvas
    handle_get_pixel, handle_place_pixel_free, handle_place_pixel_paid,
    handle_get_events, handle_get_cooldown, handle_capture_canvas,
    # Administration
    handle_get_custody, handle_withdraw, handle_set_cooldown, handle_save_snapshot,
)


# ============================================================
# Tool Registry - Tiered System
# ============================================================
# The tool mode (settings file `tool_mode`, overridden by the
# PIXELBOARD_TOOL_MODE environment variable) controls exposure:
#   - "minimal": read + place tools only
#   - "lite": everything, including custody and admin tools

_tool_mode = DEFAULT_TOOL_MODE

_ACTOR = {
    "type": "string",
    "description": "Authenticated identity of the caller (supplied by the host)",
}
_COORD_X = {"type": "integer", "description": "Column, 0-499"}
_COORD_Y = {"type": "integer", "description": "Row, 0-499"}
_COLOR = {
    "type": ["integer", "string"],
    "description": "24-bit RGB color: integer 0..16777215, '#rrggbb' or '0xrrggbb'",
}

# ============================================================
# ESSENTIAL TOOLS - Always visible
# ============================================================
TOOLS_ESSENTIAL = [
    Tool(
        name="get_pixel",
        description="Read one cell: color, last writer, and when it was written. Untouched cells return color 0, writer null.",
        inputSchema={
            "type": "object",
            "properties": {"x": _COORD_X, "y": _COORD_Y},
            "required": ["x", "y"],
        },
    ),
    Tool(
        name="place_pixel_free",
        description="Place a pixel for free. Allowed once per cooldown period per actor; refused with cooldown_active (and retry_at) otherwise.",
        inputSchema={
            "type": "object",
            "properties": {"actor": _ACTOR, "x": _COORD_X, "y": _COORD_Y, "color": _COLOR},
            "required": ["actor", "x", "y", "color"],
        },
    ),
    Tool(
        name="place_pixel_paid",
        description="Place a pixel immediately by paying the fixed fee. Skips the cooldown and does not reset it.",
        inputSchema={
            "type": "object",
            "properties": {"actor": _ACTOR, "x": _COORD_X, "y": _COORD_Y, "color": _COLOR},
            "required": ["actor", "x", "y", "color"],
        },
    ),
    Tool(
        name="get_cooldown",
        description="Seconds until an actor may place a free pixel again, plus the current fee.",
        inputSchema={
            "type": "object",
            "properties": {"actor": _ACTOR},
            "required": ["actor"],
        },
    ),
]

# ============================================================
# STANDARD TOOLS - Visible in lite mode
# ============================================================
TOOLS_STANDARD = [
    Tool(
        name="get_events",
        description="Ordered PixelPlaced log. Pass the last seq you saw as 'since' to get only newer events.",
        inputSchema={
            "type": "object",
            "properties": {
                "since": {"type": "integer", "description": "Return events with seq greater than this (default: 0)", "default": 0},
                "limit": {"type": "integer", "description": "Max events to return (default: 100, max: 1000)", "default": 100},
            },
        },
    ),
    Tool(
        name="capture_canvas",
        description="Export the board (or a region) as a base64-encoded PNG.",
        inputSchema={
            "type": "object",
            "properties": {
                "scale": {"type": "integer", "description": "Upscale factor 1-8 (default: 1)", "default": 1},
                "region": {
                    "type": "array",
                    "items": {"type": "integer"},
                    "description": "Optional [x0, y0, x1, y1], end-exclusive",
                },
            },
        },
    ),
    Tool(
        name="get_custody",
        description="Fees collected from paid pixels, amounts withdrawn, and the withdrawable balance.",
        inputSchema={"type": "object", "properties": {}, "additionalProperties": True},
    ),
    Tool(
        name="withdraw",
        description="Administrator only: pay collected fees out to a destination account.",
        inputSchema={
            "type": "object",
            "properties": {
                "actor": _ACTOR,
                "destination": {"type": "string", "description": "Ledger account to receive the fees"},
                "amount": {"type": "integer", "description": "Amount to withdraw (<= balance)"},
            },
            "required": ["actor", "destination", "amount"],
        },
    ),
    Tool(
        name="set_cooldown",
        description="Administrator only: change the free-write cooldown in seconds.",
        inputSchema={
            "type": "object",
            "properties": {
                "actor": _ACTOR,
                "duration": {"type": "integer", "description": "New cooldown in seconds (>= 0)"},
            },
            "required": ["actor", "duration"],
        },
    ),
    Tool(
        name="save_snapshot",
        description="Administrator only: persist the board to the database now.",
        inputSchema={
            "type": "object",
            "properties": {"actor": _ACTOR},
            "required": ["actor"],
        },
    ),
]


# ============================================================
# Tool Selection by Mode
# ============================================================
def set_tool_mode(mode: Optional[str]) -> str:
    """Select the exposed tier. Raises ValueError for an unknown mode."""
    global _tool_mode
    mode = (mode or DEFAULT_TOOL_MODE).strip().lower()
    if mode not in TOOL_MODES:
        raise ValueError(f"tool mode must be one of {', '.join(TOOL_MODES)}, got {mode!r}")
    _tool_mode = mode
    print(f"[Server] Tool mode: {mode} ({len(get_active_tools())} tools)", file=sys.stderr, flush=True)
    return mode


def get_tool_mode() -> str:
    return _tool_mode


def get_active_tools(mode: Optional[str] = None) -> List[Tool]:
    """Get tools for a mode (default: the current tool mode).

    Modes:
        minimal: essential tools only
        lite: essential + standard
    """
    if (mode or _tool_mode).lower() == "minimal":
        return list(TOOLS_ESSENTIAL)
    return TOOLS_ESSENTIAL + TOOLS_STANDARD


# ============================================================
# Tool Handlers - Maps tool names to handler functions
# ============================================================
HANDLERS = {
    # Essential tools
    "get_pixel": handle_get_pixel,
    "place_pixel_free": handle_place_pixel_free,
    "place_pixel_paid": handle_place_pixel_paid,
    "get_cooldown": handle_get_cooldown,
    # Standard tools
    "get_events": handle_get_events,
    "capture_canvas": handle_capture_canvas,
    "get_custody": handle_get_custody,
    "withdraw": handle_withdraw,
    "set_cooldown": handle_set_cooldown,
    "save_snapshot": handle_save_snapshot,
}


def get_active_handlers():
    """Handlers for the tools exposed in the current mode."""
    return {t.name: HANDLERS[t.name] for t in get_active_tools()}


# ============================================================
# FastMCP Setup
# ============================================================
# Every tool argument has one meaning (and one Python type) across the
# whole tool set; FastMCP signatures are built from this table.
ARGUMENT_TYPES = {
    "actor": str,
    "x": int,
    "y": int,
    "color": Union[int, str],
    "since": int,
    "limit": int,
    "scale": int,
    "region": List[int],
    "destination": str,
    "amount": int,
    "duration": int,
}

_fastmcp: Optional[FastMCP] = None


def tool_signature(tool: Tool) -> inspect.Signature:
    """Keyword-only signature for a tool: required arguments first-class, the rest default to None."""
    schema = tool.inputSchema
    required = set(schema.get("required", []))
    params = []
    for name in schema.get("properties", {}):
        annotation = ARGUMENT_TYPES[name]
        if name in required:
            params.append(inspect.Parameter(name, inspect.Parameter.KEYWORD_ONLY, annotation=annotation))
        else:
            params.append(inspect.Parameter(
                name, inspect.Parameter.KEYWORD_ONLY, default=None, annotation=Optional[annotation],
            ))
    return inspect.Signature(params, return_annotation=dict)


def fastmcp_tool(tool: Tool):
    """Async function FastMCP can introspect, forwarding to the tool's handler.

    Omitted optional arguments are dropped so handlers apply their own defaults.
    Handlers always answer with one JSON TextContent; its payload is returned as-is.
    """
    handler = HANDLERS[tool.name]

    async def run_tool(**kwargs) -> dict:
        arguments = {name: value for name, value in kwargs.items() if value is not None}
        result = await handler(arguments)
        return json.loads(result[0].text)

    run_tool.__signature__ = tool_signature(tool)
    run_tool.__name__ = tool.name
    run_tool.__qualname__ = tool.name
    return run_tool


def get_fastmcp(host: str = "127.0.0.1") -> FastMCP:
    """Get or create the FastMCP server instance for the current tool mode."""
    global _fastmcp
    if _fastmcp is None:
        _fastmcp = FastMCP(
            name="pixelboard-mcp",
            host=host,
            transport_security=TransportSecuritySettings(
                enable_dns_rebinding_protection=True,
                allowed_hosts=["127.0.0.1:*", "localhost:*", "[::1]:*"],
                allowed_origins=["http://127.0.0.1:*", "http://localhost:*", "http://[::1]:*"],
            ),
        )

        tools = get_active_tools()
        for tool in tools:
            _fastmcp.tool(name=tool.name, description=tool.description)(fastmcp_tool(tool))
        print(f"[FastMCP] Registered {len(tools)} tools ({_tool_mode})", file=sys.stderr, flush=True)

    return _fastmcp


async def call_tool(name: str, arguments: Optional[dict]) -> list[TextContent]:
    """Dispatch a tool call by name. Unknown tools get an error payload."""
    handler = get_active_handlers().get(name)
    if not handler:
        return [TextContent(type="text", text=json.dumps({
            "error": f"Unknown tool: {name}",
            "available": list(get_active_handlers().keys()),
        }))]
    return await handler(arguments or {})


def create_server() -> Server:
    """Create and configure the MCP server (stdio mode)."""
    server = Server("pixelboard-mcp")

    @server.list_tools()
    async def list_tools():
        return get_active_tools()

    @server.call_tool()
    async def _call_tool(name: str, arguments: dict | None):
        return await call_tool(name, arguments)

    return server
