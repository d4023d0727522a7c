"""
Pixelboard MCP Server

A shared 500x500 canvas:
- get_pixel: read one cell
- place_pixel_free: write once per cooldown
- place_pixel_paid: write now, pay the fixed fee
- withdraw / set_cooldown: administrator tools

Transports:
- stdio: Local single-client (default)
- HTTP (--http): Streamable HTTP at /mcp, plus /health, /v1/tools/call, /canvas.png

The host is responsible for authenticating callers; tools take the caller
identity as the `actor` argument.
"""

import argparse
import asyncio
import json
import os
import signal
import sys
from pathlib import Path
from typing import Optional

from mcp.server.stdio import stdio_server

from .config import ConfigManager, CanvasSettings
from .ledger import FeeLedger
from .server_state import Board, build_board, get_board, set_board, DEFAULT_HTTP_PORT
from .tool_registry import create_server, call_tool, get_active_handlers, get_fastmcp, set_tool_mode


SERVER_READY = False


def apply_tool_mode(config_mode: Optional[str] = None) -> str:
    """
    Select which tools are exposed. PIXELBOARD_TOOL_MODE wins over the
    settings file; an unknown env value is reported and ignored.
    """
    env_mode = os.environ.get("PIXELBOARD_TOOL_MODE")
    if env_mode:
        try:
            return set_tool_mode(env_mode)
        except ValueError as e:
            print(f"[Server] Ignoring PIXELBOARD_TOOL_MODE: {e}", file=sys.stderr, flush=True)
    return set_tool_mode(config_mode)


def wake(
    settings: Optional[CanvasSettings] = None,
    db_path: Optional[str] = None,
    ledger: Optional[FeeLedger] = None,
) -> Optional[Board]:
    """
    Build the board and install it for the handlers. Safe, never crashes.

    Args:
        settings: Canvas settings (default: loaded from PIXELBOARD_CONFIG,
            which also selects the tool mode)
        db_path: SQLite snapshot path, None disables persistence
        ledger: Fee ledger client (default: in-memory reference ledger)
    """
    global SERVER_READY

    if settings is None:
        config = ConfigManager(os.environ.get("PIXELBOARD_CONFIG")).load()
        apply_tool_mode(config.tool_mode)
        settings = config.canvas

    env_admin = os.environ.get("PIXELBOARD_ADMIN")
    if env_admin:
        settings.administrator = env_admin

    try:
        board = build_board(settings, ledger=ledger, db_path=db_path)
    except Exception as e:
        print(f"[Wake] ERROR: board failed to start: {e}", file=sys.stderr, flush=True)
        if db_path:
            print(f"[Wake] Retrying without persistence ({db_path} unusable)", file=sys.stderr, flush=True)
            try:
                board = build_board(settings, ledger=ledger, db_path=None)
            except Exception as e2:
                print(f"[Wake] ERROR: board unavailable: {e2}", file=sys.stderr, flush=True)
                return None
        else:
            return None

    set_board(board)
    SERVER_READY = True
    print(f"[Wake] ✓ Board ready (administrator: {settings.administrator or 'none'})", file=sys.stderr, flush=True)
    return board


def sleep():
    """Save and tear down the board. Call on server shutdown."""
    global SERVER_READY
    SERVER_READY = False

    board = set_board(None)
    if board is None:
        return

    if board.snapshots is not None:
        try:
            summary = board.save_snapshot()
            print(f"[Sleep] Saved {summary['cells']} cells, balance {summary['balance']}", file=sys.stderr, flush=True)
        except Exception as e:
            try:
                print(f"[Sleep] Error saving snapshot: {e}", file=sys.stderr, flush=True)
            except (ValueError, OSError):
                pass
        finally:
            board.snapshots.close()


async def run_stdio_server():
    """Run the MCP server over stdio (local)."""
    server = create_server()

    def shutdown_handler(sig, frame):
        try:
            print("\nShutting down...", file=sys.stderr, flush=True)
        except (ValueError, OSError):
            pass
        sleep()
        raise SystemExit(0)

    signal.signal(signal.SIGINT, shutdown_handler)
    signal.signal(signal.SIGTERM, shutdown_handler)

    async with stdio_server() as (read_stream, write_stream):
        await server.run(read_stream, write_stream, server.create_initialization_options())


def create_http_app(host: str = "127.0.0.1"):
    """Starlette app: FastMCP Streamable HTTP at /mcp plus the REST helpers."""
    from starlette.routing import Route
    from starlette.responses import JSONResponse, PlainTextResponse, Response

    mcp = get_fastmcp(host=host)
    app = mcp.streamable_http_app()

    async def health_check(request):
        """Simple health check - returns 200 if server is running."""
        status = "ok" if SERVER_READY and get_board() is not None else "starting"
        return PlainTextResponse(f"{status}\n")

    async def rest_tool_call(request):
        """REST API for calling tools directly.

        POST /v1/tools/call
        Body: {"name": "tool_name", "arguments": {...}}
        Returns: {"success": true, "result": ...} or {"success": false, "error": "..."}
        """
        try:
            body = await request.json()
        except json.JSONDecodeError:
            return JSONResponse({"success": False, "error": "Body must be JSON"}, status_code=400)

        if not isinstance(body, dict):
            return JSONResponse({"success": False, "error": "Body must be a JSON object"}, status_code=400)

        tool_name = body.get("name")
        arguments = body.get("arguments") or {}
        if not tool_name:
            return JSONResponse({"success": False, "error": "Missing 'name' field"}, status_code=400)
        if not isinstance(arguments, dict):
            return JSONResponse({"success": False, "error": "'arguments' must be an object"}, status_code=400)
        if tool_name not in get_active_handlers():
            return JSONResponse({"success": False, "error": f"Unknown tool: {tool_name}"}, status_code=404)

        try:
            result = await call_tool(tool_name, arguments)
        except Exception as e:
            print(f"[REST API] Error: {e}", file=sys.stderr, flush=True)
            return JSONResponse({"success": False, "error": str(e)}, status_code=500)

        parsed = json.loads(result[0].text) if result else None
        if isinstance(parsed, dict) and "error" in parsed:
            return JSONResponse({"success": False, "error": parsed["error"], "result": parsed})
        return JSONResponse({"success": True, "result": parsed})

    async def canvas_png(request):
        """GET /canvas.png?scale=N - current board as PNG."""
        from .render import render_png

        board = get_board()
        if board is None:
            return JSONResponse({"error": "Board not initialized"}, status_code=503)
        try:
            scale = int(request.query_params.get("scale", "1"))
            png = render_png(board.canvas, scale=scale)
        except ValueError as e:
            return JSONResponse({"error": str(e)}, status_code=400)
        return Response(png, media_type="image/png", headers={"Cache-Control": "no-store"})

    app.routes.append(Route("/health", health_check, methods=["GET"]))
    app.routes.append(Route("/v1/tools/call", rest_tool_call, methods=["POST"]))
    app.routes.append(Route("/canvas.png", canvas_png, methods=["GET"]))
    print("[Server] Registered /mcp, /health, /v1/tools/call, /canvas.png", file=sys.stderr, flush=True)
    return app


def run_http_server(host: str, port: int):
    """Run the MCP server over HTTP with uvicorn."""
    import uvicorn

    app = create_http_app(host=host)
    config = uvicorn.Config(app, host=host, port=port, log_level="warning")
    server = uvicorn.Server(config)
    print(f"[Server] HTTP server on http://{host}:{port}/mcp", file=sys.stderr, flush=True)
    asyncio.run(server.serve())


def main():
    """Entry point."""
    parser = argparse.ArgumentParser(description="Pixelboard MCP Server")
    parser.add_argument("--http", action="store_true", dest="http_server",
                        help="Run HTTP server (Streamable HTTP at /mcp)")
    parser.add_argument("--host", default="127.0.0.1", help="HTTP server host (default: 127.0.0.1)")
    parser.add_argument("--port", type=int, default=DEFAULT_HTTP_PORT,
                        help=f"HTTP server port (default: {DEFAULT_HTTP_PORT})")
    parser.add_argument("--config", default=None, help="Settings file (YAML or JSON)")
    parser.add_argument("--db", default=None, help="SQLite snapshot path (default: ~/.pixelboard/pixelboard.db)")
    parser.add_argument("--no-persist", action="store_true", help="Keep the board in memory only")
    args = parser.parse_args()

    config_path = args.config or os.environ.get("PIXELBOARD_CONFIG")
    config = ConfigManager(Path(config_path) if config_path else None).load()
    apply_tool_mode(config.tool_mode)
    settings = config.canvas

    if args.no_persist:
        db_path = None
    else:
        db_path = args.db or os.environ.get("PIXELBOARD_DB")
        if not db_path:
            home_dir = Path.home() / ".pixelboard"
            home_dir.mkdir(parents=True, exist_ok=True)
            db_path = str(home_dir / "pixelboard.db")
        print(f"[Server] Using snapshot database: {db_path}", file=sys.stderr, flush=True)

    if wake(settings, db_path=db_path) is None:
        sys.exit(1)

    try:
        if args.http_server:
            run_http_server(args.host, args.port)
        else:
            asyncio.run(run_stdio_server())
    except KeyboardInterrupt:
        try:
            print("\nInterrupted by user", file=sys.stderr, flush=True)
        except (ValueError, OSError):
            pass
    finally:
        sleep()


if __name__ == "__main__":
    main()
