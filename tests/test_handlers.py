"""Tests for MCP tool handlers: argument handling, JSON payloads, error mapping.

Handlers never raise: every refusal comes back as a JSON payload with an
"error" key.
"""

import asyncio
import json

import pytest

from pixelboard_mcp.handlers import (
    handle_get_pixel, handle_place_pixel_free, handle_place_pixel_paid,
    handle_get_events, handle_get_cooldown, handle_capture_canvas,
    handle_get_custody, handle_withdraw, handle_set_cooldown, handle_save_snapshot,
)
from pixelboard_mcp.handlers.canvas_ops import parse_color
from pixelboard_mcp.server_state import get_board, set_board

from conftest import ADMIN, ALICE, BOB, fund


# ---------------------------------------------------------------------------
# Helper to run async handlers in sync tests
# ---------------------------------------------------------------------------

def run_async(coro):
    """Run an async function synchronously."""
    loop = asyncio.new_event_loop()
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


def call(handler, **arguments):
    """Run a handler and decode its single JSON TextContent."""
    result = run_async(handler(arguments))
    assert isinstance(result, list)
    assert len(result) == 1
    return json.loads(result[0].text)


class TestNoBoard:

    @pytest.mark.parametrize("handler", [
        handle_get_pixel, handle_place_pixel_free, handle_place_pixel_paid,
        handle_get_events, handle_get_cooldown, handle_capture_canvas,
        handle_get_custody, handle_withdraw, handle_set_cooldown, handle_save_snapshot,
    ])
    def test_uninitialized_board_reports_error(self, handler):
        previous = set_board(None)
        try:
            data = call(handler, actor=ALICE, x=0, y=0, color=1)
            assert data["error"] == "Board not initialized"
        finally:
            set_board(previous)


class TestParseColor:

    @pytest.mark.parametrize("value,expected", [
        (0xFF0000, 0xFF0000),
        ("#ff0000", 0xFF0000),
        ("0x00FF00", 0x00FF00),
        ("255", 255),
        ("red", "red"),
        (None, None),
    ])
    def test_parse(self, value, expected):
        assert parse_color(value) == expected


class TestPixelHandlers:

    def test_get_untouched_pixel(self, board):
        data = call(handle_get_pixel, x=3, y=4)
        assert data["color"] == 0
        assert data["writer"] is None
        assert data["written_at"] == 0
        assert data["is_set"] is False

    def test_get_pixel_out_of_range(self, board):
        data = call(handle_get_pixel, x=500, y=0)
        assert data["error"] == "invalid_coordinates"
        assert data["retryable"] is False

    def test_place_free_then_read(self, board):
        data = call(handle_place_pixel_free, actor=ALICE, x=10, y=10, color="#ff0000")
        assert data["success"] is True
        assert data["event"]["seq"] == 1
        assert data["event"]["paid"] is False
        assert data["next_free_write_at"] == 600

        cell = call(handle_get_pixel, x=10, y=10)
        assert (cell["color"], cell["writer"], cell["written_at"]) == (0xFF0000, ALICE, 0)

    def test_string_coordinates_accepted(self, board):
        data = call(handle_place_pixel_free, actor=ALICE, x="1", y="2", color=5)
        assert data["success"] is True

    def test_cooldown_refusal_payload(self, board, clock):
        call(handle_place_pixel_free, actor=ALICE, x=0, y=0, color=1)
        clock.now = 300
        data = call(handle_place_pixel_free, actor=ALICE, x=0, y=0, color=2)
        assert data["error"] == "cooldown_active"
        assert data["last_write_time"] == 0
        assert data["cooldown"] == 600
        assert data["retry_at"] == 600

    def test_missing_actor(self, board):
        data = call(handle_place_pixel_free, x=0, y=0, color=1)
        assert data["error"] == "actor is required"

    def test_unexpected_error_reports_message_only(self, board, monkeypatch, capsys):
        def explode(*args):
            raise RuntimeError("grid offline")

        monkeypatch.setattr(board.canvas, "place_pixel_free", explode)
        data = call(handle_place_pixel_free, actor=ALICE, x=0, y=0, color=1)
        assert data == {"error": "grid offline"}
        assert "Traceback" in capsys.readouterr().err

    def test_bad_color(self, board):
        data = call(handle_place_pixel_free, actor=ALICE, x=0, y=0, color="chartreuse")
        assert data["error"] == "invalid_color"

    def test_paid_without_funds(self, board):
        data = call(handle_place_pixel_paid, actor=BOB, x=1, y=1, color=0xABCDEF)
        assert data["error"] == "fee_transfer_failed"
        assert call(handle_get_pixel, x=1, y=1)["is_set"] is False

    def test_paid_with_funds(self, board):
        fund(board.ledger, BOB, 5)
        data = call(handle_place_pixel_paid, actor=BOB, x=1, y=1, color=0xABCDEF)
        assert data["success"] is True
        assert data["fee"] == 5
        assert data["event"]["paid"] is True
        assert call(handle_get_custody)["balance"] == 5


class TestEventsAndCooldown:

    def test_events_since(self, board):
        board.admin.set_cooldown(ADMIN, 0)
        for i in range(3):
            call(handle_place_pixel_free, actor=ALICE, x=i, y=0, color=i)
        data = call(handle_get_events, since=1)
        assert [e["seq"] for e in data["events"]] == [2, 3]
        assert data["last_seq"] == 3

    def test_events_bad_limit(self, board):
        data = call(handle_get_events, limit=0)
        assert "error" in data

    def test_get_cooldown(self, board, clock):
        call(handle_place_pixel_free, actor=ALICE, x=0, y=0, color=1)
        clock.now = 100
        data = call(handle_get_cooldown, actor=ALICE)
        assert data["remaining_seconds"] == 500
        assert data["can_place_free"] is False
        assert data["last_free_write"] == 0

    def test_get_cooldown_fresh_actor(self, board):
        data = call(handle_get_cooldown, actor=BOB)
        assert data["can_place_free"] is True
        assert data["last_free_write"] is None


class TestCaptureCanvas:

    def test_capture_full(self, board):
        data = call(handle_capture_canvas)
        assert data["success"] is True
        assert (data["width"], data["height"]) == (500, 500)
        assert data["format"] == "PNG"

    def test_capture_region_scaled(self, board):
        data = call(handle_capture_canvas, region=[0, 0, 10, 5], scale=2)
        assert (data["width"], data["height"]) == (20, 10)

    def test_capture_bad_region(self, board):
        assert "error" in call(handle_capture_canvas, region=[0, 0, 10])
        assert call(handle_capture_canvas, region=[0, 0, 600, 10])["error"] == "invalid_coordinates"

    def test_capture_bad_scale(self, board):
        assert "error" in call(handle_capture_canvas, scale=50)


class TestAdminHandlers:

    @pytest.fixture
    def funded_board(self, board):
        fund(board.ledger, BOB, 10)
        call(handle_place_pixel_paid, actor=BOB, x=0, y=0, color=1)
        call(handle_place_pixel_paid, actor=BOB, x=0, y=1, color=1)
        return board

    def test_get_custody(self, funded_board):
        data = call(handle_get_custody)
        assert data["collected_total"] == 10
        assert data["balance"] == 10
        assert data["administrator"] == ADMIN

    def test_admin_withdraws(self, funded_board):
        data = call(handle_withdraw, actor=ADMIN, destination="treasury", amount=7)
        assert data["success"] is True
        assert data["remaining_balance"] == 3
        assert funded_board.ledger.balance_of("treasury") == 7

    def test_non_admin_withdraw_unauthorized(self, funded_board):
        data = call(handle_withdraw, actor=BOB, destination=BOB, amount=1)
        assert data["error"] == "unauthorized"
        assert call(handle_get_custody)["balance"] == 10

    def test_overdraw_refused(self, funded_board):
        data = call(handle_withdraw, actor=ADMIN, destination="treasury", amount=11)
        assert data["error"] == "withdraw_failed"

    def test_set_cooldown_admin_only(self, board):
        assert call(handle_set_cooldown, actor=ALICE, duration=1)["error"] == "unauthorized"
        data = call(handle_set_cooldown, actor=ADMIN, duration=60)
        assert data["previous_cooldown_seconds"] == 600
        assert data["cooldown_seconds"] == 60
        assert get_board().admin.cooldown_seconds == 60

    def test_set_cooldown_invalid(self, board):
        assert call(handle_set_cooldown, actor=ADMIN, duration=-4)["error"] == "invalid_cooldown"

    def test_save_snapshot_without_persistence(self, board):
        data = call(handle_save_snapshot, actor=ADMIN)
        assert "Persistence disabled" in data["error"]

    def test_save_snapshot_non_admin(self, board):
        assert call(handle_save_snapshot, actor=ALICE)["error"] == "unauthorized"
