"""Tests for errors module: payloads and retry hints."""

from pixelboard_mcp.errors import (
    CanvasError, ErrorKind, CooldownActive, FeeTransferFailed,
    InvalidCoordinates, Unauthorized, WithdrawFailed,
)


def test_all_errors_are_canvas_errors():
    for err in (InvalidCoordinates(1, 2), CooldownActive(0, 1), FeeTransferFailed("a", 1),
                Unauthorized("a", "withdraw"), WithdrawFailed("d", 1)):
        assert isinstance(err, CanvasError)


def test_cooldown_payload_has_retry_at():
    d = CooldownActive(100, 600).to_dict()
    assert d["error"] == ErrorKind.COOLDOWN_ACTIVE.value
    assert d["retryable"] is True
    assert d["last_write_time"] == 100
    assert d["cooldown"] == 600
    assert d["retry_at"] == 700


def test_invalid_coordinates_not_retryable():
    d = InvalidCoordinates(500, 0).to_dict()
    assert d["error"] == "invalid_coordinates"
    assert d["retryable"] is False
    assert (d["x"], d["y"]) == (500, 0)


def test_fee_transfer_default_reason():
    err = FeeTransferFailed("bob", 1)
    assert "rejected" in err.reason
    assert err.to_dict()["actor"] == "bob"
