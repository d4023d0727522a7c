"""Tests for admin module: administrator capability and cooldown changes."""

import pytest

from pixelboard_mcp.admin import AdminSurface, DEFAULT_COOLDOWN_SECONDS
from pixelboard_mcp.errors import InvalidCooldown, Unauthorized

from conftest import ADMIN, ALICE


class TestIsAdmin:

    def test_equality_check(self, admin):
        assert admin.is_admin(ADMIN) is True
        assert admin.is_admin(ALICE) is False
        assert admin.is_admin(None) is False

    def test_no_admin_configured(self):
        surface = AdminSurface(administrator=None)
        assert surface.is_admin(None) is False
        assert surface.is_admin("") is False

    def test_default_cooldown(self):
        assert AdminSurface(administrator=ADMIN).cooldown_seconds == DEFAULT_COOLDOWN_SECONDS


class TestSetCooldown:

    def test_admin_sets_cooldown(self, admin):
        previous = admin.set_cooldown(ADMIN, 30)
        assert previous == 600
        assert admin.cooldown_seconds == 30

    def test_non_admin_refused(self, admin):
        with pytest.raises(Unauthorized) as exc:
            admin.set_cooldown(ALICE, 0)
        assert exc.value.operation == "set_cooldown"
        assert admin.cooldown_seconds == 600

    def test_open_cooldown_lets_anyone(self):
        surface = AdminSurface(administrator=ADMIN, cooldown_seconds=600, open_cooldown=True)
        surface.set_cooldown(ALICE, 5)
        assert surface.cooldown_seconds == 5

    @pytest.mark.parametrize("duration", [-1, 1.5, "10", None, True])
    def test_invalid_duration(self, admin, duration):
        with pytest.raises(InvalidCooldown):
            admin.set_cooldown(ADMIN, duration)
        assert admin.cooldown_seconds == 600

    def test_constructor_validates(self):
        with pytest.raises(InvalidCooldown):
            AdminSurface(administrator=ADMIN, cooldown_seconds=-5)

    def test_restore_skips_caller_check(self, admin):
        admin.restore(42)
        assert admin.cooldown_seconds == 42

    def test_to_dict(self, admin):
        assert admin.to_dict() == {
            "administrator": ADMIN,
            "cooldown_seconds": 600,
            "open_cooldown": False,
        }
