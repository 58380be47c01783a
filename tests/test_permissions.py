"""
TradeDoc Tracker - Permission and Token Tests
"""

from datetime import timedelta

import pytest

from tradedoc.utils.permissions import (
    Actor,
    Permission,
    UserRole,
    get_permissions,
    has_permission,
    parse_role,
    require_permission,
)
from tradedoc.utils.error_handling import InsufficientPermissionsException
from tradedoc.utils.security import create_access_token, verify_access_token


class TestRoles:

    @pytest.mark.parametrize(
        "claim, expected",
        [
            ("GDV_TTQT", UserRole.TELLER),
            ("ksv_ttqt", UserRole.CONTROLLER),
            (" KTS_TTQT ", UserRole.POST_INSPECTOR),
            ("ADMIN", UserRole.ADMIN),
            ("MANAGER", None),
            (None, None),
        ],
    )
    def test_parse_role(self, claim, expected):
        assert parse_role(claim) == expected

    def test_each_stage_belongs_to_one_role(self):
        assert has_permission(UserRole.TELLER, Permission.UPDATE_DOCUMENT_STATUS)
        assert not has_permission(UserRole.TELLER, Permission.CENSOR_TRANSACTIONS)
        assert has_permission(UserRole.CONTROLLER, Permission.CENSOR_TRANSACTIONS)
        assert not has_permission(UserRole.CONTROLLER, Permission.POST_INSPECT_TRANSACTIONS)
        assert has_permission(UserRole.POST_INSPECTOR, Permission.POST_INSPECT_TRANSACTIONS)
        assert not has_permission(UserRole.POST_INSPECTOR, Permission.UPDATE_DOCUMENT_STATUS)

    def test_admin_has_everything(self):
        assert get_permissions(UserRole.ADMIN) == set(Permission)

    def test_unknown_role_has_nothing(self):
        assert get_permissions(None) == set()

    def test_require_permission(self):
        teller = Actor(id="gdv01", name="Teller", role=UserRole.TELLER)

        require_permission(teller, Permission.IMPORT_TRANSACTIONS)
        with pytest.raises(InsufficientPermissionsException):
            require_permission(teller, Permission.MANAGE_REMINDERS)


class TestAccessTokens:

    def test_round_trip(self):
        token = create_access_token({"sub": "gdv01", "name": "Teller", "role": "GDV_TTQT"})

        payload = verify_access_token(token)

        assert payload["sub"] == "gdv01"
        assert payload["role"] == "GDV_TTQT"

    def test_expired_token(self):
        token = create_access_token({"sub": "gdv01"}, expires_delta=timedelta(seconds=-10))
        assert verify_access_token(token) is None

    def test_garbage_token(self):
        assert verify_access_token("not-a-token") is None
