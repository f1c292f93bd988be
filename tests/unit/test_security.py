"""Unit tests for token_exchange/security.py - Access control."""

import pytest

from token_exchange.enums import Permission
from token_exchange.exceptions import PermissionDeniedError
from token_exchange.security import ANONYMOUS, SYSTEM, AccessControl, Authentication


class TestAuthentication:
    """Tests for Authentication permissions."""

    def test_administrator_has_everything(self):
        admin = Authentication.administrator("admin")

        assert all(admin.has_permission(p) for p in Permission)

    def test_user_reads_only(self):
        user = Authentication.user("alice")

        assert user.has_permission(Permission.READ)
        assert not user.has_permission(Permission.ADMINISTER)
        assert not user.has_permission(Permission.MANAGE_DOMAINS)

    def test_administer_implies_other_permissions(self):
        auth = Authentication("ops", frozenset({Permission.ADMINISTER}))

        assert auth.has_permission(Permission.MANAGE_DOMAINS)

    def test_anonymous_has_nothing(self):
        assert not any(ANONYMOUS.has_permission(p) for p in Permission)


class TestAccessControl:
    """Tests for AccessControl checks and elevation."""

    def test_check_permission_raises(self):
        """Should raise with the principal and permission named."""
        acl = AccessControl(Authentication.user("alice"))

        with pytest.raises(PermissionDeniedError) as exc_info:
            acl.check_permission(Permission.ADMINISTER)

        assert str(exc_info.value) == "alice is missing the administer permission"

    def test_check_permission_passes(self):
        AccessControl(Authentication.administrator("admin")).check_permission(Permission.ADMINISTER)

    def test_elevated_runs_as_system(self):
        """Should run as SYSTEM inside the block and restore the caller after it."""
        caller = Authentication.user("alice")
        acl = AccessControl(caller)

        with acl.elevated() as authentication:
            assert authentication is SYSTEM
            assert acl.current is SYSTEM
            assert acl.has_permission(Permission.MANAGE_DOMAINS)
            assert acl.caller is caller

        assert acl.current is caller

    def test_elevation_restored_on_error(self):
        """Should restore the caller even when the block raises."""
        caller = Authentication.user("alice")
        acl = AccessControl(caller)

        with pytest.raises(RuntimeError):
            with acl.elevated():
                raise RuntimeError("boom")

        assert acl.current is caller

    def test_impersonate_nested(self):
        acl = AccessControl(ANONYMOUS)
        bob = Authentication.user("bob")

        with acl.impersonate(bob):
            with acl.elevated():
                assert acl.current is SYSTEM
            assert acl.current is bob
        assert acl.current is ANONYMOUS
