import pytest

from watchlist.deps.permissions import (
    ROLE_PERMISSIONS, Permission, Role, has_permission, parse_role, permissions_for, role_description,
)


def test_admin_permissions_are_a_superset_of_user_permissions():
    assert ROLE_PERMISSIONS[Role.USER] < ROLE_PERMISSIONS[Role.ADMIN]


def test_user_only_gets_own_movie_permissions():
    assert permissions_for("USER") == {
        Permission.READ_OWN_MOVIES,
        Permission.WRITE_OWN_MOVIES,
        Permission.DELETE_OWN_MOVIES,
    }


def test_every_permission_is_granted_to_admin():
    assert permissions_for(Role.ADMIN) == set(Permission)


def test_has_permission_requires_all_listed_permissions():
    assert has_permission("USER", [Permission.READ_OWN_MOVIES, Permission.WRITE_OWN_MOVIES])
    assert not has_permission("USER", [Permission.READ_OWN_MOVIES, Permission.MANAGE_USERS])
    assert has_permission("ADMIN", [Permission.MANAGE_USERS, Permission.DELETE_USERS])


def test_empty_requirement_is_always_satisfied():
    assert has_permission("USER", [])
    assert has_permission("nobody", [])


def test_unknown_role_has_no_permissions():
    assert permissions_for("SUPERUSER") == frozenset()
    assert not has_permission("SUPERUSER", [Permission.READ_OWN_MOVIES])
    assert role_description("SUPERUSER") == "Unknown role"


def test_parse_role_normalizes_case_and_whitespace():
    assert parse_role(" admin ") is Role.ADMIN
    assert parse_role("user") is Role.USER
    assert parse_role("owner") is None
    assert parse_role(None) is None


def test_role_table_is_read_only():
    with pytest.raises(TypeError):
        ROLE_PERMISSIONS[Role.USER] = frozenset(Permission)
