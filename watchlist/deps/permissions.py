import enum
from types import MappingProxyType
from typing import FrozenSet, Iterable, Mapping, Optional


class Role(str, enum.Enum):
    USER = "USER"
    ADMIN = "ADMIN"


class Permission(str, enum.Enum):
    # user
    READ_OWN_MOVIES = "READ_OWN_MOVIES"
    WRITE_OWN_MOVIES = "WRITE_OWN_MOVIES"
    DELETE_OWN_MOVIES = "DELETE_OWN_MOVIES"

    # admin
    READ_ALL_MOVIES = "READ_ALL_MOVIES"
    MANAGE_USERS = "MANAGE_USERS"
    DELETE_ANY_MOVIE = "DELETE_ANY_MOVIE"
    VIEW_ANALYTICS = "VIEW_ANALYTICS"
    DELETE_USERS = "DELETE_USERS"


_USER_PERMISSIONS = frozenset({
    Permission.READ_OWN_MOVIES,
    Permission.WRITE_OWN_MOVIES,
    Permission.DELETE_OWN_MOVIES,
})

ROLE_PERMISSIONS: Mapping[Role, FrozenSet[Permission]] = MappingProxyType({
    Role.USER: _USER_PERMISSIONS,
    Role.ADMIN: _USER_PERMISSIONS | {
        Permission.READ_ALL_MOVIES,
        Permission.MANAGE_USERS,
        Permission.DELETE_ANY_MOVIE,
        Permission.VIEW_ANALYTICS,
        Permission.DELETE_USERS,
    },
})

ROLE_DESCRIPTIONS: Mapping[Role, str] = MappingProxyType({
    Role.USER: "Standard user - manages their own movies",
    Role.ADMIN: "Administrator - full management of users and the system",
})


def parse_role(value) -> Optional[Role]:
    try:
        return Role(str(value).strip().upper())
    except ValueError:
        return None


def permissions_for(role) -> FrozenSet[Permission]:
    r = parse_role(role)
    if r is None:
        return frozenset()
    return ROLE_PERMISSIONS[r]


def has_permission(role, required: Iterable[Permission]) -> bool:
    """True iff every required permission is granted to the role."""
    return set(required) <= permissions_for(role)


def role_description(role) -> str:
    r = parse_role(role)
    return ROLE_DESCRIPTIONS[r] if r is not None else "Unknown role"
