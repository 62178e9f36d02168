"""Per-route access rules.

Each guarded route is registered here under a stable id. The guard chain in
``watchlist.deps.guards`` looks the rule up once when the route is declared
and enforces it on every request.
"""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import FrozenSet, Mapping, Optional

from watchlist.deps.permissions import Permission, Role


@dataclass(frozen=True)
class OwnershipRule:
    resource: str = "movie"
    param: str = "movie_id"
    allow_admin: bool = True


@dataclass(frozen=True)
class AccessRule:
    roles: FrozenSet[Role] = field(default_factory=frozenset)
    permissions: FrozenSet[Permission] = field(default_factory=frozenset)
    ownership: Optional[OwnershipRule] = None


def _rule(roles=(), permissions=(), ownership=None) -> AccessRule:
    return AccessRule(frozenset(roles), frozenset(permissions), ownership)


_OWN_MOVIE = OwnershipRule(resource="movie", param="movie_id")

ROUTE_ACCESS: Mapping[str, AccessRule] = MappingProxyType({
    # auth
    "auth.me": _rule(),

    # movies
    "movies.create": _rule(permissions=[Permission.WRITE_OWN_MOVIES]),
    "movies.list": _rule(permissions=[Permission.READ_OWN_MOVIES]),
    "movies.stats": _rule(permissions=[Permission.READ_OWN_MOVIES]),
    "movies.genres": _rule(permissions=[Permission.READ_OWN_MOVIES]),
    "movies.directors": _rule(permissions=[Permission.READ_OWN_MOVIES]),
    "movies.search": _rule(permissions=[Permission.READ_OWN_MOVIES]),
    "movies.read": _rule(permissions=[Permission.READ_OWN_MOVIES], ownership=_OWN_MOVIE),
    "movies.update": _rule(permissions=[Permission.WRITE_OWN_MOVIES], ownership=_OWN_MOVIE),
    "movies.delete": _rule(permissions=[Permission.DELETE_OWN_MOVIES], ownership=_OWN_MOVIE),
    "movies.admin_all": _rule(roles=[Role.ADMIN], permissions=[Permission.READ_ALL_MOVIES]),
    "movies.admin_force_delete": _rule(roles=[Role.ADMIN], permissions=[Permission.DELETE_ANY_MOVIE]),

    # admin
    "admin.users": _rule(roles=[Role.ADMIN], permissions=[Permission.MANAGE_USERS]),
    "admin.analytics": _rule(roles=[Role.ADMIN], permissions=[Permission.VIEW_ANALYTICS]),
    "admin.change_role": _rule(roles=[Role.ADMIN], permissions=[Permission.MANAGE_USERS]),
    "admin.delete_user": _rule(roles=[Role.ADMIN], permissions=[Permission.DELETE_USERS]),
    "admin.create_admin": _rule(roles=[Role.ADMIN], permissions=[Permission.MANAGE_USERS]),
})
