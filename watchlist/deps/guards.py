import inspect
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from watchlist.database import get_async_session
from watchlist.deps.access import ROUTE_ACCESS, AccessRule
from watchlist.deps.permissions import Role, has_permission, parse_role
from watchlist.models.movie_model import Movie
from watchlist.models.user_model import User
from watchlist.utils.security import decode_access_token

logger = logging.getLogger(__name__)

_bearer = HTTPBearer(auto_error=False)


@dataclass
class GuardContext:
    request: Request
    db: AsyncSession
    rule: AccessRule
    credentials: Optional[HTTPAuthorizationCredentials] = None
    user: Optional[User] = None


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def _forbidden(detail: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=detail)


async def authenticate(ctx: GuardContext) -> None:
    if ctx.credentials is None or not ctx.credentials.credentials:
        raise _unauthorized("Not authenticated")

    try:
        payload = decode_access_token(ctx.credentials.credentials)
        user_id = int(payload.get("sub"))
    except (JWTError, TypeError, ValueError):
        raise _unauthorized("Invalid or expired token")

    user = await ctx.db.get(User, user_id)
    if user is None or not user.email_verified:
        raise _unauthorized("Invalid or expired token")
    ctx.user = user


def check_roles(ctx: GuardContext) -> None:
    if not ctx.rule.roles:
        return
    if parse_role(ctx.user.role) not in ctx.rule.roles:
        required = " or ".join(sorted(r.value for r in ctx.rule.roles))
        raise _forbidden(f"Access denied. Required role: {required}. Your role: {ctx.user.role}")


def check_permissions(ctx: GuardContext) -> None:
    if not ctx.rule.permissions:
        return
    if not has_permission(ctx.user.role, ctx.rule.permissions):
        required = ", ".join(sorted(p.value for p in ctx.rule.permissions))
        raise _forbidden(f"Access denied. Insufficient permissions. Required: {required}")


async def _movie_owner(db: AsyncSession, movie_id: int) -> Optional[int]:
    result = await db.execute(select(Movie.user_id).where(Movie.id == movie_id))
    return result.scalar_one_or_none()


OWNER_LOOKUPS: Dict[str, Callable[[AsyncSession, int], Awaitable[Optional[int]]]] = {
    "movie": _movie_owner,
}


async def check_ownership(ctx: GuardContext) -> None:
    ownership = ctx.rule.ownership
    if ownership is None:
        return

    raw_id = ctx.request.path_params.get(ownership.param)
    try:
        resource_id = int(raw_id)
    except (TypeError, ValueError):
        resource_id = 0
    if resource_id <= 0:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Invalid resource id")

    owner_id = await OWNER_LOOKUPS[ownership.resource](ctx.db, resource_id)
    if owner_id is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"{ownership.resource.capitalize()} not found")

    if ownership.allow_admin and parse_role(ctx.user.role) is Role.ADMIN:
        return
    if owner_id != ctx.user.id:
        raise _forbidden(f"You cannot access this {ownership.resource}")


GUARD_CHAIN = (authenticate, check_roles, check_permissions, check_ownership)


async def run_guards(ctx: GuardContext) -> User:
    for stage in GUARD_CHAIN:
        try:
            result = stage(ctx)
            if inspect.isawaitable(result):
                await result
        except HTTPException as exc:
            logger.debug("Guard %s rejected %s %s: %s", stage.__name__,
                         ctx.request.method, ctx.request.url.path, exc.detail)
            raise
    return ctx.user


def guarded(route_id: str):
    """FastAPI dependency enforcing ``ROUTE_ACCESS[route_id]``; yields the current user."""
    rule = ROUTE_ACCESS[route_id]

    async def dependency(
        request: Request,
        credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer),
        db: AsyncSession = Depends(get_async_session),
    ) -> User:
        ctx = GuardContext(request=request, db=db, rule=rule, credentials=credentials)
        return await run_guards(ctx)

    dependency.__name__ = f"guard_{route_id.replace('.', '_')}"
    return dependency
