import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.concurrency import run_in_threadpool
from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from watchlist.database import get_async_session
from watchlist.deps.guards import guarded
from watchlist.deps.permissions import Role, parse_role, permissions_for
from watchlist.models.movie_model import Movie
from watchlist.models.user_model import User
from watchlist.schemas.user_schemas import (
    AdminCreatedOut, AdminCreateResponse, AdminUserList, AdminUserOut, AnalyticsResponse,
    AnalyticsSummary, CountByGenre, CountByRole, DeleteUserResponse, RecentUserOut,
    RegisterRequest, RoleChangeRequest, RoleChangeResponse, UserOut,
)
from watchlist.utils.security import hash_password

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["admin"])

TOP_GENRES_LIMIT = 10
RECENT_USERS_LIMIT = 10


def _now() -> datetime:
    return datetime.now(timezone.utc)


async def _get_target_user(db: AsyncSession, user_id: int, admin: User, action: str) -> User:
    target = await db.get(User, user_id)
    if not target:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    if target.id == admin.id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=f"You cannot {action} your own account")
    return target


@router.get("/users", response_model=AdminUserList)
async def list_users(
    db: AsyncSession = Depends(get_async_session),
    admin: User = Depends(guarded("admin.users")),
):
    movie_counts = (
        select(Movie.user_id, func.count(Movie.id).label("movie_count"))
        .group_by(Movie.user_id)
        .subquery()
    )
    stmt = (
        select(User, func.coalesce(movie_counts.c.movie_count, 0))
        .outerjoin(movie_counts, movie_counts.c.user_id == User.id)
        .order_by(User.created_at.desc(), User.id.desc())
    )
    rows = (await db.execute(stmt)).all()

    users = [
        AdminUserOut(
            id=u.id,
            email=u.email,
            role=u.role,
            email_verified=u.email_verified,
            created_at=u.created_at,
            movie_count=count,
        )
        for u, count in rows
    ]
    return AdminUserList(users=users, total=len(users), requested_by=admin.email, timestamp=_now())


@router.get("/analytics", response_model=AnalyticsResponse)
async def analytics(
    db: AsyncSession = Depends(get_async_session),
    admin: User = Depends(guarded("admin.analytics")),
):
    total_users = (await db.execute(select(func.count(User.id)))).scalar_one()
    total_movies = (await db.execute(select(func.count(Movie.id)))).scalar_one()
    verified_users = (await db.execute(
        select(func.count(User.id)).where(User.email_verified.is_(True))
    )).scalar_one()

    by_role = (await db.execute(
        select(User.role, func.count(User.id)).group_by(User.role).order_by(User.role)
    )).all()

    genre_count = func.count(Movie.id).label("genre_count")
    top_genres = (await db.execute(
        select(Movie.genre, genre_count)
        .where(Movie.genre.is_not(None))
        .group_by(Movie.genre)
        .order_by(genre_count.desc(), Movie.genre)
        .limit(TOP_GENRES_LIMIT)
    )).all()

    recent = (await db.execute(
        select(User).order_by(User.created_at.desc(), User.id.desc()).limit(RECENT_USERS_LIMIT)
    )).scalars().all()

    return AnalyticsResponse(
        summary=AnalyticsSummary(
            total_users=total_users,
            verified_users=verified_users,
            total_movies=total_movies,
            unverified_users=total_users - verified_users,
        ),
        users_by_role=[CountByRole(role=role, count=count) for role, count in by_role],
        top_genres=[CountByGenre(genre=genre, count=count) for genre, count in top_genres],
        recent_users=[RecentUserOut.model_validate(u) for u in recent],
        requested_by=admin.email,
        timestamp=_now(),
    )


@router.patch("/users/{user_id}/role", response_model=RoleChangeResponse)
async def change_user_role(
    user_id: int,
    payload: RoleChangeRequest,
    db: AsyncSession = Depends(get_async_session),
    admin: User = Depends(guarded("admin.change_role")),
):
    target = await _get_target_user(db, user_id, admin, "change the role of")

    new_role = parse_role(payload.role)
    if new_role is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid role. Use USER or ADMIN")

    target.role = new_role.value
    await db.commit()

    logger.info("Admin %s changed role of user %s to %s", admin.email, target.email, new_role.value)
    return RoleChangeResponse(
        message="Role updated",
        user=UserOut.model_validate(target),
        changed_by=admin.email,
        timestamp=_now(),
    )


@router.delete("/users/{user_id}", response_model=DeleteUserResponse)
async def delete_user(
    user_id: int,
    db: AsyncSession = Depends(get_async_session),
    admin: User = Depends(guarded("admin.delete_user")),
):
    target = await _get_target_user(db, user_id, admin, "delete")
    email = target.email

    await db.execute(delete(Movie).where(Movie.user_id == target.id))
    await db.execute(delete(User).where(User.id == target.id))
    await db.commit()

    logger.info("Admin %s deleted user %s", admin.email, email)
    return DeleteUserResponse(
        message=f"User {email} deleted",
        deleted_by=admin.email,
        timestamp=_now(),
    )


@router.post("/create-admin", response_model=AdminCreateResponse, status_code=status.HTTP_201_CREATED)
async def create_admin(
    payload: RegisterRequest,
    db: AsyncSession = Depends(get_async_session),
    admin: User = Depends(guarded("admin.create_admin")),
):
    email = str(payload.email).strip()
    existing = (await db.execute(select(User.id).where(User.email == email))).scalar_one_or_none()
    if existing is not None:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="A user with this email already exists")

    new_admin = User(
        email=email,
        password=await run_in_threadpool(hash_password, payload.password),
        role=Role.ADMIN.value,
        email_verified=True,
    )
    db.add(new_admin)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="A user with this email already exists")

    logger.info("Admin %s created administrator %s", admin.email, email)
    return AdminCreateResponse(
        message="Administrator created",
        admin=AdminCreatedOut.model_validate(new_admin),
        created_by=admin.email,
        permissions=sorted(p.value for p in permissions_for(Role.ADMIN)),
        timestamp=_now(),
    )
