import logging
import time
from datetime import datetime, timezone

from fastapi import APIRouter, Depends
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from watchlist import config
from watchlist.database import get_async_session
from watchlist.models.movie_model import Movie
from watchlist.models.user_model import User

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/public", tags=["public"])

_STARTED_AT = time.monotonic()
PUBLIC_TOP_GENRES_LIMIT = 5


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@router.get("/health")
async def health():
    return {
        "status": "OK",
        "timestamp": _now_iso(),
        "uptime": round(time.monotonic() - _STARTED_AT, 3),
        "environment": config.APP_ENV,
        "version": config.APP_VERSION,
    }


@router.get("/stats")
async def public_stats(db: AsyncSession = Depends(get_async_session)):
    """Anonymous totals. A database failure is reported in the body, not as a 500."""
    try:
        total_users = (await db.execute(select(func.count(User.id)))).scalar_one()
        total_movies = (await db.execute(select(func.count(Movie.id)))).scalar_one()
        verified_users = (await db.execute(
            select(func.count(User.id)).where(User.email_verified.is_(True))
        )).scalar_one()

        genre_count = func.count(Movie.id).label("genre_count")
        top_genres = (await db.execute(
            select(Movie.genre, genre_count)
            .where(Movie.genre.is_not(None))
            .group_by(Movie.genre)
            .order_by(genre_count.desc(), Movie.genre)
            .limit(PUBLIC_TOP_GENRES_LIMIT)
        )).all()
    except SQLAlchemyError:
        logger.exception("Public stats query failed")
        return {"error": "Unable to load statistics", "last_updated": _now_iso()}

    return {
        "total_users": total_users,
        "verified_users": verified_users,
        "total_movies": total_movies,
        "top_genres": [{"genre": genre, "count": count} for genre, count in top_genres],
        "last_updated": _now_iso(),
    }


@router.get("/info")
async def app_info():
    return {
        "name": "Watchlist API",
        "description": "Personal movie watchlist management API",
        "version": config.APP_VERSION,
        "features": [
            "Registration with email verification",
            "Two-step login with an emailed code",
            "Personal movie management",
            "Roles and permissions (USER/ADMIN)",
            "Statistics and analytics",
        ],
        "endpoints": {
            "public": [
                "GET /public/health - API health",
                "GET /public/stats - public statistics",
                "GET /public/info - application information",
            ],
            "auth": [
                "POST /auth/register - register",
                "POST /auth/verify-email - confirm email",
                "POST /auth/resend-verification - new confirmation code",
                "POST /auth/login - login step 1 (sends code)",
                "POST /auth/verify-login - login step 2 (returns token)",
                "GET /auth/me - current profile and permissions",
            ],
            "movies": [
                "GET /movies - my movies",
                "POST /movies - add a movie",
                "GET /movies/stats - my statistics",
                "GET /movies/admin/all - every movie (admin)",
            ],
        },
    }
