import math
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import delete, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from watchlist.database import get_async_session
from watchlist.deps.guards import guarded
from watchlist.models.movie_model import Movie
from watchlist.models.user_model import User
from watchlist.schemas.movie_schemas import (
    MovieCreate, MovieFilters, MovieOut, MovieOwnerOut, MoviePage, MovieStats,
    MovieUpdate, MovieWithOwnerOut, Pagination, SortField, SortOrder,
)

router = APIRouter(prefix="/movies", tags=["movies"])

SEARCH_RESULT_LIMIT = 20

def _contains(value: str) -> str:
    """LIKE pattern matching `value` literally, wildcards included."""
    escaped = value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


SORT_COLUMNS = {
    SortField.title: Movie.title,
    SortField.year: Movie.year,
    SortField.rating: Movie.rating,
    SortField.created_at: Movie.created_at,
    SortField.watched_at: Movie.watched_at,
}


async def _get_movie_or_404(db: AsyncSession, movie_id: int) -> Movie:
    movie = await db.get(Movie, movie_id)
    if not movie:
        raise HTTPException(status_code=404, detail="Movie not found")
    return movie


async def _distinct_values(db: AsyncSession, column, user_id: int) -> List[str]:
    stmt = select(column).where(Movie.user_id == user_id, column.is_not(None)).distinct()
    values = (await db.execute(stmt)).scalars().all()
    return sorted({v for v in values if v and v.strip()})


@router.post("", response_model=MovieOut, status_code=status.HTTP_201_CREATED)
async def create_movie(
    payload: MovieCreate,
    db: AsyncSession = Depends(get_async_session),
    current_user: User = Depends(guarded("movies.create")),
):
    movie = Movie(**payload.model_dump(), user_id=current_user.id)
    db.add(movie)
    await db.commit()
    await db.refresh(movie)
    return movie


@router.get("", response_model=MoviePage)
async def list_movies(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    search: Optional[str] = Query(None, description="Case-insensitive match on the title"),
    genre: Optional[str] = Query(None),
    year: Optional[int] = Query(None),
    director: Optional[str] = Query(None),
    watched: Optional[bool] = Query(None),
    min_rating: Optional[float] = Query(None, ge=0, le=10),
    max_rating: Optional[float] = Query(None, ge=0, le=10),
    sort_by: SortField = Query(SortField.created_at),
    sort_order: SortOrder = Query(SortOrder.desc),
    db: AsyncSession = Depends(get_async_session),
    current_user: User = Depends(guarded("movies.list")),
):
    conditions = [Movie.user_id == current_user.id]
    if search:
        conditions.append(Movie.title.ilike(_contains(search), escape="\\"))
    if genre:
        conditions.append(Movie.genre.ilike(_contains(genre), escape="\\"))
    if director:
        conditions.append(Movie.director.ilike(_contains(director), escape="\\"))
    if year is not None:
        conditions.append(Movie.year == year)
    if watched is not None:
        conditions.append(Movie.watched == watched)
    if min_rating is not None:
        conditions.append(Movie.rating >= min_rating)
    if max_rating is not None:
        conditions.append(Movie.rating <= max_rating)

    count_stmt = select(func.count(Movie.id)).where(*conditions)
    total_count = (await db.execute(count_stmt)).scalar_one()

    column = SORT_COLUMNS[sort_by]
    ordering = column.asc() if sort_order is SortOrder.asc else column.desc()
    stmt = (
        select(Movie)
        .where(*conditions)
        .order_by(ordering, Movie.id)
        .offset((page - 1) * limit)
        .limit(limit)
    )
    movies = (await db.execute(stmt)).scalars().all()

    total_pages = math.ceil(total_count / limit)
    return MoviePage(
        data=[MovieOut.model_validate(m) for m in movies],
        pagination=Pagination(
            page=page,
            limit=limit,
            total_count=total_count,
            total_pages=total_pages,
            has_next_page=page < total_pages,
            has_previous_page=page > 1,
        ),
        filters=MovieFilters(
            search=search,
            genre=genre,
            year=year,
            director=director,
            watched=watched,
            min_rating=min_rating,
            max_rating=max_rating,
            sort_by=sort_by,
            sort_order=sort_order,
        ),
    )


@router.get("/stats", response_model=MovieStats)
async def movie_stats(
    db: AsyncSession = Depends(get_async_session),
    current_user: User = Depends(guarded("movies.stats")),
):
    mine = Movie.user_id == current_user.id
    total = (await db.execute(select(func.count(Movie.id)).where(mine))).scalar_one()
    watched = (await db.execute(
        select(func.count(Movie.id)).where(mine, Movie.watched.is_(True))
    )).scalar_one()
    avg_rating = (await db.execute(
        select(func.avg(Movie.rating)).where(mine, Movie.rating.is_not(None))
    )).scalar_one()

    return MovieStats(
        total_movies=total,
        watched_movies=watched,
        unwatched_movies=total - watched,
        avg_rating=float(avg_rating or 0),
    )


@router.get("/genres", response_model=List[str])
async def movie_genres(
    db: AsyncSession = Depends(get_async_session),
    current_user: User = Depends(guarded("movies.genres")),
):
    return await _distinct_values(db, Movie.genre, current_user.id)


@router.get("/directors", response_model=List[str])
async def movie_directors(
    db: AsyncSession = Depends(get_async_session),
    current_user: User = Depends(guarded("movies.directors")),
):
    return await _distinct_values(db, Movie.director, current_user.id)


@router.get("/search", response_model=List[MovieOut])
async def search_movies(
    q: str = Query("", description="Search keyword"),
    db: AsyncSession = Depends(get_async_session),
    current_user: User = Depends(guarded("movies.search")),
):
    query = q.strip()
    if not query:
        return []

    pattern = _contains(query)
    stmt = (
        select(Movie)
        .where(
            Movie.user_id == current_user.id,
            or_(
                Movie.title.ilike(pattern, escape="\\"),
                Movie.director.ilike(pattern, escape="\\"),
                Movie.genre.ilike(pattern, escape="\\"),
                Movie.notes.ilike(pattern, escape="\\"),
            ),
        )
        .order_by(Movie.created_at.desc(), Movie.id.desc())
        .limit(SEARCH_RESULT_LIMIT)
    )
    return (await db.execute(stmt)).scalars().all()


@router.get("/admin/all", response_model=List[MovieWithOwnerOut])
async def all_movies(
    db: AsyncSession = Depends(get_async_session),
    current_user: User = Depends(guarded("movies.admin_all")),
):
    stmt = (
        select(Movie, User.email)
        .join(User, User.id == Movie.user_id)
        .order_by(Movie.created_at.desc(), Movie.id.desc())
    )
    rows = (await db.execute(stmt)).all()
    return [
        MovieWithOwnerOut(
            **MovieOut.model_validate(movie).model_dump(),
            user=MovieOwnerOut(id=movie.user_id, email=email),
        )
        for movie, email in rows
    ]


@router.delete("/admin/{movie_id}/force", status_code=status.HTTP_204_NO_CONTENT)
async def force_delete_movie(
    movie_id: int,
    db: AsyncSession = Depends(get_async_session),
    current_user: User = Depends(guarded("movies.admin_force_delete")),
):
    result = await db.execute(delete(Movie).where(Movie.id == movie_id))
    if result.rowcount == 0:
        raise HTTPException(status_code=404, detail="Movie not found")
    await db.commit()


@router.get("/{movie_id}", response_model=MovieOut)
async def get_movie(
    movie_id: int,
    db: AsyncSession = Depends(get_async_session),
    current_user: User = Depends(guarded("movies.read")),
):
    return await _get_movie_or_404(db, movie_id)


@router.patch("/{movie_id}", response_model=MovieOut)
async def update_movie(
    movie_id: int,
    payload: MovieUpdate,
    db: AsyncSession = Depends(get_async_session),
    current_user: User = Depends(guarded("movies.update")),
):
    movie = await _get_movie_or_404(db, movie_id)

    changes = payload.model_dump(exclude_unset=True)
    # a null watched_at keeps the recorded viewing date
    if changes.get("watched_at", ...) is None:
        del changes["watched_at"]
    for field, value in changes.items():
        setattr(movie, field, value)

    await db.commit()
    await db.refresh(movie)
    return movie


@router.delete("/{movie_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_movie(
    movie_id: int,
    db: AsyncSession = Depends(get_async_session),
    current_user: User = Depends(guarded("movies.delete")),
):
    movie = await _get_movie_or_404(db, movie_id)
    await db.delete(movie)
    await db.commit()
