import enum
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator


class SortField(str, enum.Enum):
    title = "title"
    year = "year"
    rating = "rating"
    created_at = "created_at"
    watched_at = "watched_at"


class SortOrder(str, enum.Enum):
    asc = "asc"
    desc = "desc"


class MovieCreate(BaseModel):
    title: str = Field(min_length=1)
    year: Optional[int] = Field(default=None, ge=1888)
    genre: Optional[str] = None
    director: Optional[str] = None
    rating: Optional[float] = Field(default=None, ge=0, le=10)
    watched: bool = False
    watched_at: Optional[datetime] = None
    notes: Optional[str] = None


class MovieUpdate(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1)
    year: Optional[int] = Field(default=None, ge=1888)
    genre: Optional[str] = None
    director: Optional[str] = None
    rating: Optional[float] = Field(default=None, ge=0, le=10)
    watched: Optional[bool] = None
    watched_at: Optional[datetime] = None
    notes: Optional[str] = None

    @field_validator("title", "watched")
    @classmethod
    def not_null(cls, v):
        if v is None:
            raise ValueError("may be omitted but not null")
        return v


class MovieOut(BaseModel):
    model_config = {"from_attributes": True}

    id: int
    title: str
    year: Optional[int] = None
    genre: Optional[str] = None
    director: Optional[str] = None
    rating: Optional[float] = None
    watched: bool
    watched_at: Optional[datetime] = None
    notes: Optional[str] = None
    user_id: int
    created_at: datetime
    updated_at: datetime


class MovieOwnerOut(BaseModel):
    id: int
    email: str


class MovieWithOwnerOut(MovieOut):
    user: MovieOwnerOut


class Pagination(BaseModel):
    page: int
    limit: int
    total_count: int
    total_pages: int
    has_next_page: bool
    has_previous_page: bool


class MovieFilters(BaseModel):
    search: Optional[str] = None
    genre: Optional[str] = None
    year: Optional[int] = None
    director: Optional[str] = None
    watched: Optional[bool] = None
    min_rating: Optional[float] = None
    max_rating: Optional[float] = None
    sort_by: SortField = SortField.created_at
    sort_order: SortOrder = SortOrder.desc


class MoviePage(BaseModel):
    data: List[MovieOut]
    pagination: Pagination
    filters: MovieFilters


class MovieStats(BaseModel):
    total_movies: int
    watched_movies: int
    unwatched_movies: int
    avg_rating: float
