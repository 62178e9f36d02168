from sqlalchemy import Column, Integer, String, Text, Float, Boolean, DateTime, ForeignKey, CheckConstraint

from watchlist.database import Base
from watchlist.utils.code_utils import utcnow


class Movie(Base):
    __tablename__ = "movies"
    __table_args__ = (
        CheckConstraint("rating IS NULL OR (rating >= 0 AND rating <= 10)", name="ck_movies_rating_range"),
    )

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String, nullable=False)
    year = Column(Integer, nullable=True)
    genre = Column(String, nullable=True)
    director = Column(String, nullable=True)
    rating = Column(Float, nullable=True)
    watched = Column(Boolean, default=False, nullable=False, server_default="false")
    watched_at = Column(DateTime(timezone=True), nullable=True)
    notes = Column(Text, nullable=True)

    user_id = Column(
        Integer,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)
