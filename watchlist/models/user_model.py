from sqlalchemy import Column, Integer, String, Boolean, DateTime

from watchlist.database import Base
from watchlist.deps.permissions import Role
from watchlist.utils.code_utils import utcnow


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, unique=True, index=True, nullable=False)
    password = Column(String, nullable=False)  # bcrypt hash
    role = Column(String, default=Role.USER.value, nullable=False)  # USER or ADMIN
    email_verified = Column(Boolean, default=False, nullable=False, server_default="false")

    # registration confirmation
    verification_code = Column(String(6), nullable=True)
    verification_code_expiry = Column(DateTime(timezone=True), nullable=True)

    # second login step
    login_code = Column(String(6), nullable=True)
    login_code_expiry = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)


class AdminBootstrap(Base):
    """Single row written together with the first administrator."""

    __tablename__ = "admin_bootstrap"

    id = Column(Integer, primary_key=True)  # always 1
    user_id = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
