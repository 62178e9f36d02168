from datetime import datetime, timedelta, timezone

from jose import jwt
from passlib.hash import bcrypt

from watchlist import config
from watchlist.models.user_model import User


def _get_secret_key() -> str:
    secret = config.SECRET_KEY
    if not secret:
        # Fail fast with a clear message instead of a generic 500
        raise RuntimeError("SECRET_KEY is not configured in the backend environment")
    if len(secret) < 32:
        raise RuntimeError("SECRET_KEY is too short; use at least 32 characters")
    return secret


def hash_password(password: str) -> str:
    return bcrypt.using(rounds=config.BCRYPT_ROUNDS).hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    if not password or not password_hash:
        return False
    try:
        return bcrypt.verify(password, password_hash)
    except ValueError:
        # malformed hash
        return False


def create_access_token(user: User) -> str:
    now = datetime.now(timezone.utc)
    expire = now + timedelta(minutes=config.ACCESS_TOKEN_EXPIRE_MINUTES)
    to_encode = {
        "sub": str(user.id),
        "email": user.email,
        "role": user.role,
        "iat": now,
        "exp": expire,
    }
    return jwt.encode(to_encode, _get_secret_key(), algorithm=config.ALGORITHM)


def decode_access_token(token: str) -> dict:
    """Verify signature and expiry; raises jose.JWTError on any failure."""
    return jwt.decode(token, _get_secret_key(), algorithms=[config.ALGORITHM])
