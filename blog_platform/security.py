"""
Password hashing (passlib bcrypt) and session tokens (PyJWT, HS256).

Nothing here reads global configuration: callers pass the ``Settings``
instance they were given.
"""
from datetime import datetime, timedelta, timezone

import jwt
from passlib.hash import bcrypt as bcrypt_hasher

from blog_platform.config import Settings
from blog_platform.errors import Unauthenticated

MIN_PASSWORD_LENGTH = 6


def hash_password(password: str, config: Settings) -> str:
    return bcrypt_hasher.using(rounds=config.BCRYPT_ROUNDS).hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt_hasher.verify(password, password_hash)
    except ValueError:
        # Malformed stored hash.
        return False


def create_access_token(user_id: int, config: Settings) -> str:
    now = datetime.now(timezone.utc)
    exp = now + timedelta(days=config.JWT_EXPIRE_DAYS)
    payload = {"sub": str(user_id), "iat": int(now.timestamp()), "exp": int(exp.timestamp())}
    return jwt.encode(payload, config.JWT_SECRET, algorithm=config.JWT_ALGORITHM)


def decode_access_token(token: str, config: Settings) -> int:
    """Return the user id carried by *token*, or raise ``Unauthenticated``."""
    try:
        payload = jwt.decode(token, config.JWT_SECRET, algorithms=[config.JWT_ALGORITHM])
    except jwt.ExpiredSignatureError:
        raise Unauthenticated("Session expired, please log in again")
    except jwt.InvalidTokenError:
        raise Unauthenticated("Invalid session token")

    try:
        return int(payload["sub"])
    except (KeyError, TypeError, ValueError):
        raise Unauthenticated("Invalid session token")


def cookie_options(config: Settings) -> dict:
    """Keyword arguments for ``Response.set_cookie`` carrying the session token."""
    return {
        "key": config.COOKIE_NAME,
        "max_age": config.JWT_EXPIRE_DAYS * 24 * 60 * 60,
        "httponly": True,
        "secure": config.is_production,
        "samesite": "strict",
    }
