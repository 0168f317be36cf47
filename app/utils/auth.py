from datetime import datetime, timedelta, timezone
from functools import lru_cache
from typing import Optional

from jose import ExpiredSignatureError, JWTError, jwt
from passlib.context import CryptContext

from app.core.config import Settings


class TokenExpired(Exception):
    pass


class TokenInvalid(Exception):
    pass


@lru_cache()
def get_pwd_context(rounds: int) -> CryptContext:
    return CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=rounds)


def hash_password(password: str, settings: Settings) -> str:
    return get_pwd_context(settings.BCRYPT_ROUNDS).hash(password)


def verify_password(plain_password: str, hashed_password: Optional[str], settings: Settings) -> bool:
    if not hashed_password:
        return False
    try:
        return get_pwd_context(settings.BCRYPT_ROUNDS).verify(plain_password, hashed_password)
    except (ValueError, TypeError):
        # Unparseable stored hash
        return False


def create_access_token(user_id: int, email: str, settings: Settings, expires_delta: timedelta = None) -> str:
    """Issue a session token binding the account id and email."""
    now = datetime.now(timezone.utc)
    expire = now + (expires_delta or timedelta(days=settings.ACCESS_TOKEN_EXPIRE_DAYS))
    to_encode = {
        "sub": str(user_id),
        "email": email,
        "iat": now,
        "exp": expire,
    }
    return jwt.encode(to_encode, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def verify_token(token: str, settings: Settings) -> dict:
    """
    Verify a session token issued by create_access_token.
    Raises TokenExpired or TokenInvalid; returns the payload otherwise.
    """
    try:
        payload = jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
    except ExpiredSignatureError as e:
        raise TokenExpired() from e
    except JWTError as e:
        raise TokenInvalid() from e

    user_id = payload.get("sub")
    if not user_id:
        raise TokenInvalid()
    try:
        payload["user_id"] = int(user_id)
    except (ValueError, TypeError) as e:
        raise TokenInvalid() from e
    return payload
