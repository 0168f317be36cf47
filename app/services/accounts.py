"""
Account registration and login.
Emails are normalized (stripped, lowercased) before storage and lookup.
"""
import logging
from functools import lru_cache
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.config import Settings
from app.core.exceptions import Conflict, InvalidCredentials, NotFound
from app.models.user import User
from app.utils.auth import create_access_token, get_pwd_context, hash_password, verify_password

logger = logging.getLogger(__name__)


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


@lru_cache()
def _dummy_hash(rounds: int) -> str:
    return get_pwd_context(rounds).hash("dummy-password-for-timing")


def get_user_by_email(db: Session, email: str) -> Optional[User]:
    return db.query(User).filter(User.email == normalize_email(email)).first()


def get_user(db: Session, user_id: int) -> User:
    """Fetch an account by id, always reading the committed row."""
    user = db.query(User).filter(User.id == user_id).populate_existing().first()
    if not user:
        raise NotFound()
    return user


def register_user(db: Session, email: str, password: str, settings: Settings) -> User:
    normalized = normalize_email(email)
    if get_user_by_email(db, normalized):
        logger.info("[Auth] Registration rejected, email already registered: %s", normalized)
        raise Conflict()

    user = User(
        email=normalized,
        hashed_password=hash_password(password, settings),
    )
    db.add(user)
    try:
        db.commit()
    except IntegrityError:
        # Lost a race with a concurrent registration for the same email
        db.rollback()
        logger.info("[Auth] Registration rejected on unique constraint: %s", normalized)
        raise Conflict()
    db.refresh(user)
    logger.info("[Auth] Registered user %s (%s)", user.id, normalized)
    return user


def authenticate_user(db: Session, email: str, password: str, settings: Settings) -> User:
    """Return the account for valid credentials; unknown email and wrong password fail identically."""
    user = get_user_by_email(db, email)
    if user is None:
        # Spend the same hashing work as a real check
        verify_password(password, _dummy_hash(settings.BCRYPT_ROUNDS), settings)
        raise InvalidCredentials()
    if not verify_password(password, user.hashed_password, settings):
        raise InvalidCredentials()
    return user


def login(db: Session, email: str, password: str, settings: Settings) -> tuple[User, str]:
    user = authenticate_user(db, email, password, settings)
    token = create_access_token(user.id, user.email, settings)
    logger.info("[Auth] Login succeeded for user %s", user.id)
    return user, token
