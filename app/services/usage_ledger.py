"""
Usage ledger: charges consumed tokens to an account and keeps the history
of generated articles. Called only after the generation provider succeeded.
"""
import logging
from typing import List

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.exceptions import NotFound
from app.models.article import Article
from app.models.user import User

logger = logging.getLogger(__name__)


def charge(db: Session, user_id: int, cost: int, commit: bool = True) -> None:
    """
    Add exactly `cost` tokens to the account's used_tokens.
    Uses an in-database increment so concurrent charges never overwrite each other.
    """
    if cost < 0:
        raise ValueError("cost must be non-negative")

    updated = (
        db.query(User)
        .filter(User.id == user_id)
        .update({User.used_tokens: User.used_tokens + cost}, synchronize_session=False)
    )
    if not updated:
        raise NotFound()
    if commit:
        db.commit()


def record_generation(db: Session, user_id: int, topic: str, content: str, commit: bool = True) -> Article:
    """Append one immutable history row."""
    article = Article(user_id=user_id, topic=topic, content=content)
    db.add(article)
    if commit:
        db.commit()
        db.refresh(article)
    return article


def charge_and_record(db: Session, user_id: int, cost: int, topic: str, content: str) -> Article:
    """
    Charge the account and store the article in a single transaction:
    either both are committed or neither is.
    """
    try:
        charge(db, user_id, cost, commit=False)
        article = record_generation(db, user_id, topic, content, commit=False)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("[Ledger] Failed to charge %s tokens to user %s", cost, user_id)
        raise
    db.refresh(article)
    logger.info("[Ledger] Charged %s tokens to user %s (article %s)", cost, user_id, article.id)
    return article


def get_used_tokens(db: Session, user_id: int) -> int:
    """Latest committed usage for the account."""
    used = db.query(User.used_tokens).filter(User.id == user_id).scalar()
    if used is None:
        raise NotFound()
    return used


def list_history(db: Session, user_id: int, limit: int) -> List[Article]:
    """Articles for the account, newest first."""
    return (
        db.query(Article)
        .filter(Article.user_id == user_id)
        .order_by(Article.created_at.desc(), Article.id.desc())
        .limit(limit)
        .all()
    )
