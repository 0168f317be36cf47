from app.models.user import User
from app.models.article import Article

__all__ = [
    "User",
    "Article",
]
