import hmac
import logging
from typing import Optional

from fastapi import Depends, Header

from app.core.config import Settings, get_settings
from app.core.exceptions import AdminRequired, AuthenticationInvalid, AuthenticationMissing
from app.utils.auth import TokenExpired, TokenInvalid, verify_token

logger = logging.getLogger(__name__)


def _extract_bearer_token(authorization: Optional[str]) -> str:
    if not authorization or not authorization.strip():
        raise AuthenticationMissing()

    parts = authorization.strip().split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        raise AuthenticationInvalid("Invalid header format. Expected 'Bearer <token>'")

    token = parts[1]
    # Reject common invalid token values sent by frontends
    if token.lower() in ("null", "undefined", "none"):
        raise AuthenticationMissing()
    return token


def get_current_user_id(
    authorization: Optional[str] = Header(None),
    settings: Settings = Depends(get_settings),
) -> int:
    """
    Resolve the account id from the Authorization header.
    Missing header -> 401; malformed, tampered or expired token -> 403.
    """
    token = _extract_bearer_token(authorization)
    try:
        payload = verify_token(token, settings)
    except TokenExpired:
        raise AuthenticationInvalid("Token expired")
    except TokenInvalid:
        raise AuthenticationInvalid()
    return payload["user_id"]


def require_admin_key(
    x_admin_key: Optional[str] = Header(None),
    user_id: int = Depends(get_current_user_id),
    settings: Settings = Depends(get_settings),
) -> None:
    """
    Gate administrative operations behind ADMIN_API_KEY when one is configured.
    The caller is authenticated first, so a missing token is still a 401.
    """
    if not settings.ADMIN_API_KEY:
        logger.warning("[Auth] ADMIN_API_KEY not set; administrative operation by user %s allowed without admin key", user_id)
        return
    if not x_admin_key or not hmac.compare_digest(x_admin_key.encode(), settings.ADMIN_API_KEY.encode()):
        logger.warning("[Auth] User %s denied administrative operation: bad or missing admin key", user_id)
        raise AdminRequired()
