"""Owner identification from the dashboard's ``auth_token`` cookie."""

import jwt

from app.core.config import get_settings
from app.core.logging import get_logger

logger = get_logger(__name__)

AUTH_COOKIE = "auth_token"
OWNER_CLAIM = "userId"


def owner_id_from_token(token: str | None) -> str | None:
    """
    Owner id carried by an HS256 token signed with JWT_SECRET.

    Returns:
        The ``userId`` claim, or None when there is no token, no secret, or
        the token does not verify
    """
    if not token:
        return None

    secret = get_settings().JWT_SECRET
    if not secret:
        logger.debug("JWT_SECRET not configured; ignoring auth_token cookie")
        return None

    try:
        payload = jwt.decode(token, secret, algorithms=["HS256"])
    except jwt.ExpiredSignatureError:
        logger.warning("Owner token expired")
        return None
    except jwt.InvalidTokenError as e:
        logger.warning(f"Invalid owner token: {e}")
        return None

    owner_id = payload.get(OWNER_CLAIM)
    return str(owner_id) if owner_id else None
