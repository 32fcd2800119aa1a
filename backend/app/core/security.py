"""
Bearer token verification

Tokens are issued by the authentication service. This backend only reads the
subject (user id) back out of them.
"""
from typing import Optional

from jose import jwt, JWTError

from app.core.config import settings

ALGORITHM = "HS256"


def verify_token(token: str) -> Optional[str]:
    """Return the ``sub`` claim, or None for an invalid or expired token"""
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[ALGORITHM])
    except JWTError:
        return None
    return payload.get("sub")
