from typing import Optional

from fastapi import Header
from jose import jwt, JWTError

from pos_terminals import config
from pos_terminals.errors import Unauthenticated


def get_current_user(authorization: Optional[str] = Header(None)) -> str:
    """Return the verified caller's user id from a bearer JWT."""
    if not authorization:
        raise Unauthenticated()

    try:
        scheme, token = authorization.split()
        if scheme.lower() != "bearer":
            raise Unauthenticated()
        claims = jwt.decode(token, config.JWT_SECRET, algorithms=["HS256"])
    except (ValueError, JWTError):
        raise Unauthenticated()

    user_id = claims.get("sub")
    if not user_id:
        raise Unauthenticated()
    return str(user_id)
