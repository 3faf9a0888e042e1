from typing import Optional

from fastapi import Header, HTTPException, status


def get_current_user_id(x_user_id: Optional[int] = Header(None, alias="X-User-Id")) -> int:
    """
    Dependency returning the authenticated user's id.

    Authentication and role checks happen upstream; the auth layer forwards
    the user id in the X-User-Id header.
    """
    if x_user_id is None or x_user_id <= 0:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authenticated user id is required"
        )
    return x_user_id
