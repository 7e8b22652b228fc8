from typing import Optional
from uuid import UUID

from fastapi import Header, HTTPException, status


async def get_actor_id(x_user_id: Optional[str] = Header(None)) -> Optional[UUID]:
    """
    Acting user's id as forwarded by the gateway in X-User-Id. Authentication and role checks
    happen upstream; this only parses the header. Missing header means a system action.
    """
    if not x_user_id:
        return None
    try:
        return UUID(x_user_id)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="X-User-Id header must be a UUID",
        )
