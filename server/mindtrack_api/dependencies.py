"""Request dependencies shared by the routers."""
from typing import Optional

from fastapi import Header, HTTPException, status


async def current_user(authorization: Optional[str] = Header(default=None)) -> str:
    """
    Resolve the calling user from the bearer credential.

    Credentials are issued and verified by the auth service; here the bearer
    token is used as the user key.
    """
    scheme, _, token = (authorization or "").partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing bearer credential",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return token.strip()
