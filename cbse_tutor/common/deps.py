"""Shared FastAPI dependencies for authentication and request context."""

from __future__ import annotations

import asyncio
import logging
import os
import time

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel

from cbse_tutor.db.supabase import get_supabase


logger = logging.getLogger("auth.deps")
security = HTTPBearer(auto_error=True)


class CurrentUser(BaseModel):
    """Minimal user identity shared across endpoints."""
    id: str
    email: str | None = None
    role: str = "student"


async def get_current_user(
    request: Request,
    credentials: HTTPAuthorizationCredentials = Depends(security),
) -> CurrentUser:
    """Resolve the Supabase Auth user behind the bearer token.

    Sign-up, login and refresh happen client side against Supabase directly;
    this only validates the access token and returns the identity.
    """
    client = await get_supabase()
    token = credentials.credentials
    try:
        t0 = time.perf_counter()
        whoami_timeout = float(os.getenv("AUTH_WHOAMI_TIMEOUT", "5"))
        auth_user = await asyncio.wait_for(client.auth.get_user(token), timeout=whoami_timeout)
        ms = int((time.perf_counter() - t0) * 1000)
        if ms > 50:
            logger.info("auth.get_user_ms=%d", ms)
    except Exception as exc:  # noqa: BLE001
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid authentication credentials") from exc

    if not auth_user or not auth_user.user:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid authentication credentials")

    sup_user = auth_user.user
    metadata = sup_user.user_metadata or {}
    current = CurrentUser(
        id=str(sup_user.id),
        email=sup_user.email or metadata.get("email"),
        role=metadata.get("role") or "student",
    )

    request_id = getattr(request.state, "request_id", None)
    logger.info(
        "auth_resolved user_id=%s role=%s request_id=%s path=%s",
        current.id,
        current.role,
        request_id,
        request.url.path,
    )
    return current
