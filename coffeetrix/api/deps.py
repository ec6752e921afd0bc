"""
Shared route dependencies.
"""

import hmac
from typing import Optional

from fastapi import Header, HTTPException, status

from ..config import settings
from ..core.runtime import AppContext, get_context


def get_runtime() -> AppContext:
    """Running bot components, 503 while the service is not started."""
    try:
        return get_context()
    except RuntimeError:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Bot runtime not initialized",
        )


async def require_admin(x_admin_token: Optional[str] = Header(default=None)) -> None:
    """Check X-Admin-Token when ADMIN_TOKEN is configured."""
    if not settings.admin_token:
        return
    if not x_admin_token or not hmac.compare_digest(x_admin_token, settings.admin_token):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid admin token",
        )
