# restaurant_api/deps.py
from __future__ import annotations

import logging
from typing import Any, Optional

from fastapi import HTTPException, Request, status

from restaurant_api.core.config import ANONYMOUS_REDEEMER_ID

logger = logging.getLogger(__name__)

PLATFORM_ADMIN = "PLATFORM_ADMIN"


def get_request_user(request: Request) -> Optional[Any]:
    """The caller as resolved by the auth layer in front of this API, if any."""
    return getattr(request.state, "user", None)


def get_caller_id(request: Request) -> str:
    """Id recorded as coupon redeemer and promotion author; anonymous without a user."""
    user = get_request_user(request)
    user_id = getattr(user, "id", None) if user is not None else None
    if user_id is None:
        return ANONYMOUS_REDEEMER_ID
    return str(user_id)


def require_platform_admin(request: Request) -> Any:
    user = get_request_user(request)
    role = (getattr(user, "role", "") or "").strip().upper()
    if role != PLATFORM_ADMIN:
        logger.warning(
            "forbidden: platform admin required user_id=%s role=%s",
            getattr(user, "id", None),
            role or None,
        )
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Platform admin access required")
    return user
