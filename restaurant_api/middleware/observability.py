from __future__ import annotations

import logging
import time
import uuid

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

from restaurant_api.core.request_context import clear_request_context, set_request_context

logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"
RESTAURANT_ID_HEADER = "X-Restaurant-ID"


class ObservabilityMiddleware(BaseHTTPMiddleware):
    """Tags every request with an id and writes one access log line for it."""

    async def dispatch(self, request: Request, call_next) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
        request.state.request_id = request_id
        set_request_context(request_id=request_id)

        started = time.perf_counter()
        response: Response | None = None
        try:
            response = await call_next(request)
        finally:
            _log_access(request, response, started)
            clear_request_context()

        response.headers[REQUEST_ID_HEADER] = request_id
        return response


def _log_access(request: Request, response: Response | None, started: float) -> None:
    # no response means the app raised
    status_code = response.status_code if response is not None else 500
    context = set_request_context(
        restaurant_id=_restaurant_scope(request),
        user_id=_caller_id(request),
    )
    logger.log(
        logging.ERROR if status_code >= 500 else logging.INFO,
        "request completed",
        extra={
            "request_id": context.request_id,
            "restaurant_id": context.restaurant_id,
            "user_id": context.user_id,
            "endpoint": request.url.path,
            "method": request.method,
            "status_code": status_code,
            "duration_ms": round((time.perf_counter() - started) * 1000, 2),
        },
    )


def _restaurant_scope(request: Request) -> str | None:
    for source in (request.path_params, request.query_params, request.headers):
        key = RESTAURANT_ID_HEADER if source is request.headers else "restaurant_id"
        value = source.get(key)
        if value:
            return str(value)
    return None


def _caller_id(request: Request) -> str | None:
    user_id = getattr(getattr(request.state, "user", None), "id", None)
    return None if user_id is None else str(user_id)
