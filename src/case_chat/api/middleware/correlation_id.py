from __future__ import annotations

import uuid

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from case_chat.logging_config import correlation_scope

HEADER = "X-Request-ID"


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """Tags every HTTP request's logs with ``X-Request-ID`` (generated if absent)."""

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        with correlation_scope(request.headers.get(HEADER) or uuid.uuid4().hex) as cid:
            response = await call_next(request)
            response.headers[HEADER] = cid
            return response
