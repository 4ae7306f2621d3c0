"""
MemoHub Backend — Access Log Middleware
========================================

One log line per request on the `memohub.access` logger:

    GET /api/teams/…/memos 200 12.3ms [1f2e3d4c] from 10.0.0.7

Level follows the status: 5xx ERROR, 4xx WARNING, otherwise INFO.
/health is not logged. Invitation tokens are credentials, so the token
segment of /api/invitations/<token>/… paths is replaced with "***".
Request bodies and Authorization headers are never logged.
"""

import logging
import re
import time

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from memohub.middleware.request_id import request_id_var

logger = logging.getLogger("memohub.access")

_INVITATION_TOKEN_PATH = re.compile(r"^(/api/invitations/)[^/]+")

QUIET_PATHS = {"/health"}


def mask_path(path: str) -> str:
    return _INVITATION_TOKEN_PATH.sub(r"\1***", path)


class RequestLoggingMiddleware(BaseHTTPMiddleware):

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        path = request.url.path
        if path in QUIET_PATHS:
            return await call_next(request)

        start_time = time.perf_counter()
        client_ip = request.client.host if request.client else "unknown"

        response = await call_next(request)

        duration_ms = (time.perf_counter() - start_time) * 1000
        status = response.status_code
        if status >= 500:
            log_level = logging.ERROR
        elif status >= 400:
            log_level = logging.WARNING
        else:
            log_level = logging.INFO

        rid = request_id_var.get("")
        safe_path = mask_path(path)
        logger.log(
            log_level,
            "%s %s %d %.1fms [%s] from %s",
            request.method,
            safe_path,
            status,
            duration_ms,
            rid,
            client_ip,
            extra={
                "request_id": rid,
                "method": request.method,
                "path": safe_path,
                "status": status,
                "duration_ms": round(duration_ms, 2),
                "client_ip": client_ip,
            },
        )
        return response
