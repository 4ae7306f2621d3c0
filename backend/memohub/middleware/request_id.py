"""
MemoHub Backend — Request ID Middleware
========================================

What:  Gives every request a short correlation id, exposed as the
       X-Request-ID response header and as `request_id` in error bodies.
How:   Reuses a client-supplied X-Request-ID when it looks sane (short,
       printable token characters); otherwise generates 8 hex characters.
"""

import re
import uuid
from contextvars import ContextVar

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

# Coroutine-local: concurrent requests on one event loop each see their own id
request_id_var: ContextVar[str] = ContextVar("request_id", default="")

REQUEST_ID_HEADER = "X-Request-ID"

_CLIENT_ID_PATTERN = re.compile(r"^[A-Za-z0-9._-]{1,64}$")


def new_request_id() -> str:
    return uuid.uuid4().hex[:8]


class RequestIDMiddleware(BaseHTTPMiddleware):
    """
    Behavior:
        1. Accept the client's X-Request-ID if it matches [A-Za-z0-9._-]{1,64}
        2. Otherwise generate a fresh id (client values that could inject
           into log lines are dropped)
        3. Store it in request_id_var and request.state.request_id
        4. Echo it in the response header
    """

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        supplied = request.headers.get(REQUEST_ID_HEADER, "")
        rid = supplied if _CLIENT_ID_PATTERN.match(supplied) else new_request_id()

        token = request_id_var.set(rid)
        request.state.request_id = rid
        try:
            response = await call_next(request)
        finally:
            request_id_var.reset(token)

        response.headers[REQUEST_ID_HEADER] = rid
        return response
