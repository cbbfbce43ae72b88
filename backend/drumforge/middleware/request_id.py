import uuid

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Tag each request with an id (client-supplied or generated) and echo it back."""

    header_name = "X-Request-ID"

    async def dispatch(self, request: Request, call_next):
        rid = request.headers.get(self.header_name) or uuid.uuid4().hex
        request.state.request_id = rid
        response = await call_next(request)
        response.headers[self.header_name] = rid
        return response
