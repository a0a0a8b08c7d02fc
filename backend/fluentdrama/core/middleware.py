"""HTTP middleware: every /api response body is JSON."""
from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import Response

API_PREFIX = "/api"


def _copy_headers(source: Response, target: Response, skip: tuple[bytes, ...]) -> Response:
    # Raw pairs keep repeated headers such as Set-Cookie.
    for key, value in source.headers.raw:
        if key.lower() not in skip:
            target.headers.append(key.decode("latin-1"), value.decode("latin-1"))
    return target


class JSONBoxMiddleware(BaseHTTPMiddleware):
    """Wrap non-JSON /api response bodies as `{"message": <text>}`.

    Redirects and empty bodies pass through unchanged.
    """

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        response = await call_next(request)
        if not request.url.path.startswith(API_PREFIX):
            return response
        if 300 <= response.status_code < 400:
            return response
        content_type = response.headers.get("content-type", "")
        if content_type.startswith("application/json"):
            return response

        body = b""
        async for chunk in response.body_iterator:
            body += chunk if isinstance(chunk, bytes) else chunk.encode("utf-8")
        if not body:
            return _copy_headers(
                response, Response(status_code=response.status_code), (b"content-length",)
            )

        boxed = JSONResponse(
            status_code=response.status_code,
            content={"message": body.decode("utf-8", errors="replace")},
        )
        return _copy_headers(response, boxed, (b"content-type", b"content-length"))
