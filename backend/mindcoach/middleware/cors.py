"""Explicit CORS preflight replies for browser clients."""

from fastapi import Response
from starlette.datastructures import Headers
from starlette.middleware.cors import CORSMiddleware

from mindcoach.config import settings


def preflight_response(methods: str) -> Response:
    """200 with an empty body and the CORS headers for `methods`."""
    origin = "*" if settings.ALLOWED_ORIGINS.strip() == "*" else settings.ALLOWED_ORIGINS.split(",")[0].strip()
    return Response(
        status_code=200,
        content=b"",
        headers={
            "Access-Control-Allow-Origin": origin,
            "Access-Control-Allow-Headers": "Content-Type",
            "Access-Control-Allow-Methods": methods,
        },
    )


class EmptyPreflightCORSMiddleware(CORSMiddleware):
    """Starlette's CORS middleware, but accepted preflights reply with no body."""

    def preflight_response(self, request_headers: Headers) -> Response:
        response = super().preflight_response(request_headers)
        if response.status_code == 200:
            response.body = b""
            response.headers["content-length"] = "0"
        return response
