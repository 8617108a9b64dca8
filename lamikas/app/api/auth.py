"""Account endpoint: ``/api/auth``.

All methods are routed to the handler so that unsupported ones still go
through rate limiting and receive a 405 with the security headers.
"""

from fastapi import APIRouter, Request, Response

from lamikas.app.api.responses import json_response
from lamikas.app.services.auth_handler import AuthRequestHandler, ClientRequest

AUTH_PATH = "/api/auth"

ALL_METHODS = ["GET", "POST", "PUT", "DELETE", "PATCH", "OPTIONS", "HEAD"]

router = APIRouter(tags=["auth"])


async def read_client_request(request: Request) -> ClientRequest:
    """Convert a Starlette request into the handler's request value."""
    # Raw bytes; the handlers decode strictly as UTF-8 when parsing JSON
    raw = await request.body()
    return ClientRequest.build(request.method, dict(request.headers), raw or None)


def get_auth_handler(request: Request) -> AuthRequestHandler:
    return request.app.state.auth_handler


@router.api_route(AUTH_PATH, methods=ALL_METHODS)
async def auth(request: Request) -> Response:
    handler = get_auth_handler(request)
    result = await handler.handle(await read_client_request(request))
    return json_response(result.status_code, result.body, extra_headers=result.headers)
