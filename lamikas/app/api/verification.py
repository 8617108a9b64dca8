"""Verification email endpoint: ``/api/send-verification-email``."""

from fastapi import APIRouter, Request, Response

from lamikas.app.api.auth import ALL_METHODS, read_client_request
from lamikas.app.api.responses import json_response
from lamikas.app.services.verification_email import VerificationEmailSender

VERIFICATION_PATH = "/api/send-verification-email"

router = APIRouter(tags=["verification"])


@router.api_route(VERIFICATION_PATH, methods=ALL_METHODS)
async def send_verification_email(request: Request) -> Response:
    sender: VerificationEmailSender = request.app.state.verification_sender
    result = await sender.handle(await read_client_request(request))
    return json_response(result.status_code, result.body, include_csp=False)
