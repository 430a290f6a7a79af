"""HTTP API: send a text message, fetch the pairing QR."""

from typing import Annotated

import structlog
from fastapi import APIRouter, Depends, Request, Response
from pydantic import BaseModel, ValidationError

from gateway.errors import InvalidRequestError, PairingCodeNotFoundError, SessionUnavailableError
from gateway.session import pairing
from gateway.session.manager import SessionManager
from gateway.utils.jid import digits_only

logger = structlog.get_logger()

router = APIRouter()


class SendMessageRequest(BaseModel):
    phone: str | None = None
    message: str | None = None


# ---------------------------------------------------------------------------
# Dependencies
# ---------------------------------------------------------------------------


def get_session_manager(request: Request) -> SessionManager:
    session = getattr(request.app.state, "session", None)
    if session is None:
        raise SessionUnavailableError("WhatsApp transport is not configured")
    return session


async def parse_send_request(request: Request) -> SendMessageRequest:
    """Validate the body before anything touches the session."""
    try:
        data = await request.json()
    except ValueError:
        data = None

    try:
        payload = SendMessageRequest.model_validate(data if isinstance(data, dict) else {})
    except ValidationError:
        payload = SendMessageRequest()

    if not payload.phone or not payload.message or not digits_only(payload.phone):
        logger.error("send_request_invalid")
        raise InvalidRequestError("Provide phone and message in the request body")
    return payload


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------


@router.post("/send-message")
async def send_message(
    payload: Annotated[SendMessageRequest, Depends(parse_send_request)],
    session: Annotated[SessionManager, Depends(get_session_manager)],
) -> dict:
    await session.send_message(payload.phone, payload.message)
    return {
        "status": "success",
        "message": f"Message sent to +{digits_only(payload.phone)}",
    }


@router.get("/qr")
async def get_qr(request: Request) -> Response:
    # No transport means no pairing code was ever issued
    session = getattr(request.app.state, "session", None)
    code = session.last_qr if session is not None else None
    if not code:
        raise PairingCodeNotFoundError("QR code not generated yet")
    return Response(content=pairing.render_png(code), media_type="image/png")
