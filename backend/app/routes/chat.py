from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from app.auth import require_auth
from app.models import MessageResponse, TokenResponse, message_response
from app.stream_client import StreamService

TOKEN_ERROR_MESSAGE = "Error generating stream token"

router = APIRouter(prefix="/api/chat", tags=["chat"])


@router.get(
    "/token",
    response_model=TokenResponse,
    responses={401: {"model": MessageResponse}, 500: {"model": MessageResponse}},
)
async def get_stream_token(request: Request, user_id: str = Depends(require_auth)) -> TokenResponse | JSONResponse:
    stream: StreamService = request.app.state.stream
    token = stream.generate_token(user_id)
    if not token:
        return message_response(500, TOKEN_ERROR_MESSAGE)
    return TokenResponse(token=token)
