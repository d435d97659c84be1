"""
Chat endpoint relaying a streamed completion to the caller.
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse, PlainTextResponse, StreamingResponse
from pydantic import ValidationError

from chatrelay.api.deps import get_chat_relay, get_optional_user
from chatrelay.core.errors import RelayError
from chatrelay.models.user import User
from chatrelay.schemas.chat import ChatError, ChatRequest
from chatrelay.services.relay import ChatRelay


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Chat"])


def _error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=ChatError(error=message).model_dump())


def _validation_message(error: ValidationError) -> str:
    first = error.errors()[0]
    field = ".".join(str(part) for part in first["loc"])
    return f"{field}: {first['msg']}" if field else first["msg"]


@router.post(
    "/chat",
    response_class=StreamingResponse,
    openapi_extra={
        "requestBody": {
            "required": True,
            "content": {"application/json": {"schema": ChatRequest.model_json_schema()}},
        }
    },
    responses={
        200: {"content": {"text/plain": {}}, "description": "Preamble line followed by streamed text"},
        401: {"content": {"text/plain": {}}},
        404: {"model": ChatError},
        422: {"model": ChatError},
        500: {"model": ChatError},
    },
)
async def chat(
    request: Request,
    current_user: Optional[User] = Depends(get_optional_user),
    relay: ChatRelay = Depends(get_chat_relay)
):
    """
    Send a chat message and stream the assistant reply.

    The body starts with one JSON line `{"conversationId": "..."}` naming the
    conversation the turn was stored in, followed by the reply text as it
    arrives from the model.

    The caller is checked before the body is parsed, so an anonymous request
    gets 401 whatever it sent.

    Args:
        request: Raw request carrying a ChatRequest JSON body
        current_user: Caller resolved from the session credential
        relay: Relay bound to the store and completion source

    Returns:
        StreamingResponse, or an error response if the turn failed before streaming
    """
    if current_user is None:
        logger.info("Rejected unauthenticated chat request")
        return PlainTextResponse("Unauthorized", status_code=status.HTTP_401_UNAUTHORIZED)

    try:
        payload = ChatRequest.model_validate_json(await request.body())
    except ValidationError as e:
        message = _validation_message(e)
        logger.info("Invalid chat request from user %s: %s", current_user.id, message)
        return _error_response(422, message)

    try:
        session = await relay.open(current_user, payload.message, payload.conversationId)
    except RelayError as e:
        logger.error("Chat request from user %s failed before streaming: %s", current_user.id, e.message)
        return _error_response(e.status_code, e.message)

    return StreamingResponse(
        session.stream(),
        media_type="text/plain; charset=utf-8",
        headers={"Cache-Control": "no-cache"},
    )
