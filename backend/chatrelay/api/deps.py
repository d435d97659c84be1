"""
API dependencies for authentication, storage and the completion source.
These functions are used with FastAPI's Depends() for dependency injection.
"""
import logging
from typing import Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy import select

from chatrelay.core.config import settings
from chatrelay.core.security import decode_access_token
from chatrelay.db.database import AsyncSessionLocal
from chatrelay.models.user import User
from chatrelay.services.chat_store import ChatStore
from chatrelay.services.llm_service import LLMService
from chatrelay.services.relay import ChatRelay


logger = logging.getLogger(__name__)

# Bearer token is optional: browsers send the session cookie instead
security = HTTPBearer(auto_error=False)


def _request_token(request: Request, credentials: Optional[HTTPAuthorizationCredentials]) -> Optional[str]:
    if credentials is not None:
        return credentials.credentials
    return request.cookies.get(settings.SESSION_COOKIE_NAME)


async def get_optional_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security)
) -> Optional[User]:
    """
    Resolve the caller from the bearer token or the session cookie.

    The lookup uses its own session, closed before the endpoint runs: a
    streamed chat reply must not hold a pooled connection.

    Returns:
        The active User, or None when no valid credential is attached
    """
    token = _request_token(request, credentials)
    if not token:
        return None

    payload = decode_access_token(token)
    if payload is None:
        return None

    try:
        user_id = int(payload.get("sub"))
    except (ValueError, TypeError):
        logger.info("Token without a usable subject")
        return None

    async with AsyncSessionLocal() as db:
        result = await db.execute(select(User).where(User.id == user_id))
        user = result.scalar_one_or_none()

    if user is None or not user.is_active:
        return None
    return user


async def get_current_active_user(
    current_user: Optional[User] = Depends(get_optional_user)
) -> User:
    """
    Dependency requiring an authenticated, active user.

    Raises:
        HTTPException: If no valid credential is attached
    """
    if current_user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return current_user


def get_chat_store() -> ChatStore:
    return ChatStore()


def get_completion_source() -> LLMService:
    return LLMService.from_settings()


def get_chat_relay(
    store: ChatStore = Depends(get_chat_store),
    source: LLMService = Depends(get_completion_source)
) -> ChatRelay:
    return ChatRelay(store=store, source=source)
