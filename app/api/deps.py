from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import get_settings
from app.core.db import get_db_session, get_session_factory
from app.core.security import Identity, decode_identity_token
from app.services.conversation_service import ConversationService

bearer_scheme = HTTPBearer(auto_error=False)


def build_conversation_service(session: AsyncSession, state: Any) -> ConversationService:
    settings = get_settings()
    return ConversationService(
        session=session,
        responder=getattr(state, "responder", None),
        realtime=getattr(state, "realtime_hub", None),
        history_limit=settings.chat_history_limit,
        handover_threshold=settings.handover_sentiment_threshold,
    )


def conversation_service_scope(state: Any):
    """Per-event service factory for the websocket gateway."""

    @asynccontextmanager
    async def scope() -> AsyncIterator[ConversationService]:
        async with get_session_factory()() as session:
            yield build_conversation_service(session, state)

    return scope


async def get_conversation_service(
    request: Request,
    session: AsyncSession = Depends(get_db_session),
) -> ConversationService:
    return build_conversation_service(session, request.app.state)


async def get_identity(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> Identity:
    if credentials is None or credentials.scheme.lower() != "bearer":
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Access token required",
        )

    try:
        return decode_identity_token(
            credentials.credentials,
            get_settings().auth_token_secret,
        )
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
        ) from exc


async def get_operator(identity: Identity = Depends(get_identity)) -> Identity:
    if not identity.is_operator:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Operator access required",
        )
    return identity
