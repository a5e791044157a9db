import json
import logging
from collections.abc import Callable
from contextlib import AbstractAsyncContextManager

from fastapi import WebSocket
from pydantic import ValidationError as PayloadValidationError

from app.core.rate_limit import InMemoryRateLimiter, RateLimitExceeded, RateLimitRule
from app.core.security import Identity, decode_identity_token
from app.infra.llm.errors import TextGenerationError
from app.infra.realtime.channels import OPERATOR_ROOM, customer_room
from app.infra.realtime.events import RealtimeEvent
from app.infra.realtime.hub import InMemoryRealtimeHub, RealtimeSession
from app.infra.realtime.presence import VisitorCounter
from app.schemas.message import message_payload
from app.schemas.realtime import (
    AdminMessageFrame,
    PingFrame,
    SendMessageFrame,
    client_frame_adapter,
)
from app.services.conversation_service import ConversationService
from app.services.errors import (
    ConversationClosedError,
    ConversationNotFoundError,
    ServiceUnavailableError,
    ValidationError,
)

logger = logging.getLogger(__name__)

ServiceScope = Callable[[], AbstractAsyncContextManager[ConversationService]]

AUTH_REQUIRED = "Auth required"
OPERATOR_REQUIRED = "Operator access required"
INVALID_FRAME = "Invalid event payload"
PROCESS_FAILED = "Failed to process message"
SEND_FAILED = "Failed to send message"
ASSISTANT_UNAVAILABLE = "Automated assistant temporarily unavailable"


class RealtimeGateway:
    """Connection handshake, room membership and event dispatch for websockets."""

    def __init__(
        self,
        hub: InMemoryRealtimeHub,
        service_scope: ServiceScope,
        token_secret: str,
        visitors: VisitorCounter | None = None,
        rate_limiter: InMemoryRateLimiter | None = None,
        rate_rule: RateLimitRule | None = None,
    ) -> None:
        self.hub = hub
        self.service_scope = service_scope
        self.token_secret = token_secret
        self.visitors = visitors or VisitorCounter()
        self.rate_limiter = rate_limiter or InMemoryRateLimiter()
        self.rate_rule = rate_rule or RateLimitRule(limit=30, window_seconds=60)

    def authenticate(self, token: str | None) -> Identity | None:
        if not token:
            return None
        try:
            return decode_identity_token(token, self.token_secret)
        except ValueError as exc:
            # Bad credentials still connect, as a guest.
            logger.info("Realtime credential rejected: %s", exc)
            return None

    async def open(self, websocket: WebSocket, token: str | None) -> RealtimeSession:
        identity = self.authenticate(token)
        session = await self.hub.connect(websocket, identity)

        if identity is not None:
            await self.hub.join(session, customer_room(identity.user_id))
            if identity.is_operator:
                await self.hub.join(session, OPERATOR_ROOM)

        count = await self.visitors.increment()
        logger.info(
            "Realtime connection %s opened (user=%s, visitors=%d)",
            session.connection_id,
            identity.user_id if identity else "guest",
            count,
        )
        await self.hub.publish([OPERATOR_ROOM], RealtimeEvent.VISITOR_COUNT, {"count": count})
        return session

    async def close(self, session: RealtimeSession) -> None:
        await self.hub.disconnect(session)
        count = await self.visitors.decrement()
        logger.info(
            "Realtime connection %s closed (visitors=%d)", session.connection_id, count
        )
        await self.hub.publish([OPERATOR_ROOM], RealtimeEvent.VISITOR_COUNT, {"count": count})

    async def handle_frame(self, session: RealtimeSession, raw_frame: str) -> None:
        if raw_frame.strip().lower() == "ping":
            await self.hub.emit(session, RealtimeEvent.PONG, {})
            return

        try:
            frame = client_frame_adapter.validate_python(json.loads(raw_frame))
        except (json.JSONDecodeError, PayloadValidationError):
            await self._emit_error(session, INVALID_FRAME)
            return

        if isinstance(frame, PingFrame):
            await self.hub.emit(session, RealtimeEvent.PONG, {})
        elif isinstance(frame, SendMessageFrame):
            await self.on_send_message(session, frame)
        elif isinstance(frame, AdminMessageFrame):
            await self.on_admin_message(session, frame)

    async def on_send_message(
        self, session: RealtimeSession, frame: SendMessageFrame
    ) -> None:
        identity = session.identity
        if identity is None:
            await self._emit_error(session, AUTH_REQUIRED)
            return

        try:
            await self.rate_limiter.check(identity.user_id, self.rate_rule)
            async with self.service_scope() as service:
                conversation, customer_message = await service.accept_customer_message(
                    identity.user_id, frame.data.message
                )
                await self.hub.emit(
                    session,
                    RealtimeEvent.MESSAGE_RECEIVED,
                    {
                        "conversationId": str(conversation.id),
                        "message": message_payload(customer_message),
                    },
                )

                reply = await service.generate_reply(conversation.id)
                await self.hub.emit(
                    session,
                    RealtimeEvent.AI_RESPONSE,
                    {
                        "conversationId": str(conversation.id),
                        "message": message_payload(reply.message),
                        "shouldHandover": reply.should_handover,
                    },
                )
                await service.announce_reply(reply)
        except (ValidationError, RateLimitExceeded, ConversationClosedError) as exc:
            await self._emit_error(session, str(exc))
        except (ServiceUnavailableError, TextGenerationError) as exc:
            logger.warning(
                "Automated reply failed for customer %s: %s", identity.user_id, exc
            )
            await self._emit_error(session, ASSISTANT_UNAVAILABLE)
        except Exception:
            logger.exception("send_message failed for customer %s", identity.user_id)
            await self._emit_error(session, PROCESS_FAILED)

    async def on_admin_message(
        self, session: RealtimeSession, frame: AdminMessageFrame
    ) -> None:
        identity = session.identity
        if identity is None or not identity.is_operator:
            await self._emit_error(session, OPERATOR_REQUIRED)
            return

        try:
            async with self.service_scope() as service:
                await service.record_operator_message(
                    frame.data.conversation_id,
                    operator_id=identity.user_id,
                    content=frame.data.message,
                )
        except (ValidationError, ConversationNotFoundError) as exc:
            await self._emit_error(session, str(exc))
        except Exception:
            logger.exception("admin_message failed for operator %s", identity.user_id)
            await self._emit_error(session, SEND_FAILED)

    async def _emit_error(self, session: RealtimeSession, message: str) -> None:
        await self.hub.emit(session, RealtimeEvent.ERROR, {"message": message})
