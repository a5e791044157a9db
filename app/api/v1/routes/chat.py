import logging
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Request, status

from app.api.deps import get_conversation_service, get_identity, get_operator
from app.core.config import get_settings
from app.core.rate_limit import InMemoryRateLimiter, RateLimitExceeded, RateLimitRule
from app.core.security import Identity
from app.infra.llm.errors import TextGenerationError
from app.schemas.conversation import (
    ConversationResponse,
    ConversationSummaryResponse,
    CustomerExchangeResponse,
    FaqExchangeResponse,
)
from app.schemas.message import MessageResponse, SendFaqRequest, SendMessageRequest
from app.services.conversation_service import ConversationService, ConversationSummary
from app.services.errors import (
    ConversationAccessDeniedError,
    ConversationClosedError,
    ConversationConflictError,
    ConversationNotFoundError,
    ServiceUnavailableError,
    ValidationError,
)

logger = logging.getLogger(__name__)

router = APIRouter()
settings = get_settings()
_fallback_limiter = InMemoryRateLimiter()

SERVICE_ERRORS = (
    ValidationError,
    ConversationNotFoundError,
    ConversationAccessDeniedError,
    ConversationClosedError,
    ConversationConflictError,
    ServiceUnavailableError,
    TextGenerationError,
    RateLimitExceeded,
)


def _to_summary_response(summary: ConversationSummary) -> ConversationSummaryResponse:
    response = ConversationSummaryResponse.model_validate(summary.conversation)
    if summary.last_message is not None:
        response.last_message = MessageResponse.model_validate(summary.last_message)
    return response


def _raise_for_service_error(exc: Exception) -> None:
    if isinstance(exc, ValidationError):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    if isinstance(exc, ConversationNotFoundError):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    if isinstance(exc, ConversationAccessDeniedError):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc)) from exc
    if isinstance(exc, (ConversationClosedError, ConversationConflictError)):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    if isinstance(exc, RateLimitExceeded):
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail=str(exc),
            headers={"Retry-After": str(max(1, round(exc.retry_after)))},
        ) from exc
    if isinstance(exc, (ServiceUnavailableError, TextGenerationError)):
        # Upstream detail stays in the logs.
        logger.warning("Automated reply unavailable: %s", exc)
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Automated assistant temporarily unavailable",
        ) from exc
    raise exc


async def _enforce_rate_limit(request: Request, identity: Identity) -> None:
    limiter = getattr(request.app.state, "rate_limiter", None) or _fallback_limiter
    await limiter.check(
        identity.user_id,
        RateLimitRule(
            limit=settings.chat_rate_limit,
            window_seconds=settings.chat_rate_window_seconds,
        ),
    )


@router.post("/send", response_model=CustomerExchangeResponse)
async def send_message(
    payload: SendMessageRequest,
    request: Request,
    service: ConversationService = Depends(get_conversation_service),
    identity: Identity = Depends(get_identity),
) -> CustomerExchangeResponse:
    try:
        await _enforce_rate_limit(request, identity)
        result = await service.send_customer_message(identity.user_id, payload.message)
    except SERVICE_ERRORS as exc:
        _raise_for_service_error(exc)
    return CustomerExchangeResponse(
        conversation_id=result.conversation.id,
        message=MessageResponse.model_validate(result.assistant_message),
        should_handover=result.should_handover,
    )


@router.post("/send-faq", response_model=FaqExchangeResponse)
async def send_faq(
    payload: SendFaqRequest,
    service: ConversationService = Depends(get_conversation_service),
    identity: Identity = Depends(get_identity),
) -> FaqExchangeResponse:
    try:
        result = await service.send_faq_answer(
            identity.user_id, payload.question, payload.answer
        )
    except SERVICE_ERRORS as exc:
        _raise_for_service_error(exc)
    return FaqExchangeResponse(
        conversation_id=result.conversation.id,
        message=MessageResponse.model_validate(result.answer_message),
    )


@router.get("/history/{conversation_id}", response_model=list[MessageResponse])
async def get_history(
    conversation_id: UUID,
    service: ConversationService = Depends(get_conversation_service),
    identity: Identity = Depends(get_identity),
) -> list[MessageResponse]:
    try:
        messages = await service.get_history(conversation_id, identity)
    except SERVICE_ERRORS as exc:
        _raise_for_service_error(exc)
    return [MessageResponse.model_validate(message) for message in messages]


@router.get("/conversations", response_model=list[ConversationSummaryResponse])
async def list_open_conversations(
    service: ConversationService = Depends(get_conversation_service),
    operator: Identity = Depends(get_operator),
) -> list[ConversationSummaryResponse]:
    summaries = await service.list_open()
    return [_to_summary_response(summary) for summary in summaries]


@router.get("/attention", response_model=list[ConversationSummaryResponse])
async def list_conversations_needing_attention(
    service: ConversationService = Depends(get_conversation_service),
    operator: Identity = Depends(get_operator),
) -> list[ConversationSummaryResponse]:
    summaries = await service.list_needing_attention()
    return [_to_summary_response(summary) for summary in summaries]


@router.post("/{conversation_id}/assign", response_model=ConversationResponse)
async def assign_conversation(
    conversation_id: UUID,
    service: ConversationService = Depends(get_conversation_service),
    operator: Identity = Depends(get_operator),
) -> ConversationResponse:
    try:
        conversation = await service.assign(conversation_id, operator.user_id)
    except SERVICE_ERRORS as exc:
        _raise_for_service_error(exc)
    return ConversationResponse.model_validate(conversation)


@router.post("/{conversation_id}/resolve", response_model=ConversationResponse)
async def resolve_conversation(
    conversation_id: UUID,
    service: ConversationService = Depends(get_conversation_service),
    operator: Identity = Depends(get_operator),
) -> ConversationResponse:
    try:
        conversation = await service.resolve(conversation_id, operator.user_id)
    except SERVICE_ERRORS as exc:
        _raise_for_service_error(exc)
    return ConversationResponse.model_validate(conversation)


@router.post("/{conversation_id}/operator-message", response_model=MessageResponse)
async def post_operator_message(
    conversation_id: UUID,
    payload: SendMessageRequest,
    service: ConversationService = Depends(get_conversation_service),
    operator: Identity = Depends(get_operator),
) -> MessageResponse:
    try:
        message = await service.record_operator_message(
            conversation_id,
            operator_id=operator.user_id,
            content=payload.message,
        )
    except SERVICE_ERRORS as exc:
        _raise_for_service_error(exc)
    return MessageResponse.model_validate(message)
