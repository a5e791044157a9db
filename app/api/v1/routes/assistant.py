import logging

from fastapi import APIRouter, Depends, HTTPException, Request, status

from app.api.deps import get_operator
from app.core.security import Identity
from app.infra.llm.errors import TextGenerationError
from app.schemas.conversation import ProductDescriptionRequest, ProductDescriptionResponse
from app.services.responder import Responder

logger = logging.getLogger(__name__)

router = APIRouter()


async def get_responder(request: Request) -> Responder:
    responder = getattr(request.app.state, "responder", None)
    if responder is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Automated assistant is not configured",
        )
    return responder


@router.post("/product-description", response_model=ProductDescriptionResponse)
async def describe_product(
    payload: ProductDescriptionRequest,
    responder: Responder = Depends(get_responder),
    operator: Identity = Depends(get_operator),
) -> ProductDescriptionResponse:
    name = payload.name.strip()
    if not name:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail="Product name is required"
        )

    tags = [tag.strip() for tag in payload.tags if tag.strip()]
    try:
        description = await responder.describe_product(name, tags)
    except TextGenerationError as exc:
        logger.warning("Product description failed for %r: %s", name, exc)
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Automated assistant temporarily unavailable",
        ) from exc
    return ProductDescriptionResponse(description=description)
