from fastapi import APIRouter, Depends, Request
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.db import get_db_session

router = APIRouter()


@router.get("/health")
async def health(request: Request) -> dict[str, str | int]:
    visitors = getattr(request.app.state, "visitors", None)
    return {
        "status": "ok",
        "visitors": visitors.count if visitors is not None else 0,
    }


@router.get("/health/db")
async def db_health(session: AsyncSession = Depends(get_db_session)):
    await session.execute(text("SELECT 1"))
    return {"db": "ok"}
