from fastapi import APIRouter

from app.api.v1.routes import assistant, chat, health, realtime

api_router = APIRouter()
api_router.include_router(health.router, prefix="/v1", tags=["health"])
api_router.include_router(chat.router, prefix="/v1/chat", tags=["chat"])
api_router.include_router(assistant.router, prefix="/v1/assistant", tags=["assistant"])
api_router.include_router(realtime.router, prefix="/v1/realtime", tags=["realtime"])
