import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.httpsredirect import HTTPSRedirectMiddleware
from starlette.middleware.trustedhost import TrustedHostMiddleware

from app.api.deps import conversation_service_scope
from app.api.router import api_router
from app.core.config import get_settings
from app.core.db import close_engine, create_schema, init_engine
from app.core.logging import configure_logging
from app.core.rate_limit import InMemoryRateLimiter, RateLimitRule
from app.infra.realtime import InMemoryRealtimeHub, VisitorCounter
from app.services.realtime_gateway import RealtimeGateway
from app.services.responder import Responder

settings = get_settings()
settings.validate_security_settings()
configure_logging(settings.log_level)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Initialize infrastructure
    engine = init_engine()
    app.state.db_engine = engine
    if settings.db_auto_create:
        await create_schema(engine)

    app.state.realtime_hub = InMemoryRealtimeHub()
    app.state.visitors = VisitorCounter()
    app.state.rate_limiter = InMemoryRateLimiter()
    app.state.responder = Responder.from_settings(settings)
    app.state.realtime_gateway = RealtimeGateway(
        hub=app.state.realtime_hub,
        service_scope=conversation_service_scope(app.state),
        token_secret=settings.auth_token_secret,
        visitors=app.state.visitors,
        rate_limiter=app.state.rate_limiter,
        rate_rule=RateLimitRule(
            limit=settings.chat_rate_limit,
            window_seconds=settings.chat_rate_window_seconds,
        ),
    )
    logger.info(
        "Support chat started (env=%s, primary=%s, fallback=%s)",
        settings.app_env,
        settings.llm_primary_model,
        settings.llm_fallback_model,
    )

    yield

    # Graceful shutdown
    await close_engine(engine)


app = FastAPI(
    title="Storefront Support Chat API",
    version="0.1.0",
    docs_url="/docs" if settings.app_env != "production" else None,
    redoc_url="/redoc" if settings.app_env != "production" else None,
    lifespan=lifespan,
)

if settings.trusted_hosts:
    app.add_middleware(
        TrustedHostMiddleware,
        allowed_hosts=settings.trusted_hosts,
    )

if settings.force_https:
    app.add_middleware(HTTPSRedirectMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_allowed_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type"],
)


@app.middleware("http")
async def add_security_headers(request: Request, call_next):
    response = await call_next(request)
    response.headers.setdefault("X-Content-Type-Options", "nosniff")
    response.headers.setdefault("X-Frame-Options", "DENY")
    response.headers.setdefault(
        "Referrer-Policy",
        "strict-origin-when-cross-origin",
    )
    response.headers.setdefault(
        "Permissions-Policy",
        "camera=(), microphone=(), geolocation=()",
    )
    if settings.force_https:
        response.headers.setdefault(
            "Strict-Transport-Security",
            "max-age=31536000; includeSubDomains",
        )
    return response


app.include_router(api_router, prefix="/api")


@app.get("/", tags=["meta"])
async def root() -> dict[str, str]:
    return {"service": "storefront-support-chat", "status": "ok"}
