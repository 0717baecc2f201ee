import logging
import traceback
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from uvicorn.middleware.proxy_headers import ProxyHeadersMiddleware

from cardgen.api.v1.router import api_v1_router, functions_router
from cardgen.core.config import settings, validate_settings_for_production
from cardgen.core.logging import setup_logging
from cardgen.core.metrics import PrometheusMiddleware, metrics_response
from cardgen.core.middleware import RequestLoggingMiddleware
from cardgen.core.rate_limit import limiter
from cardgen.core.sentry import init_sentry
from cardgen.gateway.dispatcher import ActionDispatcher

# Configure logging before anything else
setup_logging()
init_sentry()

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    validate_settings_for_production()
    if getattr(app.state, "dispatcher", None) is None:
        app.state.dispatcher = ActionDispatcher.from_settings()
    logger.info(
        "Starting flashcard generation gateway (model=%s, credentials=%d)",
        settings.gemini_model,
        app.state.dispatcher.credential_count,
    )

    yield

    logger.info("Flashcard generation gateway shut down")


app = FastAPI(
    title="cardgen",
    description="Flashcard generation gateway with multi-key failover",
    version="1.0.0",
    lifespan=lifespan,
    docs_url="/api/docs" if settings.app_debug else None,
    redoc_url="/api/redoc" if settings.app_debug else None,
)


@app.exception_handler(Exception)
async def _unhandled_exception_handler(request: Request, exc: Exception):
    tb = traceback.format_exception(type(exc), exc, exc.__traceback__)
    logger.error("Unhandled %s on %s %s:\n%s", type(exc).__name__, request.method, request.url.path, "".join(tb))
    return JSONResponse(status_code=500, content={"error": "Unknown error occurred"})


# Rate limiter
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(PrometheusMiddleware)

# CORS — parse allowed_origins from settings (comma-separated)
_origins = [o.strip() for o in settings.allowed_origins.split(",") if o.strip()]
app.add_middleware(
    CORSMiddleware,
    allow_origins=_origins,
    allow_credentials=False,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["authorization", "x-client-info", "apikey", "content-type"],
)

# Outermost: trusted proxies rewrite the peer address before rate limiting and logging
app.add_middleware(ProxyHeadersMiddleware, trusted_hosts=settings.forwarded_allow_ips)

app.include_router(api_v1_router)
app.include_router(functions_router)


@app.get("/api/v1/health")
async def health(request: Request):
    dispatcher: ActionDispatcher | None = getattr(request.app.state, "dispatcher", None)
    return {
        "status": "ok",
        "model": settings.gemini_model,
        "credentials": dispatcher.credential_count if dispatcher else 0,
    }


@app.get("/metrics", include_in_schema=False)
async def metrics():
    return metrics_response()
