import importlib
import logging
import uuid

import sentry_sdk
from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from redis.exceptions import RedisError
from sentry_sdk.integrations.asgi import SentryAsgiMiddleware

from bluecollar.config import settings
from bluecollar.logging_setup import TRACE_ID_CTX, setup_logging
from bluecollar.metrics import update_queue_depth
from bluecollar.redis_client import redis_client

logger = logging.getLogger(__name__)

app = FastAPI(title=settings.APP_NAME)

# initialize logging and Sentry
setup_logging(settings.LOG_LEVEL.upper())
if settings.SENTRY_DSN:
    sentry_sdk.init(dsn=settings.SENTRY_DSN)
    app.add_middleware(SentryAsgiMiddleware)

cors_origins = [o.strip() for o in (settings.CORS_ORIGINS or settings.FRONTEND_URL).split(",") if o.strip()]
app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    # browsers reject wildcard origins on credentialed requests
    allow_credentials=cors_origins != ["*"],
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["X-Trace-Id"],
)


@app.middleware("http")
async def add_trace_id(request: Request, call_next):
    trace_id = request.headers.get("x-trace-id") or str(uuid.uuid4())
    TRACE_ID_CTX.set(trace_id)
    response = await call_next(request)
    response.headers["X-Trace-Id"] = trace_id
    return response


# List of module names to include as routers
MODULES = [
    "auth",
    "users",
    "profiles",
    "services",
    "addresses",
    "bookings",
    "payments",
    "notifications",
    "reviews",
    "admin",
]


for mod in MODULES:
    pkg = importlib.import_module(f"bluecollar.modules.{mod}.router")
    app.include_router(pkg.router, prefix=f"/{mod}")


@app.get("/")
async def root():
    return {"app": settings.APP_NAME, "status": "ok"}


@app.get("/metrics")
async def metrics():
    # update dynamic gauges before scraping
    try:
        await update_queue_depth()
    except RedisError:
        logger.warning("could not refresh queue depth gauges")
    content = generate_latest()
    return Response(content=content, media_type=CONTENT_TYPE_LATEST)


@app.get("/health")
async def health():
    return {"status": "ok"}


@app.get("/ready")
async def ready():
    # simple readiness: check redis
    try:
        await redis_client.ping()
    except (RedisError, OSError):
        return Response(status_code=503, content="redis unavailable")
    return {"status": "ready"}
