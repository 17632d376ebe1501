# doorcount/main.py
"""
FastAPI application entry point.
Includes security middleware, global error handlers, and all routers.
"""

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware
from doorcount.routers import areas, bans, health, occupancy, reports, scans
from doorcount.database import create_tables
from doorcount.config import settings
from doorcount.utils.logger import get_logger
import time

logger = get_logger(__name__)

SLOW_REQUEST_MS = 1000

app = FastAPI(
    title="DoorCount Occupancy API",
    description="ID scanning, ban enforcement and live per-area occupancy for venues.",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
)

# ── CORS: scanner tablets and the venue dashboard run in browsers ───────────
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ── API Key Middleware ───────────────────────────────────────────────────────
class APIKeyMiddleware(BaseHTTPMiddleware):
    """
    Shared-key check for scanners, counters and dashboards (X-API-Key header
    or api_key query param). Health and the API docs stay open, as do CORS
    preflights, which browsers send without custom headers.
    """
    open_paths = {"/api/v1/health", "/docs", "/redoc", "/openapi.json"}

    async def dispatch(self, request: Request, call_next):
        if request.method == "OPTIONS" or request.url.path in self.open_paths:
            return await call_next(request)

        api_key = request.headers.get("X-API-Key") or request.query_params.get("api_key")
        if api_key != settings.API_KEY:
            return JSONResponse(
                status_code=status.HTTP_401_UNAUTHORIZED,
                content={"detail": "Invalid or missing API key"},
            )
        return await call_next(request)


if settings.API_KEY:
    app.add_middleware(APIKeyMiddleware)


# ── Request Timing Middleware ────────────────────────────────────────────────
@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.time()
    response = await call_next(request)
    duration = round((time.time() - start) * 1000, 2)
    line = f"{request.method} {request.url.path} → {response.status_code} ({duration}ms)"
    if duration > SLOW_REQUEST_MS:
        logger.warning(f"Slow request: {line}")
    else:
        logger.debug(line)
    return response


# ── Global Exception Handler ─────────────────────────────────────────────────
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled exception on {request.url.path}: {exc}", exc_info=True)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal server error"},
    )


# ── Routers ──────────────────────────────────────────────────────────────────
app.include_router(scans.router,     prefix="/api/v1", tags=["🪪 Scans"])
app.include_router(bans.router,      prefix="/api/v1", tags=["⛔ Bans"])
app.include_router(occupancy.router, prefix="/api/v1", tags=["👥 Occupancy"])
app.include_router(reports.router,   prefix="/api/v1", tags=["📊 Reports"])
app.include_router(areas.router,     prefix="/api/v1", tags=["🏢 Venues & Areas"])
app.include_router(health.router,    prefix="/api/v1", tags=["💚 Health"])


# ── Startup ───────────────────────────────────────────────────────────────────
@app.on_event("startup")
async def startup():
    logger.info("🚀 DoorCount backend starting up...")
    create_tables()
    logger.info("✅ Database tables ready")
    if not settings.ID_HASH_SALT:
        logger.warning("⚠️  ID_HASH_SALT not set; identity tokens use the fallback salt")
    logger.info(f"🌐 Listening on http://{settings.BACKEND_IP}:{settings.BACKEND_PORT}")
    logger.info("📖 API docs at /docs")


@app.on_event("shutdown")
async def shutdown():
    logger.info("🛑 DoorCount backend shutting down...")
