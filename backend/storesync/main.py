"""
StoreSync - Backend API
Local cache migration, catalog reconciliation and order financials
"""
import logging
import time
from pathlib import Path

from dotenv import load_dotenv

# Load environment variables before settings are read
env_path = Path(__file__).parent.parent / '.env'
load_dotenv(env_path)

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from storesync.api import order_statuses, orders, sync
from storesync.core.config import settings
from storesync.core.exceptions import StoreSyncError

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s"
)
logger = logging.getLogger(__name__)

ALLOWED_ORIGINS = settings.get_allowed_origins()

app = FastAPI(
    title=settings.API_TITLE,
    version=settings.API_VERSION,
    description=settings.API_DESCRIPTION,
    debug=settings.API_DEBUG
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS", "PATCH"],
    allow_headers=["*"],
)


@app.exception_handler(StoreSyncError)
async def store_sync_error_handler(request: Request, exc: StoreSyncError):
    """Application errors become JSON with their own status code"""
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    else:
        logger.warning(f"{request.method} {request.url.path} rejected ({exc.status_code}): {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


# Include API routers
app.include_router(sync.router)
app.include_router(order_statuses.router)
app.include_router(orders.router)


@app.get("/")
async def root():
    """Root endpoint - API status check"""
    return {
        "message": "StoreSync API",
        "status": "online",
        "version": settings.API_VERSION,
        "description": settings.API_DESCRIPTION
    }


@app.get("/health")
async def health():
    """Health check for monitoring; reports configuration, not connectivity"""
    start_time = time.time()
    return {
        "status": "healthy",
        "service": "storesync-api",
        "version": settings.API_VERSION,
        "supabase": {
            "status": "configured" if settings.SUPABASE_URL else "not_configured"
        },
        "auth": {
            "status": "configured" if settings.AUTH_SECRET else "not_configured"
        },
        "local_state_dir": settings.LOCAL_STATE_DIR,
        "total_latency_ms": round((time.time() - start_time) * 1000, 2)
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=settings.API_HOST, port=settings.API_PORT)
