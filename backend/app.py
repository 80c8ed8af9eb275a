"""FastAPI backend for the coordination of benefits (COB) engine."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from cob import CobRecordStore, NotFoundError, ValidationError
from config import DB_PATH
from rate_limit import limiter
from routes import cob_router
from routes.cob import get_policy

# Configure logging
logger = logging.getLogger(__name__)


def init_db() -> None:
    """Create the database directory and COB tables."""
    Path(DB_PATH).parent.mkdir(parents=True, exist_ok=True)
    CobRecordStore(DB_PATH)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize resources on startup."""
    init_db()
    policy = get_policy()
    logger.info(
        f"COB policy loaded: max_coverages={policy.max_coverages} "
        f"stale_days={policy.verification_stale_days}"
    )
    yield


app = FastAPI(
    title="Coordination of Benefits Engine",
    description="Primary/secondary coverage determination with conflict detection",
    version="0.1.0",
    lifespan=lifespan,
)

# Rate limiting configuration
# Write endpoints: COB_WRITE_RATE_LIMIT (default 100 requests/minute)
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# CORS configuration
CORS_ORIGINS = [
    "http://localhost:3000",
    "http://127.0.0.1:3000",
    "http://localhost:5173",
    "http://127.0.0.1:5173",
]

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(ValidationError)
async def validation_error_handler(request: Request, exc: ValidationError):
    return JSONResponse(
        status_code=400,
        content={"success": False, "detail": exc.message, "errors": exc.errors},
    )


@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError):
    return JSONResponse(
        status_code=404,
        content={"success": False, "detail": exc.message},
    )


# Register API routers
app.include_router(cob_router)


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8080)
