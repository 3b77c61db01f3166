"""
FastAPI application entrypoint for the Ride Dispatch Backend.

Provides:
- Health check
- Ride lifecycle (/rides/*): create, discover, claim, driver location,
  PIN verification, status updates, lookups

Configuration (see src/api/config.py):
- DATABASE_URL: Postgres connection string
- JWT_SECRET_KEY: secret used to verify access tokens
- JWT_ALGORITHM: optional (default HS256)
- LOG_LEVEL: optional (default INFO)
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from src.api.config import LOG_LEVEL
from src.api.db import init_db
from src.api.routers import rides as rides_router

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

openapi_tags = [
    {"name": "health", "description": "Health and readiness endpoints."},
    {"name": "rides", "description": "Ride creation, discovery, claiming, PIN check, and lifecycle endpoints."},
]


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    logger.info("Ride dispatch backend started")
    yield


app = FastAPI(
    title="Ride Dispatch Backend",
    description="Backend API coordinating ride requests between riders and drivers.",
    version="0.1.0",
    openapi_tags=openapi_tags,
    lifespan=lifespan,
)

# Basic permissive CORS for early development; tighten for production later.
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(rides_router.router)


@app.exception_handler(SQLAlchemyError)
async def store_error_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    """Surface any store failure as a generic 500; nothing is retried."""
    logger.error("%s %s failed on the ride store", request.method, request.url.path, exc_info=exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Server error"},
    )


@app.get(
    "/",
    tags=["health"],
    summary="Health check",
    description="Simple health check endpoint.",
    operation_id="health_check",
)
def health_check():
    """Return a simple health response."""
    return {"message": "Healthy"}
