#!/usr/bin/env python3

import logging
import os
import time
from contextlib import asynccontextmanager

from fastapi import Body, Depends, FastAPI, Header, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from .clients.database_client import DatabaseClient
from .core.auth import get_current_user
from .core.config import ingest_config
from .core.dependencies import cleanup_connections, get_database_client
from .core.logging import setup_logging
from .models.models import TraitSubmissionResponse
from .models.tables import User

logger = logging.getLogger(__name__)

# Application start time for uptime calculation
_app_start_time = time.time()

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager"""
    # Startup
    setup_logging()
    logger.info("Starting trait data API service", extra=ingest_config.describe())

    get_database_client().create_all()

    yield

    # Shutdown
    logger.info("Shutting down trait data API service")
    cleanup_connections()


app = FastAPI(
    title="Trait Data API",
    description="API for bulk upload of trait measurements",
    version=ingest_config.APP_VERSION,
    lifespan=lifespan
)

# CORS middleware
allowed_origins = os.getenv("CORS_ORIGINS", "http://localhost:3000").split(",")
app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Add version header middleware
@app.middleware("http")
async def add_version_header(request, call_next):
    """Add version information to response headers"""
    response = await call_next(request)
    response.headers["X-API-Version"] = ingest_config.APP_VERSION
    return response

@app.get("/healthz")
async def health_check():
    """Liveness probe - checks if application is alive and can serve requests"""
    current_time = time.time()
    return {
        "status": "healthy",
        "timestamp": current_time,
        "uptime": current_time - _app_start_time,
        "api_version": ingest_config.APP_VERSION,
    }


@app.get("/readyz")
async def readiness_check(db: DatabaseClient = Depends(get_database_client)):
    """Readiness probe - confirms the trait database answers queries"""
    try:
        with db.session() as session:
            session.execute(text("SELECT 1"))
        return {"status": "ready"}

    except SQLAlchemyError as e:
        logger.warning(f"Readiness check failed: {e}")
        raise HTTPException(status_code=503, detail={"status": "not_ready"}) from e


# Trait Data Routes

@app.post(
    "/api/traits",
    status_code=201,
    response_model=TraitSubmissionResponse,
    responses={400: {"model": TraitSubmissionResponse}, 422: {"model": TraitSubmissionResponse},
               500: {"model": TraitSubmissionResponse}},
)
def submit_traits(
    content: bytes = Body(b"", media_type="application/xml"),
    x_filename: str = Header("submission.xml"),
    user: User = Depends(get_current_user),
    db: DatabaseClient = Depends(get_database_client)
):
    """Upload a trait data document.

    The whole document is inserted in one transaction. If anything in it
    fails, nothing is inserted and the response carries the document back
    with error annotations on the offending elements.

    Args:
        content: Raw XML document
        x_filename: Optional name reported in validation errors
    """
    from .handlers.traits import handle_trait_submission

    return handle_trait_submission(content, user, db, filename=x_filename)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=ingest_config.API_HOST, port=ingest_config.API_PORT)
