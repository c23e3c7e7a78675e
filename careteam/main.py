"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from careteam.api.v1.router import api_v1_router
from careteam.core.config import settings
from careteam.core.exceptions import (
    ProblemDetailError,
    http_exception_handler,
    problem_detail_handler,
    validation_exception_handler,
)
from careteam.core.logging import configure_logging
from careteam.core.middleware.cors import get_cors_config
from careteam.core.middleware.request_id import RequestIdMiddleware
from careteam.db.session import engine

configure_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(application: FastAPI):
    logger.info("Care Team API starting (environment=%s)", settings.ENVIRONMENT)
    yield
    await engine.dispose()
    logger.info("Shutting down, connection pool disposed")


# Interactive docs are not served in production
_docs_enabled = settings.ENVIRONMENT != "production"

app = FastAPI(
    title="Care Team API",
    description="Care team membership, invitations, permissions and the patient journey.",
    version="0.1.0",
    docs_url="/docs" if _docs_enabled else None,
    openapi_url="/openapi.json" if _docs_enabled else None,
    lifespan=lifespan,
)

# Middleware (last added = first executed)
app.add_middleware(RequestIdMiddleware)
app.add_middleware(CORSMiddleware, **get_cors_config())

# RFC 7807 problem details for denials, HTTP errors and validation failures
app.add_exception_handler(ProblemDetailError, problem_detail_handler)
app.add_exception_handler(StarletteHTTPException, http_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)

app.include_router(api_v1_router, prefix="/api/v1")
