from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
import logging
import uuid

from streetsupport.core.config import settings
from streetsupport.core.middleware import SecurityHeadersMiddleware
from streetsupport.logging import configure_logging
from streetsupport.middleware.logging import LoggingMiddleware
from streetsupport.api.routes import router as api_router, SERVICE_UNAVAILABLE_MESSAGE
from streetsupport.api.validation import ServicesQueryError
from streetsupport.models.dto import ErrorResponse
from streetsupport.services.accommodation_search import AccommodationSearch
from streetsupport.services.fallback_service import FallbackDataset
from streetsupport.services.mongodb import mongodb
from streetsupport.services.query_cache import RedisQueryCache, build_query_cache
from streetsupport.services.service_search import ServiceSearch

logger = logging.getLogger(__name__)

# --- Application Lifecycle Management ---
@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging()
    logger.info(f"Application startup: v{settings.VERSION} ({settings.ENV})")

    await mongodb.connect()
    query_cache = build_query_cache()
    fallback = FallbackDataset()

    app.state.mongodb = mongodb
    app.state.query_cache = query_cache
    app.state.fallback = fallback
    app.state.service_search = ServiceSearch(mongodb.db, query_cache, fallback)
    app.state.accommodation_search = AccommodationSearch(mongodb.db, query_cache)

    yield

    logger.info("Application shutdown: Cleaning up resources.")
    if isinstance(query_cache, RedisQueryCache):
        await query_cache.close()
    await mongodb.disconnect()

# --- FastAPI Application Initialization ---
app = FastAPI(
    title=settings.PROJECT_NAME,
    version=settings.VERSION,
    description=settings.BRIEF_DESCRIPTION,
    lifespan=lifespan,
)

# --- Middleware ---
# Added last runs first: logging wraps everything
app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(LoggingMiddleware)

# --- API Routes ---
app.include_router(api_router, prefix="/api")

# --- Health Check Endpoint ---
@app.get("/health", status_code=status.HTTP_200_OK)
async def health_check(request: Request):
    db_manager = getattr(request.app.state, "mongodb", None)
    query_cache = getattr(request.app.state, "query_cache", None)
    fallback = getattr(request.app.state, "fallback", None)
    database_up = db_manager is not None and await db_manager.ping()
    return {
        "status": "ok",
        "database": "connected" if database_up else "unavailable",
        "cache": query_cache.backend if query_cache is not None else "none",
        "fallback_services": fallback.service_count if fallback is not None else 0,
    }

# --- Exception Handlers ---
@app.exception_handler(ServicesQueryError)
async def services_query_error_handler(request: Request, exc: ServicesQueryError):
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=ErrorResponse(message=exc.message).model_dump(),
    )

@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    error_id = str(uuid.uuid4())
    logger.error(f"Unhandled exception (ID: {error_id}): {exc}", exc_info=True)
    # Internal detail stays in the logs
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content=ErrorResponse(message=SERVICE_UNAVAILABLE_MESSAGE).model_dump(),
        headers={"X-Content-Type-Options": "nosniff", "X-Error-ID": error_id},
    )
