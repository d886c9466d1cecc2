from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse
import logging
from typing import Dict, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase

from streetsupport.api.validation import parse_accommodation_query, parse_services_query
from streetsupport.core.config import is_test_environment
from streetsupport.models.dto import (
    AccommodationListResponse,
    ErrorResponse,
    ProviderDetailResponse,
    ServicesResponse,
)
from streetsupport.models.results import Failure
from streetsupport.services.accommodation_search import AccommodationSearch
from streetsupport.services.provider_service import load_provider_detail
from streetsupport.services.service_search import SearchOutcome, ServiceSearch

router = APIRouter()
logger = logging.getLogger(__name__)

SERVICE_UNAVAILABLE_MESSAGE = "Service temporarily unavailable. Please try again later."

# ----------------------------------------------------------------------
# Dependencies (set up in the application lifespan, overridden in tests)
# ----------------------------------------------------------------------
def get_service_search(request: Request) -> ServiceSearch:
    return request.app.state.service_search

def get_accommodation_search(request: Request) -> AccommodationSearch:
    return request.app.state.accommodation_search

def get_database(request: Request) -> Optional[AsyncIOMotorDatabase]:
    return request.app.state.mongodb.db

# ----------------------------------------------------------------------
# Response headers
# ----------------------------------------------------------------------
def informational_rate_limit_headers() -> Dict[str, str]:
    """Static X-RateLimit-* values for clients that display them.

    Nothing counts requests or enforces these numbers; they are constants.
    """
    return {
        "X-RateLimit-Limit": "100",
        "X-RateLimit-Remaining": "99",
        "X-RateLimit-Reset": "3600",
    }

def search_headers(outcome: SearchOutcome, etag_prefix: str = "services") -> Dict[str, str]:
    headers = {
        "ETag": f'"{etag_prefix}-{outcome.cache_key[-8:]}-{outcome.total}-{outcome.page}"',
        "X-Cache": "HIT" if outcome.cache_hit else "MISS",
        "Vary": "Accept-Encoding",
    }
    if is_test_environment():
        # Keep browser and CDN caches out of test runs
        headers["Cache-Control"] = "no-cache"
    else:
        headers["Cache-Control"] = "public, max-age=300, s-maxage=600, stale-while-revalidate=86400"
        headers.update(informational_rate_limit_headers())
    return headers

def error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=ErrorResponse(message=message).model_dump())

# ----------------------------------------------------------------------
# Find Help search
# ----------------------------------------------------------------------
@router.get(
    "/services",
    response_model=ServicesResponse,
    responses={
        400: {"model": ErrorResponse},
        503: {"model": ErrorResponse},
    },
)
async def get_services(request: Request, search: ServiceSearch = Depends(get_service_search)):
    """Services and temporary accommodation matching the filters, nearest first when geolocated."""
    # ServicesQueryError is turned into a 400 by the app's exception handler
    query = parse_services_query(request.query_params)
    outcome = await search.search(query)
    return JSONResponse(content=outcome.payload, headers=search_headers(outcome))

# ----------------------------------------------------------------------
# Temporary accommodation
# ----------------------------------------------------------------------
@router.get(
    "/temporary-accommodation",
    response_model=AccommodationListResponse,
    responses={
        400: {"model": ErrorResponse},
        503: {"model": ErrorResponse},
    },
)
async def get_temporary_accommodation(
    request: Request, search: AccommodationSearch = Depends(get_accommodation_search)
):
    """Visible temporary accommodation, filterable by city, type and distance."""
    query = parse_accommodation_query(request.query_params)
    result = await search.search(query)
    if isinstance(result, Failure):
        logger.error(f"Accommodation search failed: {result.error.message}")
        return error_response(status.HTTP_503_SERVICE_UNAVAILABLE, SERVICE_UNAVAILABLE_MESSAGE)

    outcome = result.value
    return JSONResponse(content=outcome.payload, headers=search_headers(outcome, etag_prefix="temp-acc"))

# ----------------------------------------------------------------------
# Organisation detail
# ----------------------------------------------------------------------
@router.get(
    "/service-providers/{slug}",
    response_model=ProviderDetailResponse,
    responses={
        404: {"model": ErrorResponse},
        503: {"model": ErrorResponse},
    },
)
async def get_service_provider(slug: str, db: Optional[AsyncIOMotorDatabase] = Depends(get_database)):
    """An organisation with its published services and temporary accommodation."""
    result = await load_provider_detail(db, slug)
    if isinstance(result, Failure):
        logger.error(f"Provider lookup failed for {slug}: {result.error.message}")
        return error_response(status.HTTP_503_SERVICE_UNAVAILABLE, SERVICE_UNAVAILABLE_MESSAGE)

    if result.value is None:
        return error_response(status.HTTP_404_NOT_FOUND, f"No organisation found for key: {slug}")

    body = ProviderDetailResponse(data=result.value)
    return JSONResponse(content=body.model_dump(by_alias=True, mode="json"))
