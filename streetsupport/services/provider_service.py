import asyncio
import logging
from typing import Any, Dict, List, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase

from streetsupport.core.config import settings
from streetsupport.models.dto import ProviderAddress, ProviderContact, ProviderDetail
from streetsupport.models.results import Failure, FetchError, FetchResult, Success
from streetsupport.services.accommodation_service import load_accommodation_for_provider
from streetsupport.services.service_pipeline import build_provider_services_pipeline
from streetsupport.services.service_search import ServiceRecordResult, service_to_unified
from streetsupport.utils.html_decode import decode_text

logger = logging.getLogger(__name__)

def _tags(value) -> List[str]:
    # Older providers store tags as one comma separated string
    if isinstance(value, str):
        return [tag.strip() for tag in value.split(",") if tag.strip()]
    return list(value or [])

def _contact(provider: Dict[str, Any]) -> ProviderContact:
    return ProviderContact(
        email=provider.get("Email") or None,
        phone=provider.get("Telephone") or provider.get("Phone") or None,
        website=provider.get("Website") or None,
    )

def _address(doc: Dict[str, Any]) -> ProviderAddress:
    return ProviderAddress(
        key=str(doc.get("Key") or doc.get("_id", "")),
        line1=decode_text(doc.get("Line1")),
        line2=decode_text(doc.get("Line2")),
        city=decode_text(doc.get("City")),
        postcode=doc.get("Postcode") or "",
        latitude=doc.get("Latitude"),
        longitude=doc.get("Longitude"),
    )

async def load_provider_detail(
    db: Optional[AsyncIOMotorDatabase], slug: str
) -> FetchResult[Optional[ProviderDetail]]:
    """Organisation page data: the provider with its contact details, addresses,
    published services and accommodation.

    ``Success(None)`` means no provider has that key.
    """
    if db is None:
        return Failure(FetchError("providers", "database unavailable"))

    try:
        provider = await db[settings.PROVIDERS_COLLECTION].find_one({"Key": slug})
        if provider is None:
            return Success(None)
        services, addresses, accommodation = await asyncio.gather(
            db[settings.SERVICES_COLLECTION]
            .aggregate(build_provider_services_pipeline(slug))
            .to_list(length=None),
            db[settings.PROVIDER_ADDRESSES_COLLECTION]
            .find({"ServiceProviderKey": slug})
            .to_list(length=None),
            load_accommodation_for_provider(db, slug),
        )
    except Exception as e:
        logger.error(f"Error loading provider {slug}: {e}")
        return Failure(FetchError("providers", str(e)))

    return Success(ProviderDetail(
        key=provider.get("Key") or slug,
        name=decode_text(provider.get("Name")),
        short_description=decode_text(provider.get("ShortDescription")),
        is_verified=bool(provider.get("IsVerified")),
        tags=_tags(provider.get("Tags")),
        contact=_contact(provider),
        locations=list(provider.get("Locations") or provider.get("AssociatedLocationIds") or []),
        addresses=[_address(doc) for doc in addresses],
        services=[service_to_unified(ServiceRecordResult(doc)) for doc in services],
        accommodation=accommodation,
    ))
