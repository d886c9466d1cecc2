from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field
from typing import Optional
import os

class Settings(BaseSettings):
    PROJECT_NAME: str = "Street Support Network API"
    VERSION: str = "0.1.0"
    BRIEF_DESCRIPTION: str = "Find Help data API: services and temporary accommodation near you."

    ENV: str = Field("development", description="Application environment (e.g., production, development, test)")
    PLAYWRIGHT_TEST: bool = Field(False, description="Set by the browser test runner")
    LOG_LEVEL: str = "INFO"

    # --- MongoDB ---
    MONGODB_URI: Optional[str] = Field(None, description="MongoDB connection string. Unset means fallback data only.")
    MONGODB_DATABASE: str = "streetsupport"
    SERVICES_COLLECTION: str = "ProvidedServices"
    PROVIDERS_COLLECTION: str = "ServiceProviders"
    ACCOMMODATION_COLLECTION: str = "TemporaryAccommodation"
    PROVIDER_ADDRESSES_COLLECTION: str = "ServiceProviderAddresses"

    # --- Query cache ---
    ENABLE_REDIS: bool = Field(False, description="Feature flag for the Redis-backed query cache")
    REDIS_URL: Optional[str] = Field(None, description="Redis URL for the shared query cache")
    QUERY_CACHE_TTL_SECONDS: int = 15 * 60
    TEST_QUERY_CACHE_TTL_SECONDS: int = 60
    QUERY_CACHE_MAX_SIZE: int = 100

    # --- Search defaults ---
    DEFAULT_RADIUS_KM: float = 5.0
    DEFAULT_PAGE_LIMIT: int = 20
    ACCOMMODATION_PAGE_LIMIT: int = 50
    ACCOMMODATION_CATEGORY: str = "accom"

    FALLBACK_DATA_PATH: str = Field(
        os.path.join(os.path.dirname(__file__), "..", "data", "service-providers.json"),
        description="Static dataset served when the database is unreachable",
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore"
    )

settings = Settings()

def is_test_environment() -> bool:
    """True under pytest/CI or the browser test runner; disables aggressive caching."""
    return settings.ENV.lower() == "test" or settings.PLAYWRIGHT_TEST

def query_cache_ttl() -> int:
    if is_test_environment():
        return settings.TEST_QUERY_CACHE_TTL_SECONDS
    return settings.QUERY_CACHE_TTL_SECONDS
