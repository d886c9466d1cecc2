import asyncio

from streetsupport.core.config import settings
from streetsupport.services.query_cache import RedisQueryCache

async def clear_keys():
    # Only the services:* keys; anything else sharing the database is left alone
    cache = RedisQueryCache(settings.REDIS_URL)
    await cache.clear()
    await cache.close()
    print("Cleared cached search results.")

if __name__ == "__main__":
    asyncio.run(clear_keys())
