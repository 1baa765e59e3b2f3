"""
Redis client initialization and connection management.

Redis backs token revocation and fans change events out to other
API workers (`changes:<table>` channels).
"""

import redis.asyncio as redis
from backend.app.core.config import settings


# Create async Redis client
redis_client = redis.from_url(
    settings.redis_url,
    decode_responses=settings.redis_decode_responses,
)


async def ping_redis() -> bool:
    """Return True if Redis answers a PING."""
    try:
        return await redis_client.ping()
    except Exception:
        return False
