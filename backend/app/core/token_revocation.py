"""
Token Revocation System using Redis.

Implements token blacklisting to immediately invalidate JWT tokens
when users log out or are blocked by an admin.
"""

import logging

from backend.app.core import redis_client as redis_module
from backend.app.core.config import settings

logger = logging.getLogger(__name__)

# Redis key prefixes
TOKEN_BLACKLIST_PREFIX = "blacklist:token:"
USER_TOKENS_PREFIX = "user:tokens:"


def _user_revoked_key(user_id: int) -> str:
    return f"{USER_TOKENS_PREFIX}{user_id}:revoked"


def _token_ttl_seconds() -> int:
    # Tokens expire on their own after this window
    return settings.access_token_expire_minutes * 60


async def revoke_token(token: str, user_id: int) -> bool:
    """
    Revoke a specific JWT token (logout).

    Returns True if successfully revoked, False otherwise.
    """
    try:
        await redis_module.redis_client.setex(
            f"{TOKEN_BLACKLIST_PREFIX}{token}",
            _token_ttl_seconds(),
            str(user_id)
        )
        return True
    except Exception:
        logger.exception("Error revoking token for user %s", user_id)
        return False


async def is_token_revoked(token: str) -> bool:
    """Check if a token has been revoked."""
    try:
        exists = await redis_module.redis_client.exists(f"{TOKEN_BLACKLIST_PREFIX}{token}")
        return exists > 0
    except Exception:
        # Redis down: allow the request, the DB active check still applies
        logger.warning("Token revocation check unavailable", exc_info=True)
        return False


async def revoke_all_user_tokens(user_id: int) -> bool:
    """
    Revoke all active tokens for a user.

    Called when a user is blocked to immediately terminate all sessions.
    """
    try:
        await redis_module.redis_client.setex(_user_revoked_key(user_id), _token_ttl_seconds(), "1")
        return True
    except Exception:
        logger.exception("Error revoking all tokens for user %s", user_id)
        return False


async def are_user_tokens_revoked(user_id: int) -> bool:
    """Check if all tokens for a user have been revoked."""
    try:
        exists = await redis_module.redis_client.exists(_user_revoked_key(user_id))
        return exists > 0
    except Exception:
        logger.warning("User revocation check unavailable for user %s", user_id, exc_info=True)
        return False


async def clear_user_token_revocation(user_id: int) -> bool:
    """Clear the revocation flag for a user (called on unblock)."""
    try:
        await redis_module.redis_client.delete(_user_revoked_key(user_id))
        return True
    except Exception:
        logger.exception("Error clearing token revocation for user %s", user_id)
        return False
