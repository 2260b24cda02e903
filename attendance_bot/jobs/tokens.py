"""
Scheduled Flex refresh-token rotation.
"""

import logging

from .context import JobContext

logger = logging.getLogger(__name__)


async def run_refresh_flex_token(ctx: JobContext) -> None:
    """
    Force a Flex token refresh.

    Flex rotates the refresh token on every use; refreshing on a schedule
    keeps the stored token from expiring during quiet periods. The cache
    persists the rotated token.
    """
    logger.info("Rotating Flex refresh token")
    await ctx.token_cache.get_access_token(ctx.flex_credentials, force_refresh=True)

    record = ctx.token_cache.cached(ctx.flex_credentials.name)
    expires_at = record.expires_at.isoformat() if record else "unknown"
    logger.info(f"Flex refresh token rotated, access token valid until {expires_at}")
