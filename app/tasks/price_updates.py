"""Price update tasks."""

import asyncio
import logging

from app.core import redis_client
from app.core.database import AsyncSessionLocal, engine
from app.services.price_service import PriceService
from app.services.refresh_service import refresh_prices
from app.tasks.celery_app import celery_app

logger = logging.getLogger(__name__)

# Lock lifetime; a crashed worker frees it after this
REFRESH_LOCK_TTL = 240


async def run_refresh(force: bool = False) -> dict:
    """One refresh run guarded by the cross-process Redis lock."""
    if not await redis_client.acquire_refresh_lock(REFRESH_LOCK_TTL):
        logger.info("Another worker is refreshing prices, skipping")
        return {"updated": 0, "failed": 0, "skipped": True, "symbols": []}

    price_service = PriceService()
    try:
        async with AsyncSessionLocal() as db:
            result = await refresh_prices(db, price_service, force=force)
            await db.commit()
    finally:
        await price_service.close()
        await redis_client.release_refresh_lock()
        await redis_client.close_redis()
        # Each task run gets its own event loop; pooled connections cannot outlive it
        await engine.dispose()

    return {
        "updated": result.updated,
        "failed": result.failed,
        "skipped": result.skipped,
        "symbols": result.symbols[:20],
    }


@celery_app.task(name="app.tasks.price_updates.update_crypto_prices")
def update_crypto_prices(force: bool = False):
    """Update cryptocurrency prices for stale assets."""
    logger.info("Starting crypto price update...")
    result = asyncio.run(run_refresh(force=force))
    logger.info(f"Crypto price update complete: {result['updated']} updated, {result['failed']} failed")
    return result
