"""Market data refresh: pull quotes for stale assets and record price history."""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import List, Optional

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.models.asset import Asset
from app.models.price_sample import PriceSample
from app.services.price_service import MarketQuote, PriceService

logger = logging.getLogger(__name__)

# Top cryptocurrencies tracked out of the box
SEED_ASSETS = [
    ("BTC", "Bitcoin"),
    ("ETH", "Ethereum"),
    ("BNB", "BNB"),
    ("SOL", "Solana"),
    ("XRP", "XRP"),
    ("ADA", "Cardano"),
    ("DOGE", "Dogecoin"),
    ("AVAX", "Avalanche"),
    ("SHIB", "Shiba Inu"),
    ("DOT", "Polkadot"),
    ("LINK", "Chainlink"),
    ("LTC", "Litecoin"),
    ("UNI", "Uniswap"),
    ("MATIC", "Polygon"),
    ("ATOM", "Cosmos"),
]

# One refresh at a time per process
_refresh_lock = asyncio.Lock()


@dataclass
class RefreshResult:
    updated: int = 0
    failed: int = 0
    skipped: bool = False
    symbols: List[str] = field(default_factory=list)

    @property
    def message(self) -> str:
        if self.skipped:
            return "Price refresh already in progress"
        return f"Updated {self.updated} prices ({self.failed} failed)"


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Treat naive timestamps (SQLite) as UTC."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


def needs_update(asset: Asset, now: Optional[datetime] = None) -> bool:
    """True when the asset was never priced or its price is older than the freshness window."""
    last_updated = as_utc(asset.last_updated)
    if last_updated is None:
        return True
    now = now or datetime.now(timezone.utc)
    return now - last_updated > timedelta(seconds=settings.PRICE_FRESHNESS_SECONDS)


def refresh_in_progress() -> bool:
    return _refresh_lock.locked()


async def seed_assets(db: AsyncSession) -> int:
    """Insert any missing seed assets. Returns how many were added."""
    result = await db.execute(select(Asset.symbol))
    existing = set(result.scalars().all())

    added = 0
    for symbol, name in SEED_ASSETS:
        if symbol not in existing:
            db.add(Asset(symbol=symbol, name=name))
            added += 1

    if added:
        await db.flush()
        logger.info(f"Seeded {added} assets")
    return added


async def _stale_assets(
    db: AsyncSession,
    force: bool,
    symbols: Optional[List[str]],
) -> List[Asset]:
    query = select(Asset).order_by(Asset.symbol)
    if symbols:
        query = query.where(Asset.symbol.in_([s.upper() for s in symbols]))
    if not force:
        cutoff = datetime.now(timezone.utc) - timedelta(seconds=settings.PRICE_FRESHNESS_SECONDS)
        query = query.where(
            or_(Asset.last_updated.is_(None), Asset.last_updated < cutoff)
        )
    result = await db.execute(query)
    return list(result.scalars().all())


def _apply_quote(db: AsyncSession, asset: Asset, quote: MarketQuote, now: datetime) -> None:
    asset.current_price = quote.price
    asset.market_cap = quote.market_cap
    asset.volume_24h = quote.volume_24h
    asset.price_change_24h = quote.change_percent_24h
    asset.last_updated = now
    db.add(
        PriceSample(
            asset_id=asset.id,
            price=quote.price,
            market_cap=quote.market_cap,
            volume_24h=quote.volume_24h,
            recorded_at=now,
        )
    )


async def _refresh(
    db: AsyncSession,
    gateway: PriceService,
    force: bool,
    symbols: Optional[List[str]],
) -> RefreshResult:
    result = RefreshResult()
    assets = await _stale_assets(db, force, symbols)
    if not assets:
        logger.info("All asset prices are fresh, nothing to refresh")
        return result

    logger.info(f"Refreshing prices for {len(assets)} assets")
    batch_size = settings.PRICE_REFRESH_BATCH_SIZE

    for i in range(0, len(assets), batch_size):
        batch = assets[i:i + batch_size]
        try:
            quotes = await gateway.get_quotes([a.symbol for a in batch], fresh=True)
        except Exception as e:
            logger.error(f"Error fetching quotes for batch {i // batch_size + 1}: {e}")
            result.failed += len(batch)
            continue

        now = datetime.now(timezone.utc)
        for asset in batch:
            quote = quotes.get(asset.symbol)
            if quote is None:
                logger.warning(f"No quote available for {asset.symbol}, keeping last known price")
                result.failed += 1
                continue
            try:
                _apply_quote(db, asset, quote, now)
            except (ArithmeticError, ValueError, TypeError) as e:
                logger.warning(f"Could not apply quote for {asset.symbol}: {e}")
                result.failed += 1
                continue
            result.updated += 1
            result.symbols.append(asset.symbol)

    await db.flush()
    logger.info(f"Price refresh complete: {result.updated} updated, {result.failed} failed")
    return result


async def refresh_prices(
    db: AsyncSession,
    gateway: PriceService,
    force: bool = False,
    symbols: Optional[List[str]] = None,
) -> RefreshResult:
    """Refresh market data for stale assets.

    Assets priced within ``PRICE_FRESHNESS_SECONDS`` are left alone unless
    ``force`` is set. A failing asset is logged and counted without aborting
    the rest of the run. If another refresh is already running in this
    process the call returns at once with ``skipped=True``.
    """
    if _refresh_lock.locked():
        logger.info("Price refresh already running, skipping")
        return RefreshResult(skipped=True)

    async with _refresh_lock:
        return await _refresh(db, gateway, force, symbols)
