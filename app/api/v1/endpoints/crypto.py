"""Market data endpoints: tracked cryptocurrencies, price history, refresh."""

import logging
from datetime import datetime, timedelta, timezone
from typing import List

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_current_user, get_price_service
from app.core.database import get_db
from app.core.exceptions import ConflictError, UpstreamUnavailable
from app.core.rate_limit import limiter, RATE_LIMITS
from app.models.asset import Asset
from app.models.price_sample import PriceSample
from app.models.user import User
from app.schemas.asset import (
    AssetCreate,
    AssetListItem,
    AssetResponse,
    PriceSampleResponse,
    RefreshResponse,
)
from app.services.portfolio_service import get_asset_by_symbol
from app.services.price_service import PriceService
from app.services.refresh_service import needs_update, refresh_prices

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/", response_model=List[AssetListItem])
async def list_cryptocurrencies(
    db: AsyncSession = Depends(get_db),
) -> List[AssetListItem]:
    """All tracked cryptocurrencies, largest market cap first."""
    result = await db.execute(
        select(Asset).order_by(Asset.market_cap.desc().nulls_last(), Asset.symbol)
    )
    now = datetime.now(timezone.utc)
    return [
        AssetListItem(
            **AssetResponse.model_validate(asset).model_dump(),
            needs_update=needs_update(asset, now),
        )
        for asset in result.scalars().all()
    ]


@router.post("/refresh", response_model=RefreshResponse)
@limiter.limit(RATE_LIMITS["price_refresh"])
async def refresh_market_data(
    request: Request,
    force: bool = Query(False, description="Refetch assets that are still fresh"),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    price_service: PriceService = Depends(get_price_service),
) -> RefreshResponse:
    """Refresh prices now instead of waiting for the scheduler."""
    result = await refresh_prices(db, price_service, force=force)

    if not result.skipped and result.updated == 0 and result.failed > 0:
        raise UpstreamUnavailable("Could not fetch prices from any market data provider")

    return RefreshResponse(
        message=result.message,
        updated=result.updated,
        failed=result.failed,
        skipped=result.skipped,
        symbols=result.symbols,
    )


@router.post("/", response_model=AssetResponse, status_code=status.HTTP_201_CREATED)
async def create_cryptocurrency(
    asset_in: AssetCreate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> AssetResponse:
    """Start tracking a new cryptocurrency. Its price arrives with the next refresh."""
    symbol = asset_in.symbol.strip().upper()

    result = await db.execute(select(Asset.id).where(Asset.symbol == symbol))
    if result.first():
        raise ConflictError("Cryptocurrency already exists")

    asset = Asset(symbol=symbol, name=asset_in.name.strip())
    db.add(asset)
    try:
        await db.flush()
    except IntegrityError:
        raise ConflictError("Cryptocurrency already exists")
    await db.refresh(asset)

    logger.info(f"Now tracking {symbol}")
    return asset


@router.get("/{symbol}", response_model=AssetResponse)
async def get_cryptocurrency(
    symbol: str,
    db: AsyncSession = Depends(get_db),
) -> AssetResponse:
    """One cryptocurrency by ticker (case-insensitive)."""
    return await get_asset_by_symbol(db, symbol)


@router.get("/{symbol}/history", response_model=List[PriceSampleResponse])
async def get_price_history(
    symbol: str,
    days: int = Query(7, ge=1, le=365),
    db: AsyncSession = Depends(get_db),
) -> List[PriceSampleResponse]:
    """Price samples recorded in the last ``days`` days, oldest first."""
    asset = await get_asset_by_symbol(db, symbol)
    since = datetime.now(timezone.utc) - timedelta(days=days)

    result = await db.execute(
        select(PriceSample)
        .where(PriceSample.asset_id == asset.id, PriceSample.recorded_at >= since)
        .order_by(PriceSample.recorded_at.asc())
    )
    return result.scalars().all()
