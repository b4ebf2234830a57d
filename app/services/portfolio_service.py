"""Portfolio service: holdings joined with assets and valued at market price."""

import logging
from typing import Dict, Iterable, List, Optional, Tuple
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import NotFoundError
from app.models.asset import Asset
from app.models.holding import Holding
from app.schemas.portfolio import HoldingResponse, HoldingWithMetrics
from app.services.holding_store import HoldingStore
from app.services.valuation_service import PortfolioSummary, Valuation, summarize, value_holding

logger = logging.getLogger(__name__)


async def get_asset_by_symbol(db: AsyncSession, symbol: str) -> Asset:
    """Look up a tracked asset by ticker, case-insensitively."""
    result = await db.execute(
        select(Asset).where(Asset.symbol == symbol.strip().upper())
    )
    asset = result.scalar_one_or_none()
    if not asset:
        raise NotFoundError(f"Cryptocurrency {symbol.upper()} not found")
    return asset


async def _assets_by_id(db: AsyncSession, asset_ids: Iterable[UUID]) -> Dict[UUID, Asset]:
    ids = set(asset_ids)
    if not ids:
        return {}
    result = await db.execute(select(Asset).where(Asset.id.in_(ids)))
    return {asset.id: asset for asset in result.scalars().all()}


def _holding_fields(holding: Holding, asset: Asset) -> dict:
    return {
        "id": holding.id,
        "user_id": holding.user_id,
        "asset_id": holding.asset_id,
        "symbol": asset.symbol,
        "name": asset.name,
        "amount": holding.amount,
        "purchase_price": holding.purchase_price,
        "notes": holding.notes,
        "purchase_date": holding.purchase_date,
        "created_at": holding.created_at,
        "updated_at": holding.updated_at,
    }


def _valuation(holding: Holding, asset: Asset) -> Valuation:
    return value_holding(holding.amount, holding.purchase_price, asset.current_price)


def to_response(holding: Holding, asset: Asset) -> HoldingResponse:
    return HoldingResponse(**_holding_fields(holding, asset))


def to_metrics(holding: Holding, asset: Asset) -> HoldingWithMetrics:
    """Holding plus valuation; valuation fields stay null for unpriced assets."""
    valuation = _valuation(holding, asset)
    percentage = valuation.profit_loss_percentage
    return HoldingWithMetrics(
        **_holding_fields(holding, asset),
        current_price=valuation.current_price,
        invested=valuation.invested,
        current_value=valuation.current_value,
        profit_loss=valuation.profit_loss,
        profit_loss_percentage=round(float(percentage), 2) if percentage is not None else None,
    )


class PortfolioService:
    """Portfolio operations for one request, over a chosen holding store."""

    def __init__(self, db: AsyncSession, store: HoldingStore):
        self.db = db
        self.store = store

    async def _with_assets(self, holdings: List[Holding]) -> List[Tuple[Holding, Asset]]:
        assets = await _assets_by_id(self.db, (h.asset_id for h in holdings))
        pairs = []
        for holding in holdings:
            asset = assets.get(holding.asset_id)
            if asset is None:
                # Assets are RESTRICT-protected in SQL; only a stale memory store can hit this
                logger.warning(f"Holding {holding.id} references missing asset {holding.asset_id}")
                continue
            pairs.append((holding, asset))
        return pairs

    async def _owned(self, user_id: UUID, holding_id: UUID) -> Tuple[Holding, Asset]:
        holding = await self.store.get(user_id, holding_id)
        if holding is None:
            raise NotFoundError("Holding not found")
        pairs = await self._with_assets([holding])
        if not pairs:
            raise NotFoundError("Holding not found")
        return pairs[0]

    async def list_holdings(self, user_id: UUID) -> List[HoldingWithMetrics]:
        """Enriched holdings, highest current value first, unpriced last."""
        holdings = await self.store.list_for_user(user_id)
        enriched = [to_metrics(h, a) for h, a in await self._with_assets(holdings)]
        enriched.sort(
            key=lambda h: (h.current_value is None, -(h.current_value or 0))
        )
        return enriched

    async def get_holding(self, user_id: UUID, holding_id: UUID) -> HoldingWithMetrics:
        holding, asset = await self._owned(user_id, holding_id)
        return to_metrics(holding, asset)

    async def add_purchase(
        self,
        user_id: UUID,
        symbol: str,
        amount,
        purchase_price,
        notes: Optional[str] = None,
    ) -> Tuple[HoldingResponse, bool]:
        """Record a purchase, merging into an existing holding. Returns (holding, created)."""
        asset = await get_asset_by_symbol(self.db, symbol)
        holding, created = await self.store.add_purchase(
            user_id, asset.id, amount, purchase_price, notes
        )
        logger.info(
            f"{'Created' if created else 'Merged'} holding {holding.id} for {asset.symbol}"
        )
        return to_response(holding, asset), created

    async def update_holding(
        self,
        user_id: UUID,
        holding_id: UUID,
        amount,
        purchase_price,
        notes: Optional[str] = None,
    ) -> HoldingResponse:
        holding = await self.store.update(user_id, holding_id, amount, purchase_price, notes)
        if holding is None:
            raise NotFoundError("Holding not found")
        assets = await _assets_by_id(self.db, [holding.asset_id])
        return to_response(holding, assets[holding.asset_id])

    async def delete_holding(self, user_id: UUID, holding_id: UUID) -> None:
        if not await self.store.delete(user_id, holding_id):
            raise NotFoundError("Holding not found")

    async def summary(self, user_id: UUID) -> PortfolioSummary:
        holdings = await self.store.list_for_user(user_id)
        return summarize(_valuation(h, a) for h, a in await self._with_assets(holdings))
