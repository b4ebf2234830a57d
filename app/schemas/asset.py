"""Asset (tracked cryptocurrency) schemas."""

from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field


class AssetCreate(BaseModel):
    """Schema for tracking a new cryptocurrency."""

    symbol: str = Field(..., min_length=1, max_length=20)
    name: str = Field(..., min_length=1, max_length=200)


class AssetResponse(BaseModel):
    """Schema for asset response."""

    id: UUID
    symbol: str
    name: str
    current_price: Optional[Decimal] = None
    market_cap: Optional[Decimal] = None
    volume_24h: Optional[Decimal] = None
    price_change_24h: Optional[Decimal] = None
    last_updated: Optional[datetime] = None

    class Config:
        from_attributes = True


class AssetListItem(AssetResponse):
    """Asset with staleness flag for the market overview."""

    needs_update: bool = True


class PriceSampleResponse(BaseModel):
    """One price history point."""

    price: Decimal
    market_cap: Optional[Decimal] = None
    volume_24h: Optional[Decimal] = None
    recorded_at: datetime

    class Config:
        from_attributes = True


class RefreshResponse(BaseModel):
    """Outcome of a market data refresh run."""

    message: str
    updated: int
    failed: int
    skipped: bool
    symbols: list[str] = []
