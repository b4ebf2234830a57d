"""Portfolio schemas."""

from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field


class HoldingCreate(BaseModel):
    """Schema for recording a purchase."""

    symbol: str = Field(..., min_length=1, max_length=20)
    amount: Decimal = Field(..., gt=0, max_digits=24, decimal_places=8)
    purchase_price: Decimal = Field(..., gt=0, max_digits=24, decimal_places=8)
    notes: Optional[str] = None


class HoldingUpdate(BaseModel):
    """Schema for replacing a holding's lot values."""

    amount: Decimal = Field(..., gt=0, max_digits=24, decimal_places=8)
    purchase_price: Decimal = Field(..., gt=0, max_digits=24, decimal_places=8)
    notes: Optional[str] = None


class HoldingResponse(BaseModel):
    """Schema for holding response."""

    id: UUID
    user_id: UUID
    asset_id: UUID
    symbol: str
    name: str
    amount: Decimal
    purchase_price: Decimal
    notes: Optional[str] = None
    purchase_date: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class HoldingWithMetrics(HoldingResponse):
    """Holding enriched with live market valuation.

    Valuation fields are null when the asset has no known price.
    """

    current_price: Optional[Decimal] = None
    invested: Decimal
    current_value: Optional[Decimal] = None
    profit_loss: Optional[Decimal] = None
    profit_loss_percentage: Optional[float] = None


class HoldingMutationResponse(BaseModel):
    """Response for create/merge/update."""

    message: str
    holding: HoldingResponse


class MessageResponse(BaseModel):
    message: str


class PortfolioSummaryResponse(BaseModel):
    """Dashboard-level roll-up for one user."""

    total_holdings: int = 0
    total_invested: float = 0
    total_current_value: float = 0
    total_profit_loss: float = 0
    total_profit_loss_percentage: float = 0
    unpriced_holdings: int = 0
