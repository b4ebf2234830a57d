"""Portfolio endpoints."""

from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, Response, status

from app.api.deps import get_current_user, get_portfolio_service
from app.models.user import User
from app.schemas.portfolio import (
    HoldingCreate,
    HoldingMutationResponse,
    HoldingUpdate,
    HoldingWithMetrics,
    MessageResponse,
    PortfolioSummaryResponse,
)
from app.services.portfolio_service import PortfolioService

router = APIRouter()


@router.get("/", response_model=List[HoldingWithMetrics])
async def list_holdings(
    current_user: User = Depends(get_current_user),
    service: PortfolioService = Depends(get_portfolio_service),
) -> List[HoldingWithMetrics]:
    """List the current user's holdings valued at market price."""
    return await service.list_holdings(current_user.id)


@router.post("/", response_model=HoldingMutationResponse, status_code=status.HTTP_201_CREATED)
async def add_holding(
    holding_in: HoldingCreate,
    response: Response,
    current_user: User = Depends(get_current_user),
    service: PortfolioService = Depends(get_portfolio_service),
) -> HoldingMutationResponse:
    """Record a purchase.

    A second purchase of the same cryptocurrency is merged into the existing
    holding at the amount-weighted average price (200 instead of 201).
    """
    holding, created = await service.add_purchase(
        current_user.id,
        holding_in.symbol,
        holding_in.amount,
        holding_in.purchase_price,
        holding_in.notes,
    )
    if created:
        message = "Holding added to portfolio"
    else:
        response.status_code = status.HTTP_200_OK
        message = "Holding updated with new purchase"
    return HoldingMutationResponse(message=message, holding=holding)


@router.get("/summary", response_model=PortfolioSummaryResponse)
async def get_summary(
    current_user: User = Depends(get_current_user),
    service: PortfolioService = Depends(get_portfolio_service),
) -> PortfolioSummaryResponse:
    """Portfolio totals for the dashboard."""
    summary = await service.summary(current_user.id)
    return PortfolioSummaryResponse(**summary.as_dict())


@router.get("/{holding_id}", response_model=HoldingWithMetrics)
async def get_holding(
    holding_id: UUID,
    current_user: User = Depends(get_current_user),
    service: PortfolioService = Depends(get_portfolio_service),
) -> HoldingWithMetrics:
    """Get a specific holding."""
    return await service.get_holding(current_user.id, holding_id)


@router.put("/{holding_id}", response_model=HoldingMutationResponse)
async def update_holding(
    holding_id: UUID,
    holding_in: HoldingUpdate,
    current_user: User = Depends(get_current_user),
    service: PortfolioService = Depends(get_portfolio_service),
) -> HoldingMutationResponse:
    """Replace a holding's amount, price and notes (no averaging)."""
    holding = await service.update_holding(
        current_user.id,
        holding_id,
        holding_in.amount,
        holding_in.purchase_price,
        holding_in.notes,
    )
    return HoldingMutationResponse(message="Holding updated", holding=holding)


@router.delete("/{holding_id}", response_model=MessageResponse)
async def delete_holding(
    holding_id: UUID,
    current_user: User = Depends(get_current_user),
    service: PortfolioService = Depends(get_portfolio_service),
) -> MessageResponse:
    """Remove a holding from the portfolio."""
    await service.delete_holding(current_user.id, holding_id)
    return MessageResponse(message="Holding removed from portfolio")
