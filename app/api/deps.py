"""Request dependencies: current user, holding store, market data gateway."""

from typing import Optional
from uuid import UUID

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.database import get_db
from app.core.security import read_access_token
from app.models.user import User
from app.services.holding_store import HoldingStore, MemoryHoldingStore, SqlHoldingStore
from app.services.portfolio_service import PortfolioService
from app.services.price_service import PriceService

bearer_scheme = HTTPBearer(auto_error=False)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db),
) -> User:
    """Resolve the bearer token to an active user, or fail with 401."""
    if credentials is None:
        raise _unauthorized("Access token required")

    payload = read_access_token(credentials.credentials)
    if payload is None:
        raise _unauthorized("Invalid or expired token")

    try:
        user_id = UUID(payload.sub)
    except ValueError:
        raise _unauthorized("Invalid or expired token")

    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()
    if user is None or not user.is_active:
        raise _unauthorized("User not found or inactive")

    return user


def get_holding_store(
    request: Request,
    db: AsyncSession = Depends(get_db),
) -> HoldingStore:
    """Holding store selected by ``HOLDINGS_BACKEND``."""
    if settings.HOLDINGS_BACKEND == "memory":
        store = getattr(request.app.state, "memory_holdings", None)
        if store is None:
            store = MemoryHoldingStore()
            request.app.state.memory_holdings = store
        return store
    return SqlHoldingStore(db)


def get_portfolio_service(
    db: AsyncSession = Depends(get_db),
    store: HoldingStore = Depends(get_holding_store),
) -> PortfolioService:
    return PortfolioService(db, store)


def get_price_service(request: Request) -> PriceService:
    """Shared market data gateway, created at startup."""
    service = getattr(request.app.state, "price_service", None)
    if service is None:
        service = PriceService()
        request.app.state.price_service = service
    return service
