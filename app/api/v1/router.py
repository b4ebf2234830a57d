"""API router."""

from fastapi import APIRouter

from app.api.v1.endpoints import (
    auth,
    crypto,
    portfolio,
)

api_router = APIRouter()

api_router.include_router(auth.router, prefix="/auth", tags=["Authentication"])
api_router.include_router(crypto.router, prefix="/crypto", tags=["Market Data"])
api_router.include_router(portfolio.router, prefix="/portfolio", tags=["Portfolio"])
