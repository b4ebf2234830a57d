"""Pydantic schemas."""

from app.schemas.user import (
    UserPublic,
    UserResponse,
    UserUpdate,
)
from app.schemas.auth import (
    Token,
    TokenPayload,
    LoginRequest,
    RegisterRequest,
    PasswordResetRequest,
    PasswordResetConfirm,
)
from app.schemas.asset import (
    AssetCreate,
    AssetResponse,
    AssetListItem,
    PriceSampleResponse,
    RefreshResponse,
)
from app.schemas.portfolio import (
    HoldingCreate,
    HoldingUpdate,
    HoldingResponse,
    HoldingWithMetrics,
    HoldingMutationResponse,
    PortfolioSummaryResponse,
)

__all__ = [
    "UserPublic",
    "UserResponse",
    "UserUpdate",
    "Token",
    "TokenPayload",
    "LoginRequest",
    "RegisterRequest",
    "PasswordResetRequest",
    "PasswordResetConfirm",
    "AssetCreate",
    "AssetResponse",
    "AssetListItem",
    "PriceSampleResponse",
    "RefreshResponse",
    "HoldingCreate",
    "HoldingUpdate",
    "HoldingResponse",
    "HoldingWithMetrics",
    "HoldingMutationResponse",
    "PortfolioSummaryResponse",
]
