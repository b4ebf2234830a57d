"""Holding model: one user's position in one asset."""

import uuid
from decimal import Decimal

from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, Numeric, Text, UniqueConstraint, Uuid
from sqlalchemy.sql import func

from app.models import Base


class Holding(Base):
    __tablename__ = "holdings"
    __table_args__ = (
        UniqueConstraint("user_id", "asset_id", name="uq_holdings_user_asset"),
        CheckConstraint("amount > 0", name="ck_holdings_amount_positive"),
        CheckConstraint("purchase_price > 0", name="ck_holdings_purchase_price_positive"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    asset_id = Column(Uuid, ForeignKey("assets.id", ondelete="RESTRICT"), nullable=False, index=True)
    amount = Column(Numeric(precision=24, scale=8), default=Decimal("0"), nullable=False)
    # Amount-weighted average cost across all purchases
    purchase_price = Column(Numeric(precision=24, scale=8), default=Decimal("0"), nullable=False)
    notes = Column(Text, nullable=True)
    purchase_date = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)
