"""Price history model."""

import uuid

from sqlalchemy import Column, DateTime, ForeignKey, Index, Numeric, Uuid
from sqlalchemy.sql import func

from app.models import Base


class PriceSample(Base):
    """Immutable point-in-time snapshot of an asset's market data."""

    __tablename__ = "price_history"
    __table_args__ = (
        Index("ix_price_history_asset_recorded", "asset_id", "recorded_at"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    asset_id = Column(Uuid, ForeignKey("assets.id", ondelete="CASCADE"), nullable=False, index=True)
    price = Column(Numeric(precision=24, scale=8), nullable=False)
    market_cap = Column(Numeric(precision=24, scale=2), nullable=True)
    volume_24h = Column(Numeric(precision=24, scale=2), nullable=True)
    recorded_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)
