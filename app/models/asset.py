"""Asset model (a tracked cryptocurrency)."""

import uuid

from sqlalchemy import Column, DateTime, Numeric, String, Uuid
from sqlalchemy.sql import func

from app.models import Base


class Asset(Base):
    __tablename__ = "assets"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    symbol = Column(String(20), unique=True, nullable=False, index=True)
    name = Column(String(200), nullable=False)
    current_price = Column(Numeric(precision=24, scale=8), nullable=True)
    market_cap = Column(Numeric(precision=24, scale=2), nullable=True)
    volume_24h = Column(Numeric(precision=24, scale=2), nullable=True)
    price_change_24h = Column(Numeric(precision=12, scale=4), nullable=True)
    # Null until the first successful refresh
    last_updated = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
