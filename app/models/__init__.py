"""SQLAlchemy models."""

from sqlalchemy.orm import declarative_base

Base = declarative_base()

# Import all models so Base.metadata.create_all() picks them up
from app.models.user import User  # noqa: E402, F401
from app.models.asset import Asset  # noqa: E402, F401
from app.models.holding import Holding  # noqa: E402, F401
from app.models.price_sample import PriceSample  # noqa: E402, F401
