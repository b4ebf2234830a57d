"""Pytest configuration and fixtures."""

import os
from datetime import datetime, timezone
from decimal import Decimal
from typing import AsyncGenerator, Dict, Optional

# Set test env vars before any app import
os.environ.setdefault("SECRET_KEY", "testsecretkey_for_unit_tests_only_1234567890")
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["RATE_LIMIT_STORAGE_URI"] = "memory://"
os.environ["HOLDINGS_BACKEND"] = "database"
os.environ.setdefault("BCRYPT_ROUNDS", "4")

import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.api.deps import get_price_service
from app.core.database import get_db
from app.core.security import create_access_token, hash_password
from app.main import app
from app.models import Base
from app.models.asset import Asset
from app.models.user import User
from app.services.price_service import MarketQuote
from app.services.refresh_service import seed_assets

# One shared in-memory SQLite database per test
test_engine = create_async_engine(
    "sqlite+aiosqlite:///:memory:",
    echo=False,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

# Create test session factory
TestSessionLocal = sessionmaker(
    test_engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autocommit=False,
    autoflush=False,
)


class FakePriceService:
    """Market data gateway double: serves whatever quotes the test sets."""

    def __init__(self):
        self.quotes: Dict[str, MarketQuote] = {}
        self.calls = []
        self.fresh_flags = []

    def set_price(self, symbol: str, price, market_cap="0", volume="0", change="0"):
        self.quotes[symbol] = MarketQuote(
            symbol=symbol,
            price=Decimal(str(price)),
            market_cap=Decimal(market_cap),
            volume_24h=Decimal(volume),
            change_percent_24h=Decimal(change),
            source="fake",
        )

    async def get_quotes(self, symbols, fresh=False):
        self.calls.append(list(symbols))
        self.fresh_flags.append(fresh)
        return {s: self.quotes[s] for s in symbols if s in self.quotes}

    async def get_quote(self, symbol: str) -> Optional[MarketQuote]:
        return self.quotes.get(symbol.upper())

    async def close(self):
        pass


@pytest_asyncio.fixture(scope="function")
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Create a fresh database session for each test."""
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with TestSessionLocal() as session:
        yield session

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest_asyncio.fixture
async def price_service() -> FakePriceService:
    return FakePriceService()


@pytest_asyncio.fixture(scope="function")
async def client(
    db_session: AsyncSession,
    price_service: FakePriceService,
) -> AsyncGenerator[AsyncClient, None]:
    """Create test client with database and market data overrides."""

    async def override_get_db():
        try:
            yield db_session
            await db_session.commit()
        except Exception:
            await db_session.rollback()
            raise

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_price_service] = lambda: price_service

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
    app.state.memory_holdings.clear()


@pytest_asyncio.fixture
async def assets(db_session: AsyncSession) -> Dict[str, Asset]:
    """Seeded assets, with BTC and ETH priced."""
    await seed_assets(db_session)
    await db_session.commit()

    result = await db_session.execute(select(Asset))
    by_symbol = {asset.symbol: asset for asset in result.scalars().all()}

    now = datetime.now(timezone.utc)
    by_symbol["BTC"].current_price = Decimal("70000")
    by_symbol["BTC"].market_cap = Decimal("1400000000000")
    by_symbol["BTC"].last_updated = now
    by_symbol["ETH"].current_price = Decimal("2000")
    by_symbol["ETH"].market_cap = Decimal("240000000000")
    by_symbol["ETH"].last_updated = now
    await db_session.commit()
    return by_symbol


@pytest_asyncio.fixture
async def regular_user(db_session: AsyncSession) -> User:
    """Create a regular user for testing."""
    user = User(
        username="alice",
        email="alice@test.com",
        password_hash=hash_password("userpassword"),
    )
    db_session.add(user)
    await db_session.commit()
    await db_session.refresh(user)
    return user


@pytest_asyncio.fixture
async def other_user(db_session: AsyncSession) -> User:
    user = User(
        username="bob",
        email="bob@test.com",
        password_hash=hash_password("otherpassword"),
    )
    db_session.add(user)
    await db_session.commit()
    await db_session.refresh(user)
    return user


def auth_headers(user: User) -> Dict[str, str]:
    token = create_access_token(subject=str(user.id), username=user.username, email=user.email)
    return {"Authorization": f"Bearer {token}"}


@pytest_asyncio.fixture
async def user_headers(regular_user: User) -> Dict[str, str]:
    return auth_headers(regular_user)


@pytest_asyncio.fixture
async def other_headers(other_user: User) -> Dict[str, str]:
    return auth_headers(other_user)
