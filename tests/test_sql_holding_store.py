"""SQL holding store tests against the SQLite session."""

from decimal import Decimal

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.holding import Holding
from app.services import holding_store
from app.services.holding_store import SqlHoldingStore


async def _holding_count(db: AsyncSession) -> int:
    return await db.scalar(select(func.count()).select_from(Holding))


@pytest.mark.asyncio
async def test_check_violation_is_not_treated_as_a_race(
    db_session: AsyncSession, regular_user, assets, monkeypatch
):
    # Let a non-positive amount reach the database
    monkeypatch.setattr(holding_store, "validate_purchase", lambda amount, price: (amount, price))
    store = SqlHoldingStore(db_session)

    with pytest.raises(IntegrityError):
        await store.add_purchase(regular_user.id, assets["BTC"].id, Decimal("-1"), Decimal("100"))

    assert await _holding_count(db_session) == 0


@pytest.mark.asyncio
async def test_lost_insert_race_merges_into_existing(
    db_session: AsyncSession, regular_user, assets, monkeypatch
):
    store = SqlHoldingStore(db_session)
    first, created = await store.add_purchase(
        regular_user.id, assets["BTC"].id, Decimal("0.5"), Decimal("40000")
    )
    assert created

    # The row lookup misses once, as if a concurrent first purchase committed in between
    real_locked = store._locked
    misses = []

    async def locked_once_missing(user_id, asset_id):
        if not misses:
            misses.append(asset_id)
            return None
        return await real_locked(user_id, asset_id)

    monkeypatch.setattr(store, "_locked", locked_once_missing)

    holding, created = await store.add_purchase(
        regular_user.id, assets["BTC"].id, Decimal("0.5"), Decimal("60000")
    )

    assert not created
    assert holding.id == first.id
    assert Decimal(str(holding.amount)) == Decimal("1")
    assert Decimal(str(holding.purchase_price)) == Decimal("50000")
    assert await _holding_count(db_session) == 1


def test_duplicate_detection_by_message():
    class Orig(Exception):
        pass

    unique = IntegrityError(
        "INSERT", {}, Orig("UNIQUE constraint failed: holdings.user_id, holdings.asset_id")
    )
    pg_unique = IntegrityError(
        "INSERT", {}, Orig('duplicate key value violates unique constraint "uq_holdings_user_asset"')
    )
    check = IntegrityError("INSERT", {}, Orig("CHECK constraint failed: ck_holdings_amount_positive"))

    assert holding_store._is_duplicate_holding(unique)
    assert holding_store._is_duplicate_holding(pg_unique)
    assert not holding_store._is_duplicate_holding(check)
