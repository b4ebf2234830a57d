"""Tests for the in-memory holding store."""

import asyncio
import uuid
from decimal import Decimal

import pytest

from app.core.exceptions import ValidationError
from app.services.holding_store import MemoryHoldingStore

D = Decimal


@pytest.fixture
def store():
    return MemoryHoldingStore()


@pytest.fixture
def user_id():
    return uuid.uuid4()


@pytest.fixture
def asset_id():
    return uuid.uuid4()


@pytest.mark.asyncio
async def test_first_purchase_creates(store, user_id, asset_id):
    holding, created = await store.add_purchase(user_id, asset_id, D("0.5"), D("40000"), "dca")
    assert created
    assert holding.amount == D("0.5")
    assert holding.purchase_price == D("40000")
    assert holding.notes == "dca"
    assert holding.created_at is not None
    assert await store.list_for_user(user_id) == [holding]


@pytest.mark.asyncio
async def test_second_purchase_merges(store, user_id, asset_id):
    first, _ = await store.add_purchase(user_id, asset_id, D("0.5"), D("40000"), "dca")
    second, created = await store.add_purchase(user_id, asset_id, D("0.5"), D("60000"))

    assert not created
    assert second.id == first.id
    assert second.amount == D("1.0")
    assert second.purchase_price == D("50000")
    assert second.notes == "dca"
    assert len(await store.list_for_user(user_id)) == 1


@pytest.mark.asyncio
async def test_merge_replaces_notes_when_given(store, user_id, asset_id):
    await store.add_purchase(user_id, asset_id, D("1"), D("10"), "old")
    holding, _ = await store.add_purchase(user_id, asset_id, D("1"), D("20"), "new")
    assert holding.notes == "new"


@pytest.mark.asyncio
async def test_concurrent_purchases_merge_into_one(store, user_id, asset_id):
    await asyncio.gather(*[
        store.add_purchase(user_id, asset_id, D("1"), D(price))
        for price in ("10", "20", "30", "40")
    ])
    holdings = await store.list_for_user(user_id)
    assert len(holdings) == 1
    assert holdings[0].amount == D("4")
    assert holdings[0].purchase_price == pytest.approx(D("25"))


@pytest.mark.asyncio
async def test_rejects_invalid_purchase(store, user_id, asset_id):
    with pytest.raises(ValidationError):
        await store.add_purchase(user_id, asset_id, D("0"), D("10"))
    assert await store.list_for_user(user_id) == []


@pytest.mark.asyncio
async def test_scoped_to_owner(store, user_id, asset_id):
    holding, _ = await store.add_purchase(user_id, asset_id, D("1"), D("10"))
    stranger = uuid.uuid4()

    assert await store.get(stranger, holding.id) is None
    assert await store.update(stranger, holding.id, D("2"), D("2")) is None
    assert await store.delete(stranger, holding.id) is False
    assert await store.list_for_user(stranger) == []
    assert await store.get(user_id, holding.id) is holding


@pytest.mark.asyncio
async def test_update_replaces_values(store, user_id, asset_id):
    holding, _ = await store.add_purchase(user_id, asset_id, D("1"), D("10"), "note")
    updated = await store.update(user_id, holding.id, D("3"), D("7"))

    assert updated.amount == D("3")
    assert updated.purchase_price == D("7")
    assert updated.notes is None


@pytest.mark.asyncio
async def test_delete(store, user_id, asset_id):
    holding, _ = await store.add_purchase(user_id, asset_id, D("1"), D("10"))
    assert await store.delete(user_id, holding.id) is True
    assert await store.get(user_id, holding.id) is None

    # A new purchase after delete starts a fresh holding
    again, created = await store.add_purchase(user_id, asset_id, D("2"), D("5"))
    assert created
    assert again.id != holding.id
