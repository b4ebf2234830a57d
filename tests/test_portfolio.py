"""Portfolio endpoint tests."""

import uuid
from decimal import Decimal

import pytest
from httpx import AsyncClient
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.models.holding import Holding


def _dec(value) -> Decimal:
    return Decimal(str(value))


async def _buy(client, headers, symbol, amount, price, notes=None):
    body = {"symbol": symbol, "amount": amount, "purchase_price": price}
    if notes is not None:
        body["notes"] = notes
    return await client.post("/api/portfolio/", json=body, headers=headers)


@pytest.mark.asyncio
async def test_portfolio_requires_auth(client: AsyncClient):
    response = await client.get("/api/portfolio/")
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_empty_portfolio(client: AsyncClient, user_headers, assets):
    response = await client.get("/api/portfolio/", headers=user_headers)
    assert response.status_code == 200
    assert response.json() == []


@pytest.mark.asyncio
async def test_first_purchase_creates_holding(client: AsyncClient, user_headers, assets):
    """0.5 BTC @ 40,000 into an empty portfolio."""
    response = await _buy(client, user_headers, "BTC", "0.5", "40000", notes="first lot")
    assert response.status_code == 201
    data = response.json()
    assert data["message"] == "Holding added to portfolio"
    assert data["holding"]["symbol"] == "BTC"
    assert data["holding"]["name"] == "Bitcoin"

    listing = (await client.get("/api/portfolio/", headers=user_headers)).json()
    assert len(listing) == 1
    assert _dec(listing[0]["amount"]) == Decimal("0.5")
    assert _dec(listing[0]["purchase_price"]) == Decimal("40000")
    assert listing[0]["notes"] == "first lot"


@pytest.mark.asyncio
async def test_second_purchase_merges_by_weighted_average(
    client: AsyncClient, user_headers, assets, db_session: AsyncSession
):
    """0.5 BTC @ 40,000 then 0.5 BTC @ 60,000 gives 1 BTC @ 50,000."""
    await _buy(client, user_headers, "BTC", "0.5", "40000", notes="first lot")
    response = await _buy(client, user_headers, "btc", "0.5", "60000")
    assert response.status_code == 200
    assert response.json()["message"] == "Holding updated with new purchase"

    listing = (await client.get("/api/portfolio/", headers=user_headers)).json()
    assert len(listing) == 1
    holding = listing[0]
    assert _dec(holding["amount"]) == Decimal("1")
    assert _dec(holding["purchase_price"]) == Decimal("50000")
    # Notes survive a merge without new notes
    assert holding["notes"] == "first lot"

    count = await db_session.scalar(select(func.count()).select_from(Holding))
    assert count == 1


@pytest.mark.asyncio
async def test_valuation_at_market_price(client: AsyncClient, user_headers, assets):
    """1 BTC @ 50,000 average, market at 70,000."""
    await _buy(client, user_headers, "BTC", "0.5", "40000")
    await _buy(client, user_headers, "BTC", "0.5", "60000")

    holding = (await client.get("/api/portfolio/", headers=user_headers)).json()[0]
    assert _dec(holding["current_price"]) == Decimal("70000")
    assert _dec(holding["invested"]) == Decimal("50000")
    assert _dec(holding["current_value"]) == Decimal("70000")
    assert _dec(holding["profit_loss"]) == Decimal("20000")
    assert holding["profit_loss_percentage"] == pytest.approx(40.0)


@pytest.mark.asyncio
async def test_summary_over_two_holdings(client: AsyncClient, user_headers, assets):
    """BTC 1 @ 50,000 (now 70,000) and ETH 1 @ 2,000 (now 2,000)."""
    await _buy(client, user_headers, "BTC", "0.5", "40000")
    await _buy(client, user_headers, "BTC", "0.5", "60000")
    await _buy(client, user_headers, "ETH", "1", "2000")

    response = await client.get("/api/portfolio/summary", headers=user_headers)
    assert response.status_code == 200
    summary = response.json()
    assert summary["total_holdings"] == 2
    assert summary["total_invested"] == pytest.approx(52000)
    assert summary["total_current_value"] == pytest.approx(72000)
    assert summary["total_profit_loss"] == pytest.approx(20000)
    assert summary["total_profit_loss_percentage"] == pytest.approx(20000 / 52000 * 100)
    assert summary["unpriced_holdings"] == 0


@pytest.mark.asyncio
async def test_empty_summary(client: AsyncClient, user_headers):
    summary = (await client.get("/api/portfolio/summary", headers=user_headers)).json()
    assert summary == {
        "total_holdings": 0,
        "total_invested": 0,
        "total_current_value": 0,
        "total_profit_loss": 0,
        "total_profit_loss_percentage": 0,
        "unpriced_holdings": 0,
    }


@pytest.mark.asyncio
async def test_list_sorted_by_value_unpriced_last(client: AsyncClient, user_headers, assets):
    await _buy(client, user_headers, "SOL", "10", "100")  # never priced
    await _buy(client, user_headers, "ETH", "1", "1500")
    await _buy(client, user_headers, "BTC", "0.1", "30000")

    listing = (await client.get("/api/portfolio/", headers=user_headers)).json()
    assert [h["symbol"] for h in listing] == ["BTC", "ETH", "SOL"]


@pytest.mark.asyncio
async def test_unpriced_holding_renders_null_valuation(client: AsyncClient, user_headers, assets):
    await _buy(client, user_headers, "SOL", "10", "100")

    holding = (await client.get("/api/portfolio/", headers=user_headers)).json()[0]
    assert holding["current_price"] is None
    assert holding["current_value"] is None
    assert holding["profit_loss"] is None
    assert holding["profit_loss_percentage"] is None
    assert _dec(holding["invested"]) == Decimal("1000")

    summary = (await client.get("/api/portfolio/summary", headers=user_headers)).json()
    assert summary["unpriced_holdings"] == 1
    assert summary["total_invested"] == pytest.approx(1000)
    assert summary["total_current_value"] == pytest.approx(1000)
    assert summary["total_profit_loss"] == 0


@pytest.mark.asyncio
async def test_round_trip_matches_merge_formula(client: AsyncClient, user_headers, assets):
    lots = [("0.3", "41000"), ("1.2", "38500"), ("0.05", "69000")]
    for amount, price in lots:
        await _buy(client, user_headers, "BTC", amount, price)

    total = sum(Decimal(a) for a, _ in lots)
    expected_price = sum(Decimal(a) * Decimal(p) for a, p in lots) / total

    holding = (await client.get("/api/portfolio/", headers=user_headers)).json()[0]
    assert _dec(holding["amount"]) == total
    assert _dec(holding["purchase_price"]) == pytest.approx(expected_price, abs=Decimal("0.0001"))


@pytest.mark.asyncio
async def test_unknown_symbol_is_404(client: AsyncClient, user_headers, assets):
    response = await _buy(client, user_headers, "NOPE", "1", "1")
    assert response.status_code == 404
    assert "NOPE" in response.json()["message"]


@pytest.mark.asyncio
@pytest.mark.parametrize("amount,price", [("0", "100"), ("-1", "100"), ("1", "0"), ("1", "-5")])
async def test_non_positive_values_rejected(client: AsyncClient, user_headers, assets, amount, price):
    response = await _buy(client, user_headers, "BTC", amount, price)
    assert response.status_code == 400
    assert "message" in response.json()


@pytest.mark.asyncio
async def test_missing_fields_rejected(client: AsyncClient, user_headers, assets):
    response = await client.post("/api/portfolio/", json={"symbol": "BTC"}, headers=user_headers)
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_get_holding(client: AsyncClient, user_headers, assets):
    created = (await _buy(client, user_headers, "ETH", "2", "1800")).json()["holding"]

    response = await client.get(f"/api/portfolio/{created['id']}", headers=user_headers)
    assert response.status_code == 200
    data = response.json()
    assert data["symbol"] == "ETH"
    assert _dec(data["current_value"]) == Decimal("4000")


@pytest.mark.asyncio
async def test_update_replaces_without_averaging(client: AsyncClient, user_headers, assets):
    created = (await _buy(client, user_headers, "ETH", "2", "1800")).json()["holding"]

    response = await client.put(
        f"/api/portfolio/{created['id']}",
        json={"amount": "3", "purchase_price": "1000", "notes": "corrected"},
        headers=user_headers,
    )
    assert response.status_code == 200
    holding = response.json()["holding"]
    assert _dec(holding["amount"]) == Decimal("3")
    assert _dec(holding["purchase_price"]) == Decimal("1000")
    assert holding["notes"] == "corrected"


@pytest.mark.asyncio
async def test_delete_holding(client: AsyncClient, user_headers, assets):
    created = (await _buy(client, user_headers, "ETH", "2", "1800")).json()["holding"]

    response = await client.delete(f"/api/portfolio/{created['id']}", headers=user_headers)
    assert response.status_code == 200
    assert response.json()["message"] == "Holding removed from portfolio"

    listing = (await client.get("/api/portfolio/", headers=user_headers)).json()
    assert listing == []


@pytest.mark.asyncio
async def test_other_users_holdings_are_invisible(
    client: AsyncClient, user_headers, other_headers, assets
):
    created = (await _buy(client, user_headers, "ETH", "2", "1800")).json()["holding"]
    path = f"/api/portfolio/{created['id']}"

    assert (await client.get(path, headers=other_headers)).status_code == 404
    assert (
        await client.put(path, json={"amount": "1", "purchase_price": "1"}, headers=other_headers)
    ).status_code == 404
    assert (await client.delete(path, headers=other_headers)).status_code == 404
    assert (await client.get("/api/portfolio/", headers=other_headers)).json() == []

    # Still intact for the owner
    assert (await client.get(path, headers=user_headers)).status_code == 200


@pytest.mark.asyncio
async def test_unknown_holding_id_is_404(client: AsyncClient, user_headers, assets):
    response = await client.get(f"/api/portfolio/{uuid.uuid4()}", headers=user_headers)
    assert response.status_code == 404
    assert response.json()["message"] == "Holding not found"


@pytest.mark.asyncio
async def test_same_asset_for_two_users_is_two_holdings(
    client: AsyncClient, user_headers, other_headers, assets, db_session: AsyncSession
):
    await _buy(client, user_headers, "BTC", "1", "40000")
    await _buy(client, other_headers, "BTC", "2", "60000")

    count = await db_session.scalar(select(func.count()).select_from(Holding))
    assert count == 2
    mine = (await client.get("/api/portfolio/", headers=user_headers)).json()
    assert _dec(mine[0]["purchase_price"]) == Decimal("40000")


@pytest.mark.asyncio
async def test_memory_backend(client: AsyncClient, user_headers, assets, monkeypatch, db_session):
    """The in-memory store gives the same merge semantics without touching the table."""
    monkeypatch.setattr(settings, "HOLDINGS_BACKEND", "memory")

    first = await _buy(client, user_headers, "BTC", "0.5", "40000")
    second = await _buy(client, user_headers, "BTC", "0.5", "60000")
    assert first.status_code == 201
    assert second.status_code == 200

    listing = (await client.get("/api/portfolio/", headers=user_headers)).json()
    assert len(listing) == 1
    assert _dec(listing[0]["purchase_price"]) == Decimal("50000")
    assert _dec(listing[0]["current_value"]) == Decimal("70000")

    count = await db_session.scalar(select(func.count()).select_from(Holding))
    assert count == 0



@pytest.mark.asyncio
@pytest.mark.parametrize(
    "amount,price",
    [
        ("0.000000001", "100"),  # would round to zero
        ("0.123456789", "100"),
        ("1", "0.000000001"),
        ("12345678901234567", "1"),  # beyond 16 integer digits
    ],
)
async def test_values_outside_column_precision_rejected(
    client: AsyncClient, user_headers, assets, amount, price, db_session: AsyncSession
):
    response = await _buy(client, user_headers, "BTC", amount, price)
    assert response.status_code == 400
    assert "message" in response.json()

    count = await db_session.scalar(select(func.count()).select_from(Holding))
    assert count == 0


@pytest.mark.asyncio
async def test_update_outside_column_precision_rejected(client: AsyncClient, user_headers, assets):
    created = (await _buy(client, user_headers, "ETH", "2", "1800")).json()["holding"]

    response = await client.put(
        f"/api/portfolio/{created['id']}",
        json={"amount": "0.000000001", "purchase_price": "1800"},
        headers=user_headers,
    )
    assert response.status_code == 400

    holding = (await client.get(f"/api/portfolio/{created['id']}", headers=user_headers)).json()
    assert _dec(holding["amount"]) == Decimal("2")


@pytest.mark.asyncio
async def test_merged_amount_is_exact_sum_at_full_scale(client: AsyncClient, user_headers, assets):
    await _buy(client, user_headers, "ETH", "0.12345678", "2000")
    await _buy(client, user_headers, "ETH", "0.00000004", "2000")

    holding = (await client.get("/api/portfolio/", headers=user_headers)).json()[0]
    assert _dec(holding["amount"]) == Decimal("0.12345682")
    assert _dec(holding["purchase_price"]) == Decimal("2000")
