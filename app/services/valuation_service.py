"""Cost-basis merging, holding valuation and portfolio roll-up.

Pure functions over ``Decimal`` inputs; nothing here touches the database or
the network, so the HTTP layer, the stores and the tests all share one copy
of the arithmetic.
"""

from dataclasses import dataclass
from decimal import ROUND_HALF_EVEN, Decimal
from typing import Iterable, Optional

from app.core.exceptions import ValidationError

ZERO = Decimal("0")
HUNDRED = Decimal("100")

# Holding columns are Numeric(24, 8)
SCALE = 8
QUANTUM = Decimal(1).scaleb(-SCALE)
MAX_VALUE = Decimal(10) ** (24 - SCALE)


@dataclass(frozen=True)
class Lot:
    """An amount held at an average purchase price."""

    amount: Decimal
    purchase_price: Decimal

    @property
    def invested(self) -> Decimal:
        return self.amount * self.purchase_price


@dataclass(frozen=True)
class Valuation:
    """Live economics of one holding. ``None`` fields mean the price is unknown."""

    amount: Decimal
    purchase_price: Decimal
    invested: Decimal
    current_price: Optional[Decimal]
    current_value: Optional[Decimal]
    profit_loss: Optional[Decimal]
    profit_loss_percentage: Optional[Decimal]

    @property
    def priced(self) -> bool:
        return self.current_value is not None


@dataclass(frozen=True)
class PortfolioSummary:
    total_holdings: int = 0
    total_invested: Decimal = ZERO
    total_current_value: Decimal = ZERO
    total_profit_loss: Decimal = ZERO
    total_profit_loss_percentage: Decimal = ZERO
    unpriced_holdings: int = 0

    def as_dict(self) -> dict:
        return {
            "total_holdings": self.total_holdings,
            "total_invested": float(self.total_invested),
            "total_current_value": float(self.total_current_value),
            "total_profit_loss": float(self.total_profit_loss),
            "total_profit_loss_percentage": float(self.total_profit_loss_percentage),
            "unpriced_holdings": self.unpriced_holdings,
        }


def _to_decimal(value) -> Decimal:
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def validate_purchase(amount, price) -> tuple[Decimal, Decimal]:
    """Coerce a purchase to Decimals; both values must be strictly positive."""
    try:
        amount = _to_decimal(amount)
        price = _to_decimal(price)
    except (ArithmeticError, ValueError, TypeError):
        raise ValidationError("Amount and purchase price must be numbers")
    if not amount.is_finite() or not price.is_finite():
        raise ValidationError("Amount and purchase price must be numbers")
    if amount <= 0 or price <= 0:
        raise ValidationError("Amount and purchase price must be positive")
    if not _fits_scale(amount) or not _fits_scale(price):
        raise ValidationError(f"Amount and purchase price allow at most {SCALE} decimal places")
    if amount >= MAX_VALUE or price >= MAX_VALUE:
        raise ValidationError("Amount or purchase price is too large")
    return amount, price


def _fits_scale(value: Decimal) -> bool:
    return value.normalize().as_tuple().exponent >= -SCALE


def merge_cost_basis(existing: Optional[Lot], amount, price) -> Lot:
    """Fold a new purchase into an existing lot by amount-weighted average price."""
    amount, price = validate_purchase(amount, price)

    if existing is None:
        return Lot(amount=amount, purchase_price=price)

    total_amount = existing.amount + amount
    if total_amount >= MAX_VALUE:
        raise ValidationError("Holding amount is too large")
    # Stays within [min price, max price] since both bounds are on the grid
    weighted_price = ((existing.invested + amount * price) / total_amount).quantize(
        QUANTUM, rounding=ROUND_HALF_EVEN
    )
    return Lot(amount=total_amount, purchase_price=weighted_price)


def value_holding(amount, purchase_price, current_price) -> Valuation:
    """Value one holding against the current market price.

    A missing or non-positive ``current_price`` means the market price is
    unknown: value and P&L come back as ``None`` rather than zero.
    """
    amount = _to_decimal(amount)
    purchase_price = _to_decimal(purchase_price)
    invested = amount * purchase_price

    if current_price is None or _to_decimal(current_price) <= 0:
        return Valuation(
            amount=amount,
            purchase_price=purchase_price,
            invested=invested,
            current_price=None,
            current_value=None,
            profit_loss=None,
            profit_loss_percentage=None,
        )

    current_price = _to_decimal(current_price)
    current_value = amount * current_price
    profit_loss = current_value - invested
    # Only reachable if the positive-amount/price invariant was broken upstream
    percentage = profit_loss / invested * HUNDRED if invested != 0 else ZERO

    return Valuation(
        amount=amount,
        purchase_price=purchase_price,
        invested=invested,
        current_price=current_price,
        current_value=current_value,
        profit_loss=profit_loss,
        profit_loss_percentage=percentage,
    )


def summarize(valuations: Iterable[Valuation]) -> PortfolioSummary:
    """Roll holdings up into portfolio totals.

    Unpriced holdings are carried at cost: they count towards invested and
    current value but add nothing to profit/loss.
    """
    count = 0
    unpriced = 0
    invested = ZERO
    current_value = ZERO
    profit_loss = ZERO

    for valuation in valuations:
        count += 1
        invested += valuation.invested
        if valuation.priced:
            current_value += valuation.current_value
            profit_loss += valuation.profit_loss
        else:
            unpriced += 1
            current_value += valuation.invested

    percentage = profit_loss / invested * HUNDRED if invested > 0 else ZERO

    return PortfolioSummary(
        total_holdings=count,
        total_invested=invested,
        total_current_value=current_value,
        total_profit_loss=profit_loss,
        total_profit_loss_percentage=percentage,
        unpriced_holdings=unpriced,
    )
