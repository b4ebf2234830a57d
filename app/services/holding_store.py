"""Holding storage backends.

``HoldingStore`` is the capability set the portfolio service needs. Two
implementations exist: ``SqlHoldingStore`` (durable, one per request session)
and ``MemoryHoldingStore`` (process-local, not durable, for tests and demos).
The backend is chosen by ``settings.HOLDINGS_BACKEND``.
"""

import asyncio
import logging
import uuid
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from decimal import Decimal
from typing import Dict, List, Optional, Tuple
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import PersistenceError
from app.models.holding import Holding
from app.services.valuation_service import Lot, merge_cost_basis, validate_purchase

logger = logging.getLogger(__name__)


def _lot(holding: Holding) -> Lot:
    return Lot(
        amount=Decimal(str(holding.amount)),
        purchase_price=Decimal(str(holding.purchase_price)),
    )


UNIQUE_CONSTRAINT = "uq_holdings_user_asset"
# PostgreSQL names the constraint, SQLite lists its columns
DUPLICATE_MARKERS = (UNIQUE_CONSTRAINT, "UNIQUE constraint failed: holdings.user_id, holdings.asset_id")


def _is_duplicate_holding(exc: IntegrityError) -> bool:
    """True when the insert hit the one-holding-per-(user, asset) constraint."""
    cause = getattr(exc.orig, "__cause__", None)
    if getattr(cause, "constraint_name", None) == UNIQUE_CONSTRAINT:
        return True
    message = str(exc.orig)
    return any(marker in message for marker in DUPLICATE_MARKERS)


def _apply_merge(holding: Holding, amount, price, notes: Optional[str]) -> None:
    merged = merge_cost_basis(_lot(holding), amount, price)
    holding.amount = merged.amount
    holding.purchase_price = merged.purchase_price
    if notes:
        holding.notes = notes


class HoldingStore(ABC):
    """Per-user holding persistence. Every call is scoped to ``user_id``."""

    @abstractmethod
    async def list_for_user(self, user_id: UUID) -> List[Holding]:
        """All holdings owned by the user."""

    @abstractmethod
    async def get(self, user_id: UUID, holding_id: UUID) -> Optional[Holding]:
        """One holding, or None if missing or owned by someone else."""

    @abstractmethod
    async def add_purchase(
        self,
        user_id: UUID,
        asset_id: UUID,
        amount: Decimal,
        price: Decimal,
        notes: Optional[str] = None,
    ) -> Tuple[Holding, bool]:
        """Create or merge the (user, asset) holding. Returns (holding, created)."""

    @abstractmethod
    async def update(
        self,
        user_id: UUID,
        holding_id: UUID,
        amount: Decimal,
        price: Decimal,
        notes: Optional[str] = None,
    ) -> Optional[Holding]:
        """Replace amount/price/notes. None if not owned."""

    @abstractmethod
    async def delete(self, user_id: UUID, holding_id: UUID) -> bool:
        """Remove a holding. False if not owned."""


class SqlHoldingStore(HoldingStore):
    """Holdings in the relational database, within the request's session."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def _locked(self, user_id: UUID, asset_id: UUID) -> Optional[Holding]:
        result = await self.db.execute(
            select(Holding)
            .where(Holding.user_id == user_id, Holding.asset_id == asset_id)
            .with_for_update()
        )
        return result.scalar_one_or_none()

    async def list_for_user(self, user_id: UUID) -> List[Holding]:
        result = await self.db.execute(
            select(Holding)
            .where(Holding.user_id == user_id)
            .order_by(Holding.created_at)
        )
        return list(result.scalars().all())

    async def get(self, user_id: UUID, holding_id: UUID) -> Optional[Holding]:
        result = await self.db.execute(
            select(Holding).where(
                Holding.id == holding_id,
                Holding.user_id == user_id,
            )
        )
        return result.scalar_one_or_none()

    async def add_purchase(self, user_id, asset_id, amount, price, notes=None):
        amount, price = validate_purchase(amount, price)

        existing = await self._locked(user_id, asset_id)
        if existing is not None:
            _apply_merge(existing, amount, price, notes)
            await self.db.flush()
            await self.db.refresh(existing)
            return existing, False

        holding = Holding(
            user_id=user_id,
            asset_id=asset_id,
            amount=amount,
            purchase_price=price,
            notes=notes,
        )
        try:
            async with self.db.begin_nested():
                self.db.add(holding)
                await self.db.flush()
        except IntegrityError as e:
            if not _is_duplicate_holding(e):
                raise
            # Lost a race with a concurrent first purchase: merge into the winner
            logger.info("Concurrent insert for holding, merging", extra={"asset_id": str(asset_id)})
            existing = await self._locked(user_id, asset_id)
            if existing is None:
                raise PersistenceError("Could not record purchase")
            _apply_merge(existing, amount, price, notes)
            await self.db.flush()
            await self.db.refresh(existing)
            return existing, False

        await self.db.refresh(holding)
        return holding, True

    async def update(self, user_id, holding_id, amount, price, notes=None):
        amount, price = validate_purchase(amount, price)
        holding = await self.get(user_id, holding_id)
        if holding is None:
            return None
        holding.amount = amount
        holding.purchase_price = price
        holding.notes = notes
        await self.db.flush()
        await self.db.refresh(holding)
        return holding

    async def delete(self, user_id, holding_id):
        holding = await self.get(user_id, holding_id)
        if holding is None:
            return False
        await self.db.delete(holding)
        await self.db.flush()
        return True


class MemoryHoldingStore(HoldingStore):
    """Process-local holdings. Lost on restart and not shared between workers."""

    def __init__(self):
        self._holdings: Dict[UUID, Holding] = {}
        self._lock = asyncio.Lock()

    async def list_for_user(self, user_id):
        return sorted(
            (h for h in self._holdings.values() if h.user_id == user_id),
            key=lambda h: h.created_at,
        )

    async def get(self, user_id, holding_id):
        holding = self._holdings.get(holding_id)
        if holding is None or holding.user_id != user_id:
            return None
        return holding

    async def add_purchase(self, user_id, asset_id, amount, price, notes=None):
        amount, price = validate_purchase(amount, price)
        async with self._lock:
            now = datetime.now(timezone.utc)
            for holding in self._holdings.values():
                if holding.user_id == user_id and holding.asset_id == asset_id:
                    _apply_merge(holding, amount, price, notes)
                    holding.updated_at = now
                    return holding, False

            holding = Holding(
                id=uuid.uuid4(),
                user_id=user_id,
                asset_id=asset_id,
                amount=amount,
                purchase_price=price,
                notes=notes,
                purchase_date=now,
                created_at=now,
                updated_at=now,
            )
            self._holdings[holding.id] = holding
            return holding, True

    async def update(self, user_id, holding_id, amount, price, notes=None):
        amount, price = validate_purchase(amount, price)
        async with self._lock:
            holding = await self.get(user_id, holding_id)
            if holding is None:
                return None
            holding.amount = amount
            holding.purchase_price = price
            holding.notes = notes
            holding.updated_at = datetime.now(timezone.utc)
            return holding

    async def delete(self, user_id, holding_id):
        async with self._lock:
            holding = await self.get(user_id, holding_id)
            if holding is None:
                return False
            del self._holdings[holding_id]
            return True

    def clear(self) -> None:
        self._holdings.clear()
