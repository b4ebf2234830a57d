#!/usr/bin/env python3
"""Script to create the tables and seed the tracked cryptocurrencies."""

import asyncio
import sys

sys.path.insert(0, str(__file__).rsplit("/", 2)[0])

from app.core.database import AsyncSessionLocal, engine
from app.models import Base
from app.services.refresh_service import SEED_ASSETS, seed_assets


async def main():
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with AsyncSessionLocal() as session:
        added = await seed_assets(session)
        await session.commit()

    await engine.dispose()
    print(f"{added} assets added ({len(SEED_ASSETS) - added} already present).")


if __name__ == "__main__":
    asyncio.run(main())
