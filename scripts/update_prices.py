#!/usr/bin/env python3
"""Script to run one market data refresh from the command line.

Usage:
    python scripts/update_prices.py          # stale assets only
    python scripts/update_prices.py --force  # every asset
"""

import argparse
import asyncio
import sys

sys.path.insert(0, str(__file__).rsplit("/", 2)[0])

from app.core.logging import setup_logging
from app.tasks.price_updates import run_refresh


def main():
    parser = argparse.ArgumentParser(description="Refresh cryptocurrency prices")
    parser.add_argument("--force", action="store_true", help="ignore the freshness window")
    args = parser.parse_args()

    setup_logging()
    result = asyncio.run(run_refresh(force=args.force))

    if result["skipped"]:
        print("A refresh is already running, nothing done.")
        return
    print(f"Updated {result['updated']} prices, {result['failed']} failed.")
    if result["symbols"]:
        print("Symbols: " + ", ".join(result["symbols"]))


if __name__ == "__main__":
    main()
