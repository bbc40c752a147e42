from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from dotenv import load_dotenv

from placefinder.core.orchestrator import LocationResolver
from placefinder.core.workflow_types import SearchOptions


async def main():
    repo_root = Path(__file__).resolve().parents[2]
    load_dotenv(repo_root / ".env", override=False)
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

    async with LocationResolver() as resolver:
        report = resolver.validate_services()
        for err in report.errors:
            logging.warning("config: %s", err)
        print("Services:", ", ".join(report.configured_services))

        options = SearchOptions(
            max_results=5,
            search_radius_km=10,
            anchor_lat=29.9511,
            anchor_lon=-90.0715,
        )
        result = await resolver.resolve("coffee shop", options)
        for loc in result.locations:
            dist = f"{loc.distance_km:.1f}km" if loc.distance_km is not None else "n/a"
            print(f"{loc.composite_score:5.1f}  {dist:>8}  {loc.place_name} ({loc.source})")
        if result.errors:
            print("Errors:", result.errors)

if __name__ == "__main__":
    asyncio.run(main())
