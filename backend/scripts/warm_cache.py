"""Load the curated corpus through the cache so every tier is populated.

Usage (from repository root):
    python backend/scripts/warm_cache.py
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path

BACKEND_DIR = Path(__file__).resolve().parents[1]
if str(BACKEND_DIR) not in sys.path:
    sys.path.insert(0, str(BACKEND_DIR))

from app.cache.service import CacheService
from app.config import get_settings


def main() -> None:
    settings = get_settings()
    logging.basicConfig(level=settings.log_level.upper())
    cache = CacheService.from_settings(settings)
    try:
        listings = cache.get_listings()
        profiles = cache.get_district_profiles()
        pricing = cache.get_pricing_reference()
    finally:
        cache.close()

    print("Cache warm complete")
    print(f"listings={len(listings)}")
    print(f"district_profiles={len(profiles)}")
    print(f"pricing_reference={len(pricing)}")


if __name__ == "__main__":
    main()
