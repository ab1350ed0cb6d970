"""
Remove the cached travelers listing (static_travelers_cache.json by default).

The API invalidates the listing on every mutation it serves; use this after
editing traveler rows directly in the database.

Usage:
  python scripts/clear_travelers_cache.py
"""

from __future__ import annotations

import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


def clear_travelers_cache(config: dict | None = None) -> bool:
    from dotenv import load_dotenv

    from app.traveldocs.cache import cache_from_config
    from app.traveldocs.config import load_config
    from app.traveldocs.modules.travelers.api import LIST_CACHE_KEY

    if config is None:
        load_dotenv()
        config = load_config()
    return cache_from_config(config).invalidate(LIST_CACHE_KEY)


def main() -> None:
    removed = clear_travelers_cache()
    print("Removed travelers cache." if removed else "No travelers cache to remove.", flush=True)


if __name__ == "__main__":
    main()
