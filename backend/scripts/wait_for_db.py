from __future__ import annotations

import asyncio
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app.config import get_settings
from app.database import PlaceStore


async def _wait() -> bool:
    settings = get_settings()
    store = PlaceStore.from_settings(settings)
    try:
        return await store.wait_until_ready(
            settings.startup_connect_attempts,
            settings.startup_retry_delay_seconds,
        )
    finally:
        await store.dispose()


def main() -> None:
    if asyncio.run(_wait()):
        print("Database is ready.")
        return
    raise SystemExit("Database did not become ready in time.")


if __name__ == "__main__":
    main()
