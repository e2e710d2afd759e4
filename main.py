"""
ChoreLock — Entry Point.

Single entry point: `python main.py` runs the gatekeeper until SIGINT/SIGTERM.
"""

from __future__ import annotations

import asyncio
import logging
import signal
from datetime import datetime

from chorelock.config import settings

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)

from chorelock.adapters.screen_factory import create_screen_adapter
from chorelock.core.lock_engine import GatekeeperEngine
from chorelock.core.service import GatekeeperService
from chorelock.data.db import PreferenceDB, TemplateDB
from chorelock.data.models import default_people

logger = logging.getLogger(__name__)


def build_service() -> GatekeeperService:
    """Wire stores, engine, screen adapter and service from settings."""
    preferences = PreferenceDB(settings.DATABASE_PATH)
    templates = TemplateDB(settings.DATABASE_PATH)
    engine = GatekeeperEngine.from_stores(
        preferences,
        templates,
        now=datetime.now(),
        default_people=default_people,
        start_hour=settings.START_HOUR,
        end_hour=settings.END_HOUR,
        retention_days=settings.RETENTION_DAYS,
        weekend_days=settings.WEEKEND_DAYS,
    )
    return GatekeeperService(
        engine,
        create_screen_adapter(settings.SCREEN_BACKEND),
        preferences=preferences,
        tick_seconds=settings.TICK_SECONDS,
        wake_gap_seconds=settings.WAKE_GAP_SECONDS,
    )


async def run() -> None:
    service = build_service()
    loop = asyncio.get_running_loop()
    stop_requested = asyncio.Event()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop_requested.set)

    await service.start()
    logger.info(
        "ChoreLock running: window %02d:00-%02d:00, assigned to '%s'",
        settings.START_HOUR, settings.END_HOUR,
        service.engine.assigned_name or "(nobody)",
    )
    await stop_requested.wait()
    logger.info("Shutdown requested")
    await service.stop()


def main() -> None:
    asyncio.run(run())


if __name__ == "__main__":
    main()
