"""Headless screen adapter — implements ScreenPort by logging.

Used when no desktop backend is configured, and as the test double.
"""

from __future__ import annotations

import logging

logger = logging.getLogger(__name__)


class LoggingScreen:
    """Logging implementation of ScreenPort."""

    def __init__(self) -> None:
        self.locked: bool | None = None
        self.calls: list[str] = []

    def lock(self) -> None:
        self.calls.append("lock")
        if self.locked is not True:
            logger.info("Screen locked")
        self.locked = True

    def unlock(self) -> None:
        self.calls.append("unlock")
        if self.locked is not False:
            logger.info("Screen unlocked")
        self.locked = False
