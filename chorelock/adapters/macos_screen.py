"""macOS screen adapter — implements ScreenPort with the system lock screen.

Locking suspends the login session via System Events (falling back to
CGSession). Every lock() asks the window server whether the session is
already locked, so a repeated call after the user logged back in locks again.
There is nothing to do on unlock: the session comes back when the user
authenticates.
"""

from __future__ import annotations

import logging
import subprocess
from collections.abc import Callable

logger = logging.getLogger(__name__)

_OSASCRIPT = "/usr/bin/osascript"
_LOCK_SCRIPT = 'tell application "System Events" to key code 12 using {control down, command down}'
_CGSESSION = "/System/Library/CoreServices/Menu Extras/User.menu/Contents/Resources/CGSession"


def session_is_locked() -> bool:
    """Ask the window server whether the login session shows the lock screen."""
    from Quartz.CoreGraphics import CGSessionCopyCurrentDictionary  # type: ignore

    session = CGSessionCopyCurrentDictionary() or {}
    return bool(session.get("CGSSessionScreenIsLocked", 0))


class MacScreen:
    """macOS implementation of ScreenPort."""

    def __init__(
        self,
        run: Callable[..., subprocess.CompletedProcess] = subprocess.run,
        is_locked: Callable[[], bool] = session_is_locked,
    ) -> None:
        self._run = run
        self._is_locked = is_locked

    def _call(self, args: list[str]) -> None:
        self._run(
            args,
            check=True,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
        )

    def _session_locked(self) -> bool:
        try:
            return self._is_locked()
        except Exception:
            logger.warning("Unable to read session lock state; locking anyway.", exc_info=True)
            return False

    def lock(self) -> None:
        if self._session_locked():
            return
        logger.info("Locking screen")
        try:
            self._call([_OSASCRIPT, "-e", _LOCK_SCRIPT])
            return
        except (subprocess.CalledProcessError, OSError) as exc:
            logger.warning("osascript lock failed (%s); trying CGSession -suspend", exc)

        try:
            self._call([_CGSESSION, "-suspend"])
        except (subprocess.CalledProcessError, OSError) as exc:
            logger.error("Failed to lock screen via CGSession: %s", exc)

    def unlock(self) -> None:
        logger.info("Chores done; session may be unlocked")
