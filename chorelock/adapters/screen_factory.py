"""Screen adapter factory — creates the right adapter based on config."""

from __future__ import annotations

from chorelock.ports.screen_port import ScreenPort


def create_screen_adapter(backend: str | None = None) -> ScreenPort:
    """Return the screen adapter matching SCREEN_BACKEND."""
    if backend is None:
        from chorelock.config import settings
        backend = settings.SCREEN_BACKEND
    backend = backend.lower()

    if backend == "log":
        from chorelock.adapters.log_screen import LoggingScreen

        return LoggingScreen()

    if backend == "macos":
        from chorelock.adapters.macos_screen import MacScreen

        return MacScreen()

    raise ValueError(f"Unknown SCREEN_BACKEND: {backend!r}")
