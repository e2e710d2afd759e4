"""Screen port — abstract interface for making the device usable or not.

Core modules depend on this protocol, never on a specific desktop backend.
"""

from __future__ import annotations

from typing import Protocol


class ScreenPort(Protocol):
    """Lock/unlock side effects driven by the engine's state.

    Both calls must be idempotent: the engine may repeat them.
    """

    def lock(self) -> None: ...

    def unlock(self) -> None: ...
