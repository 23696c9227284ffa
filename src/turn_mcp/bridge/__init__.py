from __future__ import annotations

from .waiter import pause_and_wait

__all__ = ["pause_and_wait"]
