from __future__ import annotations

from .status import CANCELED_SENTINEL, StatusRecord
from .tool import TurnArgs

__all__ = [
    "CANCELED_SENTINEL",
    "StatusRecord",
    "TurnArgs",
]
