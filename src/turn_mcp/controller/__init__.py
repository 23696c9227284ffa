from __future__ import annotations

from .manager import Controller, ControllerListener, ControllerStatus

__all__ = ["Controller", "ControllerListener", "ControllerStatus"]
