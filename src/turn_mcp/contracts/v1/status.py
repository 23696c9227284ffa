"""Status record shared through the mailbox directory.

Exactly one record exists at a time; each write replaces the whole document.
`timestamp` is diagnostic only.
"""
from __future__ import annotations

import math
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, field_validator

# Returned to the agent when a human aborts the wait.
CANCELED_SENTINEL = "[canceled]"


class StatusRecord(BaseModel):
    waiting: bool
    context: Optional[str] = ""
    question: Optional[str] = None
    canceled: Optional[bool] = None
    timestamp: int = 0

    # Other writers may add fields; keep reading.
    model_config = ConfigDict(extra="ignore")

    @field_validator("timestamp", mode="before")
    @classmethod
    def _whole_milliseconds(cls, v: Any) -> int:
        # Any JSON number is accepted; an unreadable timestamp must not drop the record.
        if v is None or isinstance(v, bool):
            return 0
        try:
            f = float(v)
        except (TypeError, ValueError):
            return 0
        return int(f) if math.isfinite(f) else 0

    @classmethod
    def waiting_for(cls, context: str, question: Optional[str], *, timestamp: int) -> "StatusRecord":
        return cls(waiting=True, context=context, question=question or None, timestamp=timestamp)

    @classmethod
    def idle(cls, *, timestamp: int) -> "StatusRecord":
        return cls(waiting=False, context="", timestamp=timestamp)

    @classmethod
    def cancel(cls, *, timestamp: int) -> "StatusRecord":
        return cls(waiting=False, context=None, canceled=True, timestamp=timestamp)

    def to_wire(self) -> Dict[str, Any]:
        doc: Dict[str, Any] = {"waiting": self.waiting, "context": self.context}
        if self.question is not None:
            doc["question"] = self.question
        if self.canceled is not None:
            doc["canceled"] = self.canceled
        doc["timestamp"] = self.timestamp
        return doc

    @property
    def is_canceled(self) -> bool:
        return self.canceled is True
