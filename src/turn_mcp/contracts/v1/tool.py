from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, field_validator


class TurnArgs(BaseModel):
    """Arguments of the agent-facing `turn` tool."""

    context: str
    question: Optional[str] = None

    model_config = ConfigDict(extra="forbid")

    @field_validator("context")
    @classmethod
    def _context_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("context must not be empty")
        return v

    @field_validator("question")
    @classmethod
    def _blank_question_is_absent(cls, v: Optional[str]) -> Optional[str]:
        if v is None or not v.strip():
            return None
        return v
